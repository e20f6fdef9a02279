import logging
from django.conf import settings
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from backend.core.cache_utils import cache_parts_issue_list, get_cached_parts_issue_list, invalidate_parts_issue_cache
from backend.core.roles import (
    CENTRAL_ADMIN,
    INVENTORY_MANAGER,
    SC_MANAGER,
    TECHNICIAN,
    role_permission,
    user_has_role,
)
from backend.core.utils import create_audit_log, paginated_response
from . import dispatch as dispatch_service
from . import workflow
from .exceptions import PartsIssueError, PartsIssueValidationError, PermissionDeniedError
from .filters import PartsIssueFilter
from .intake import create_request
from .models import PartsIssueRequest
from .projection import summarize
from .serializers import (
    DispatchInputSerializer,
    PartsIssueCreateSerializer,
    PartsIssueDetailSerializer,
    PartsIssueRequestSerializer,
    PartsIssueStatusHistorySerializer,
)

logger = logging.getLogger(__name__)


def visible_parts_issues(user):
    """Requests the user may see: their own service center, or all for central staff"""
    queryset = PartsIssueRequest.objects.select_related(
        'service_center', 'job_card', 'purchase_order', 'issued_by'
    ).prefetch_related('items')
    if user.service_center_id and not user.is_superuser:
        queryset = queryset.filter(service_center_id=user.service_center_id)
    return queryset


def ensure_same_service_center(user, service_center_id):
    """Workshop users may only act on their own service center's requests"""
    if user.is_superuser or not user.service_center_id:
        return
    if user.service_center_id != service_center_id:
        raise PermissionDeniedError('You can only act on requests of your own service center')


def get_expected_version(request):
    """Version token from the body or an If-Match header (``"3"`` or ``W/"3"``)"""
    version = request.data.get('version')
    if version in (None, ''):
        header = request.headers.get('If-Match', '')
        version = header.strip().removeprefix('W/').strip('"') or None
    if version is None and settings.PARTS_ISSUE_REQUIRE_VERSION:
        raise PartsIssueValidationError('The request version is required (body "version" or If-Match header)')
    return version


def error_response(error):
    level = logging.INFO if error.status_code == status.HTTP_400_BAD_REQUEST else logging.WARNING
    logger.log(level, f"Parts issue operation rejected ({error.code}): {error.message}")
    return Response(error.as_dict(), status=error.status_code)


def issue_response(request, issue_id, response_status=status.HTTP_200_OK, headers=None):
    issue = visible_parts_issues(request.user).prefetch_related('dispatches__lines').get(pk=issue_id)
    response = Response(PartsIssueDetailSerializer(issue).data, status=response_status, headers=headers)
    response['ETag'] = f'"{issue.version}"'
    return response


def audit(request, action, issue, changes=None):
    create_audit_log(
        request=request,
        action=action,
        model_name='PartsIssueRequest',
        object_id=issue.id,
        object_name=issue.issue_number,
        object_reference=issue.issue_number,
        changes={'status': issue.status, 'version': issue.version, **(changes or {})},
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def parts_issue_list_create(request):
    """List parts-issue requests (filterable, paginated, cached) or raise a new one"""
    if request.method == 'GET':
        filters_dict = {key: request.query_params.get(key) for key in sorted(request.query_params.keys())}
        cached, cache_key = get_cached_parts_issue_list(request.user.id, filters_dict)
        if cached is not None:
            return Response(cached)

        issue_filter = PartsIssueFilter(request.query_params, queryset=visible_parts_issues(request.user))
        if not issue_filter.is_valid():
            return Response(issue_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        response = paginated_response(
            request, issue_filter.qs.order_by('-created_at', '-id'), PartsIssueRequestSerializer
        )
        cache_parts_issue_list(cache_key, response.data)
        return response

    if not user_has_role(request.user, TECHNICIAN, SC_MANAGER):
        return Response({'error': 'Only service center staff can request parts'}, status=status.HTTP_403_FORBIDDEN)

    serializer = PartsIssueCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    validated = serializer.validated_data
    job_card = validated['job_card']

    try:
        ensure_same_service_center(request.user, job_card.service_center_id)
        issue = create_request(
            job_card,
            validated['items'],
            request.user,
            notes=validated.get('notes'),
            purchase_order=validated.get('purchase_order'),
        )
    except PartsIssueError as e:
        return error_response(e)

    invalidate_parts_issue_cache()
    audit(request, 'parts_issue_create', issue, {
        'job_card': job_card.job_card_number,
        'items': len(validated['items']),
        'total_amount': str(issue.total_amount),
    })
    return issue_response(request, issue.id, status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def parts_issue_detail(request, pk):
    get_object_or_404(visible_parts_issues(request.user), pk=pk)
    return issue_response(request, pk)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def parts_issue_history(request, pk):
    issue = get_object_or_404(visible_parts_issues(request.user), pk=pk)
    history = issue.history.select_related('actor')
    return Response(PartsIssueStatusHistorySerializer(history, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def parts_issue_summary(request):
    """Request counts per bucket for the dashboard"""
    queryset = visible_parts_issues(request.user)
    service_center = request.query_params.get('service_center')
    if service_center:
        queryset = queryset.filter(service_center_id=service_center)
    return Response(summarize(queryset))


def _run_action(request, pk, audit_action, operation, scoped=False):
    """Shared body of the PATCH workflow endpoints"""
    issue = get_object_or_404(visible_parts_issues(request.user), pk=pk)
    try:
        if scoped:
            ensure_same_service_center(request.user, issue.service_center_id)
        expected_version = get_expected_version(request)
        issue, changes = operation(issue, expected_version)
    except PartsIssueError as e:
        return error_response(e)

    invalidate_parts_issue_cache()
    audit(request, audit_action, issue, changes)
    return issue_response(request, issue.id)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, role_permission(SC_MANAGER)])
def parts_issue_sc_approve(request, pk):
    def operation(issue, version):
        return workflow.sc_approve(issue.id, request.user, expected_version=version), {}
    return _run_action(request, pk, 'parts_issue_sc_approve', operation, scoped=True)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, role_permission(SC_MANAGER)])
def parts_issue_sc_reject(request, pk):
    reason = request.data.get('reason', '')

    def operation(issue, version):
        issue = workflow.sc_reject(issue.id, request.user, reason, expected_version=version)
        return issue, {'reason': issue.sc_manager_rejection_reason}
    return _run_action(request, pk, 'parts_issue_sc_reject', operation, scoped=True)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, role_permission(CENTRAL_ADMIN)])
def parts_issue_admin_approve(request, pk):
    approved_quantities = request.data.get('approved_quantities') or {}

    def operation(issue, version):
        if not isinstance(approved_quantities, dict):
            raise PartsIssueValidationError('approved_quantities must be an object of {item_id: quantity}')
        issue = workflow.admin_approve(issue.id, request.user, approved_quantities, expected_version=version)
        return issue, {'approved_quantities': approved_quantities, 'total_amount': str(issue.total_amount)}
    return _run_action(request, pk, 'parts_issue_admin_approve', operation)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, role_permission(CENTRAL_ADMIN)])
def parts_issue_admin_reject(request, pk):
    reason = request.data.get('reason', '')

    def operation(issue, version):
        issue = workflow.admin_reject(issue.id, request.user, reason, expected_version=version)
        return issue, {'reason': issue.admin_rejection_reason}
    return _run_action(request, pk, 'parts_issue_admin_reject', operation)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, role_permission(SC_MANAGER, INVENTORY_MANAGER)])
def parts_issue_resend(request, pk):
    def operation(issue, version):
        issue = workflow.resend(issue.id, request.user, expected_version=version)
        return issue, {'resend_count': issue.resend_count}
    return _run_action(request, pk, 'parts_issue_resend', operation, scoped=True)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, role_permission(INVENTORY_MANAGER, CENTRAL_ADMIN)])
def parts_issue_dispatch(request, pk):
    """
    Dispatch approved quantities.

    Body: ``{"items": [{"item_id", "quantity"}], "idempotency_key"?, "transport_details"?, "version"?}``;
    the key may also be sent as an ``Idempotency-Key`` header. A replayed key
    answers 200 with ``Idempotent-Replay: true``.
    """
    issue = get_object_or_404(visible_parts_issues(request.user), pk=pk)
    serializer = DispatchInputSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    validated = serializer.validated_data
    idempotency_key = validated.get('idempotency_key') or request.headers.get('Idempotency-Key') or None

    try:
        issue = dispatch_service.dispatch(
            issue.id,
            validated['items'],
            request.user,
            idempotency_key=idempotency_key,
            transport_details=validated.get('transport_details'),
            expected_version=get_expected_version(request),
        )
    except PartsIssueError as e:
        return error_response(e)

    if issue.replayed:
        return issue_response(request, issue.id, headers={'Idempotent-Replay': 'true'})

    invalidate_parts_issue_cache()
    audit(request, 'parts_issue_dispatch', issue, {
        'lines': [dict(line) for line in validated['items']],
        'idempotency_key': idempotency_key,
    })
    return issue_response(request, issue.id)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, role_permission(SC_MANAGER, TECHNICIAN)])
def parts_issue_receive(request, pk):
    received_quantities = request.data.get('received_quantities') or {}

    def operation(issue, version):
        if not isinstance(received_quantities, dict):
            raise PartsIssueValidationError('received_quantities must be an object of {item_id: quantity}')
        issue = dispatch_service.receive(issue.id, request.user, received_quantities, expected_version=version)
        return issue, {'received_quantities': received_quantities}
    return _run_action(request, pk, 'parts_issue_receive', operation, scoped=True)
