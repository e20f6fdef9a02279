import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backend.core.roles import role_permission, CENTRAL_ADMIN
from backend.core.utils import create_audit_log, paginated_response
from .models import PurchaseOrder
from .serializers import PurchaseOrderSerializer, PurchaseOrderCreateSerializer
from .services import create_purchase_order, approve_purchase_order, reject_purchase_order, PurchaseOrderError

logger = logging.getLogger(__name__)


def visible_purchase_orders(user):
    queryset = PurchaseOrder.objects.select_related('service_center', 'job_card', 'created_by') \
        .prefetch_related('items', 'items__part')
    if user.service_center_id and not user.is_superuser:
        queryset = queryset.filter(service_center_id=user.service_center_id)
    return queryset


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def purchase_order_list_create(request):
    """List purchase orders or raise a new one"""
    if request.method == 'GET':
        queryset = visible_purchase_orders(request.user)

        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        service_center = request.query_params.get('service_center')
        if service_center:
            queryset = queryset.filter(service_center_id=service_center)
        date_from = request.query_params.get('date_from')
        date_to = request.query_params.get('date_to')
        if date_from:
            queryset = queryset.filter(created_at__date__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__date__lte=date_to)

        return paginated_response(request, queryset.order_by('-created_at', '-id'), PurchaseOrderSerializer)

    data = request.data.copy()
    if request.user.service_center_id and not request.user.is_superuser:
        data['service_center'] = request.user.service_center_id

    serializer = PurchaseOrderCreateSerializer(data=data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    validated = serializer.validated_data

    try:
        purchase_order = create_purchase_order(
            validated['service_center'],
            validated['items'],
            created_by=request.user,
            job_card=validated.get('job_card'),
            priority=validated['priority'],
            notes=validated['notes'],
        )
    except PurchaseOrderError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='purchase_order_create',
        model_name='PurchaseOrder',
        object_id=purchase_order.id,
        object_name=purchase_order.po_number,
        object_reference=purchase_order.po_number,
        changes={'items': len(validated['items']), 'service_center': purchase_order.service_center.code},
    )
    return Response(PurchaseOrderSerializer(purchase_order).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def purchase_order_detail(request, pk):
    purchase_order = get_object_or_404(visible_purchase_orders(request.user), pk=pk)
    return Response(PurchaseOrderSerializer(purchase_order).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, role_permission(CENTRAL_ADMIN)])
def purchase_order_approve(request, pk):
    get_object_or_404(PurchaseOrder, pk=pk)
    try:
        purchase_order = approve_purchase_order(pk, request.user)
    except PurchaseOrderError as e:
        return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)

    create_audit_log(
        request=request,
        action='purchase_order_approve',
        model_name='PurchaseOrder',
        object_id=purchase_order.id,
        object_name=purchase_order.po_number,
        object_reference=purchase_order.po_number,
        changes={'status': purchase_order.status},
    )
    return Response(PurchaseOrderSerializer(purchase_order).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, role_permission(CENTRAL_ADMIN)])
def purchase_order_reject(request, pk):
    purchase_order = get_object_or_404(PurchaseOrder, pk=pk)
    reason = request.data.get('reason', '')
    if not reason or not str(reason).strip():
        return Response({'error': 'A rejection reason is required'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        purchase_order = reject_purchase_order(pk, request.user, str(reason))
    except PurchaseOrderError as e:
        return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)

    create_audit_log(
        request=request,
        action='purchase_order_reject',
        model_name='PurchaseOrder',
        object_id=purchase_order.id,
        object_name=purchase_order.po_number,
        object_reference=purchase_order.po_number,
        changes={'status': purchase_order.status, 'reason': purchase_order.rejection_reason},
    )
    return Response(PurchaseOrderSerializer(purchase_order).data)
