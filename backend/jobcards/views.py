import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db.models import Q
from backend.core.utils import create_audit_log, paginated_response
from .models import JobCard
from .serializers import JobCardSerializer
from .services import create_job_card

logger = logging.getLogger(__name__)


def visible_job_cards(user):
    queryset = JobCard.objects.select_related('service_center', 'created_by', 'assigned_engineer')
    if user.service_center_id and not user.is_superuser:
        queryset = queryset.filter(service_center_id=user.service_center_id)
    return queryset


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_card_list_create(request):
    """List job cards or open a new one"""
    if request.method == 'GET':
        queryset = visible_job_cards(request.user)

        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        service_center = request.query_params.get('service_center')
        if service_center:
            queryset = queryset.filter(service_center_id=service_center)
        search = request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                Q(job_card_number__icontains=search) |
                Q(vehicle_number__icontains=search) |
                Q(customer_name__icontains=search)
            )
        return paginated_response(request, queryset.order_by('-created_at', '-id'), JobCardSerializer)

    data = request.data.copy()
    # Workshop staff can only open job cards for their own service center
    if request.user.service_center_id and not request.user.is_superuser:
        data['service_center'] = request.user.service_center_id

    serializer = JobCardSerializer(data=data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    fields = dict(serializer.validated_data)
    service_center = fields.pop('service_center')
    job_card = create_job_card(service_center, created_by=request.user, **fields)

    create_audit_log(
        request=request,
        action='jobcard_create',
        model_name='JobCard',
        object_id=job_card.id,
        object_name=job_card.job_card_number,
        object_reference=job_card.job_card_number,
        changes={'service_center': service_center.code, 'vehicle_number': job_card.vehicle_number},
    )
    return Response(JobCardSerializer(job_card).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def job_card_detail(request, pk):
    job_card = get_object_or_404(visible_job_cards(request.user), pk=pk)

    if request.method == 'GET':
        return Response(JobCardSerializer(job_card).data)

    data = request.data.copy()
    data.pop('service_center', None)
    serializer = JobCardSerializer(job_card, data=data, partial=True)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
