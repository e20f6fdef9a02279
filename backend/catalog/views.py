import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backend.core.roles import user_has_role, CENTRAL_ADMIN, INVENTORY_MANAGER
from backend.core.utils import create_audit_log, paginated_response
from .filters import PartFilter
from .models import Part
from .serializers import PartSerializer

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def part_list_create(request):
    """List parts (filterable, paginated) or create a part (central staff only)"""
    if request.method == 'GET':
        queryset = Part.objects.select_related('central_stock')
        if request.query_params.get('active') is None:
            queryset = queryset.filter(is_active=True)
        part_filter = PartFilter(request.query_params, queryset=queryset)
        return paginated_response(request, part_filter.qs.order_by('name', 'id'), PartSerializer, default_limit=50)

    if not user_has_role(request.user, CENTRAL_ADMIN, INVENTORY_MANAGER):
        return Response({'error': 'Only central staff can add parts'}, status=status.HTTP_403_FORBIDDEN)

    serializer = PartSerializer(data=request.data)
    if serializer.is_valid():
        part = serializer.save()
        create_audit_log(
            request=request,
            action='create',
            model_name='Part',
            object_id=part.id,
            object_name=part.name,
            object_reference=part.part_number,
            changes={'part_number': part.part_number, 'unit_price': str(part.unit_price)},
        )
        logger.info(f"Part {part.part_number} created by {request.user.username}")
        return Response(PartSerializer(part).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def part_detail(request, pk):
    part = get_object_or_404(Part.objects.select_related('central_stock'), pk=pk)

    if request.method == 'GET':
        return Response(PartSerializer(part).data)

    if not user_has_role(request.user, CENTRAL_ADMIN, INVENTORY_MANAGER):
        return Response({'error': 'Only central staff can modify parts'}, status=status.HTTP_403_FORBIDDEN)

    serializer = PartSerializer(part, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='Part',
            object_id=part.id,
            object_name=part.name,
            object_reference=part.part_number,
            changes={key: str(value) for key, value in serializer.validated_data.items()},
        )
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
