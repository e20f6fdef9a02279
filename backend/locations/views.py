import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backend.core.roles import user_has_role, CENTRAL_ADMIN
from .models import ServiceCenter
from .serializers import ServiceCenterSerializer

logger = logging.getLogger('backend.locations')


def visible_service_centers(user):
    """Central staff see every service center; workshop staff only their own"""
    queryset = ServiceCenter.objects.all()
    if user.service_center_id and not user.is_superuser:
        queryset = queryset.filter(pk=user.service_center_id)
    return queryset


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def service_center_list_create(request):
    """List service centers or create one (create requires central admin)"""
    if request.method == 'GET':
        queryset = visible_service_centers(request.user)
        if request.query_params.get('include_inactive') != 'true':
            queryset = queryset.filter(is_active=True)
        serializer = ServiceCenterSerializer(queryset, many=True)
        return Response(serializer.data)

    if not user_has_role(request.user, CENTRAL_ADMIN):
        logger.warning(f"User {request.user.username} attempted to create a service center without admin role")
        return Response({'error': 'Only central administrators can create service centers'},
                        status=status.HTTP_403_FORBIDDEN)

    serializer = ServiceCenterSerializer(data=request.data)
    if serializer.is_valid():
        service_center = serializer.save()
        logger.info(f"Service center '{service_center.code}' created by {request.user.username}")
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def service_center_detail(request, pk):
    """Retrieve or update a service center (update requires central admin)"""
    service_center = get_object_or_404(visible_service_centers(request.user), pk=pk)

    if request.method == 'GET':
        return Response(ServiceCenterSerializer(service_center).data)

    if not user_has_role(request.user, CENTRAL_ADMIN):
        return Response({'error': 'Only central administrators can modify service centers'},
                        status=status.HTTP_403_FORBIDDEN)

    data = request.data.copy()
    if 'code' in data and data['code'] != service_center.code:
        # Issued document numbers already embed the current code
        return Response({'error': 'Service center code cannot be changed'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = ServiceCenterSerializer(service_center, data=data, partial=True)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
