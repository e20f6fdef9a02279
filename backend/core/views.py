from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, IsAdminUser
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from .models import AuditLog
from .roles import get_user_roles, user_has_role, CENTRAL_ADMIN, INVENTORY_MANAGER
from .serializers import UserSerializer, UserCreateSerializer, AuditLogSerializer
from .utils import paginated_response

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['groups'] = list(user.groups.values_list('name', flat=True))
        token['service_center'] = user.service_center_id
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except User.DoesNotExist:
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def user_list_create(request):
    """List all users or create a new user"""
    if request.method == 'GET':
        users = User.objects.select_related('service_center').prefetch_related('groups').order_by('username')
        serializer = UserSerializer(users, many=True)
        return Response(serializer.data)
    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with roles and the workflow capabilities they unlock"""
    user = request.user
    user_data = UserSerializer(user).data
    roles = get_user_roles(user)
    user_data['roles'] = sorted(roles)
    user_data['is_central'] = user_has_role(user, CENTRAL_ADMIN, INVENTORY_MANAGER)
    user_data['can_approve_admin'] = user_has_role(user, CENTRAL_ADMIN)
    user_data['can_dispatch'] = user_has_role(user, INVENTORY_MANAGER, CENTRAL_ADMIN)
    return Response(user_data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs; non-staff users only see their own entries"""
    queryset = AuditLog.objects.select_related('user')

    if not request.user.is_staff:
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action')
    if action_filter:
        queryset = queryset.filter(action=action_filter)
    model_filter = request.query_params.get('model')
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)
    reference = request.query_params.get('reference')
    if reference:
        queryset = queryset.filter(object_reference=reference)
    date_from = request.query_params.get('date_from')
    date_to = request.query_params.get('date_to')
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    return paginated_response(request, queryset.order_by('-created_at'), AuditLogSerializer, default_limit=50)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    audit_log = get_object_or_404(AuditLog, pk=pk)
    if not request.user.is_staff and audit_log.user != request.user:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    return Response(AuditLogSerializer(audit_log).data)
