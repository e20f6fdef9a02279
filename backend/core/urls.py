from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView,
    user_list_create, user_me, audit_log_list, audit_log_detail,
)

urlpatterns = [
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),
    path('users/', user_list_create, name='user-list-create'),
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/<int:pk>/', audit_log_detail, name='audit-log-detail'),
]
