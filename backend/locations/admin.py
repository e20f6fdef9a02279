from django.contrib import admin
from .models import ServiceCenter


@admin.register(ServiceCenter)
class ServiceCenterAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'city', 'phone', 'email', 'is_active', 'created_at']
    list_filter = ['is_active', 'city']
    search_fields = ['name', 'code', 'city', 'email']
    ordering = ['name']
