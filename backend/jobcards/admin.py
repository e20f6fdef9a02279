from django.contrib import admin
from .models import JobCard


@admin.register(JobCard)
class JobCardAdmin(admin.ModelAdmin):
    list_display = ['job_card_number', 'service_center', 'vehicle_number', 'customer_name', 'status', 'priority', 'created_at']
    list_filter = ['status', 'priority', 'service_center']
    search_fields = ['job_card_number', 'vehicle_number', 'customer_name']
    ordering = ['-created_at']
    readonly_fields = ['job_card_number', 'created_at', 'updated_at']
