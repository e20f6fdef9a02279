from rest_framework import serializers
from .models import JobCard


class JobCardSerializer(serializers.ModelSerializer):
    service_center_code = serializers.CharField(source='service_center.code', read_only=True)
    service_center_name = serializers.CharField(source='service_center.name', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)
    assigned_engineer_name = serializers.CharField(source='assigned_engineer.display_name', read_only=True, default=None)

    class Meta:
        model = JobCard
        fields = ['id', 'job_card_number', 'service_center', 'service_center_code', 'service_center_name',
                  'customer_name', 'customer_phone', 'vehicle_number', 'vehicle_make', 'vehicle_model',
                  'service_type', 'description', 'status', 'priority', 'assigned_engineer',
                  'assigned_engineer_name', 'created_by', 'created_by_username',
                  'created_at', 'updated_at', 'completed_at']
        read_only_fields = ['job_card_number', 'created_by', 'created_at', 'updated_at', 'completed_at']

    def validate_vehicle_number(self, value):
        return value.strip().upper()

    def validate_service_center(self, value):
        if not value.is_active:
            raise serializers.ValidationError('Service center is inactive.')
        return value
