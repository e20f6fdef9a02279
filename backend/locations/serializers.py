from rest_framework import serializers
from .models import ServiceCenter


class ServiceCenterSerializer(serializers.ModelSerializer):
    class Meta:
        model = ServiceCenter
        fields = ['id', 'name', 'code', 'address', 'city', 'phone', 'email', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def to_internal_value(self, data):
        # Upper-case before the code validators and the unique check run
        if isinstance(data.get('code'), str):
            data = data.copy()
            data['code'] = data['code'].strip().upper()
        return super().to_internal_value(data)
