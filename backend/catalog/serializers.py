from rest_framework import serializers
from .models import Part


class PartSerializer(serializers.ModelSerializer):
    available_quantity = serializers.SerializerMethodField()

    class Meta:
        model = Part
        fields = ['id', 'part_number', 'name', 'hsn_code', 'category', 'unit', 'unit_price',
                  'description', 'is_active', 'available_quantity', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_available_quantity(self, obj):
        stock = getattr(obj, 'central_stock', None)
        return stock.available_quantity if stock else 0

    def to_internal_value(self, data):
        # Normalise before the unique check runs
        if isinstance(data.get('part_number'), str):
            data = data.copy()
            data['part_number'] = data['part_number'].strip().upper()
        return super().to_internal_value(data)

    def validate_unit_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Unit price cannot be negative.')
        return value
