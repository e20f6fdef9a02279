from rest_framework import serializers
from .models import CentralStock, StockAdjustment


class CentralStockSerializer(serializers.ModelSerializer):
    part_number = serializers.CharField(source='part.part_number', read_only=True)
    part_name = serializers.CharField(source='part.name', read_only=True)
    available_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = CentralStock
        fields = ['id', 'part', 'part_number', 'part_name', 'quantity', 'reserved_quantity',
                  'available_quantity', 'updated_at']


class StockAdjustmentSerializer(serializers.ModelSerializer):
    part_number = serializers.CharField(source='part.part_number', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = StockAdjustment
        fields = ['id', 'adjustment_type', 'part', 'part_number', 'quantity', 'reason', 'reference',
                  'notes', 'created_by', 'created_by_username', 'created_at']
        read_only_fields = ['created_by', 'created_at']

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError('Quantity must be greater than zero.')
        return value
