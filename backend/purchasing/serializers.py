from rest_framework import serializers
from backend.catalog.models import Part
from backend.jobcards.models import JobCard
from backend.locations.models import ServiceCenter
from .models import PurchaseOrder, PurchaseOrderItem
from .fulfillment import fulfillment_summary


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    part_name = serializers.CharField(source='part.name', read_only=True)
    part_number = serializers.CharField(source='part.part_number', read_only=True)
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrderItem
        fields = ['id', 'part', 'part_name', 'part_number', 'requested_qty', 'unit_price', 'line_total', 'notes']

    def get_line_total(self, obj):
        return str(obj.get_line_total())


class PurchaseOrderSerializer(serializers.ModelSerializer):
    items = PurchaseOrderItemSerializer(many=True, read_only=True)
    service_center_code = serializers.CharField(source='service_center.code', read_only=True)
    service_center_name = serializers.CharField(source='service_center.name', read_only=True)
    job_card_number = serializers.CharField(source='job_card.job_card_number', read_only=True, default=None)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)
    total = serializers.SerializerMethodField()
    fulfillment = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'po_number', 'service_center', 'service_center_code', 'service_center_name',
            'job_card', 'job_card_number', 'status', 'priority', 'notes',
            'created_by', 'created_by_username', 'approved_by', 'approved_at',
            'rejected_by', 'rejected_at', 'rejection_reason', 'fulfilled_at',
            'created_at', 'updated_at', 'items', 'total', 'fulfillment',
        ]

    def get_total(self, obj):
        return str(obj.get_total())

    def get_fulfillment(self, obj):
        return fulfillment_summary(obj)


class PurchaseOrderItemInputSerializer(serializers.Serializer):
    part = serializers.PrimaryKeyRelatedField(queryset=Part.objects.filter(is_active=True))
    quantity = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class PurchaseOrderCreateSerializer(serializers.Serializer):
    service_center = serializers.PrimaryKeyRelatedField(queryset=ServiceCenter.objects.filter(is_active=True))
    job_card = serializers.PrimaryKeyRelatedField(queryset=JobCard.objects.all(), required=False, allow_null=True)
    priority = serializers.ChoiceField(choices=PurchaseOrder.PRIORITY_CHOICES, default='normal')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    items = PurchaseOrderItemInputSerializer(many=True, allow_empty=False)
