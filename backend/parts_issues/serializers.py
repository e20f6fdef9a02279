from rest_framework import serializers
from backend.catalog.models import Part
from backend.jobcards.models import JobCard
from backend.purchasing.models import PurchaseOrder
from .models import (
    PartsIssueDispatch,
    PartsIssueDispatchLine,
    PartsIssueItem,
    PartsIssueRequest,
    PartsIssueStatusHistory,
)
from .projection import project


class PartsIssueItemSerializer(serializers.ModelSerializer):
    remaining_qty = serializers.IntegerField(read_only=True)
    sub_po_display = serializers.CharField(read_only=True)
    is_sub_po_closed = serializers.BooleanField(read_only=True)

    class Meta:
        model = PartsIssueItem
        fields = [
            'id', 'part', 'part_name', 'part_number', 'hsn_code',
            'requested_qty', 'approved_qty', 'issued_qty', 'received_qty', 'remaining_qty',
            'is_warranty', 'serial_number', 'unit_price', 'total_price',
            'sub_po_number', 'sub_po_display', 'is_sub_po_closed',
        ]
        read_only_fields = fields


class PartsIssueDispatchLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = PartsIssueDispatchLine
        fields = ['item', 'quantity', 'sub_po_number']


class PartsIssueDispatchSerializer(serializers.ModelSerializer):
    lines = PartsIssueDispatchLineSerializer(many=True, read_only=True)
    dispatched_by_username = serializers.CharField(source='dispatched_by.username', read_only=True, default=None)

    class Meta:
        model = PartsIssueDispatch
        fields = ['id', 'idempotency_key', 'dispatched_by', 'dispatched_by_username',
                  'dispatched_at', 'transport_details', 'lines']


class PartsIssueStatusHistorySerializer(serializers.ModelSerializer):
    actor_username = serializers.CharField(source='actor.username', read_only=True, default=None)

    class Meta:
        model = PartsIssueStatusHistory
        fields = ['id', 'action', 'from_status', 'to_status', 'actor', 'actor_username',
                  'note', 'changes', 'created_at']


class PartsIssueRequestSerializer(serializers.ModelSerializer):
    items = PartsIssueItemSerializer(many=True, read_only=True)
    service_center_code = serializers.CharField(source='service_center.code', read_only=True)
    job_card_number = serializers.CharField(source='job_card.job_card_number', read_only=True)
    po_number = serializers.CharField(source='purchase_order.po_number', read_only=True, default=None)
    issued_by_username = serializers.CharField(source='issued_by.username', read_only=True, default=None)
    is_currently_rejected = serializers.BooleanField(read_only=True)
    is_fully_rejected = serializers.BooleanField(read_only=True)
    is_partially_dispatched = serializers.BooleanField(read_only=True)
    projection = serializers.SerializerMethodField()

    class Meta:
        model = PartsIssueRequest
        fields = [
            'id', 'issue_number', 'job_card', 'job_card_number',
            'service_center', 'service_center_code', 'service_center_name',
            'purchase_order', 'po_number', 'status', 'notes', 'transport_details', 'total_amount',
            'issued_by', 'issued_by_username', 'issued_at',
            'sc_manager_approved', 'sc_manager_approved_by', 'sc_manager_approved_at',
            'sc_manager_rejected', 'sc_manager_rejected_by', 'sc_manager_rejected_at',
            'sc_manager_rejection_reason', 'sent_to_admin_at', 'resend_count',
            'admin_approved', 'admin_approved_by', 'admin_approved_at',
            'admin_rejected', 'admin_rejected_by', 'admin_rejected_at', 'admin_rejection_reason',
            'dispatched_at', 'received_by', 'received_at',
            'version', 'created_at', 'updated_at',
            'is_currently_rejected', 'is_fully_rejected', 'is_partially_dispatched', 'items', 'projection',
        ]
        read_only_fields = fields

    def get_projection(self, obj):
        return project(obj)


class PartsIssueDetailSerializer(PartsIssueRequestSerializer):
    dispatches = PartsIssueDispatchSerializer(many=True, read_only=True)

    class Meta(PartsIssueRequestSerializer.Meta):
        fields = PartsIssueRequestSerializer.Meta.fields + ['dispatches']
        read_only_fields = fields


class PartsIssueItemInputSerializer(serializers.Serializer):
    part = serializers.PrimaryKeyRelatedField(queryset=Part.objects.all())
    quantity = serializers.IntegerField()
    is_warranty = serializers.BooleanField(required=False, default=False)
    serial_number = serializers.CharField(required=False, allow_blank=True, default='')


class PartsIssueCreateSerializer(serializers.Serializer):
    """Shape check for intake; business rules are enforced by create_request"""
    job_card = serializers.PrimaryKeyRelatedField(queryset=JobCard.objects.select_related('service_center'))
    items = PartsIssueItemInputSerializer(many=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    purchase_order = serializers.PrimaryKeyRelatedField(
        queryset=PurchaseOrder.objects.all(), required=False, allow_null=True
    )


class DispatchLineInputSerializer(serializers.Serializer):
    item_id = serializers.IntegerField()
    quantity = serializers.IntegerField()

    def to_internal_value(self, data):
        # Web clients send camelCase ``itemId``
        if isinstance(data, dict) and 'item_id' not in data and 'itemId' in data:
            data = {**data, 'item_id': data['itemId']}
        return super().to_internal_value(data)


class DispatchInputSerializer(serializers.Serializer):
    """``items`` carries the dispatch lines; ``lines`` is accepted as an older spelling"""
    items = DispatchLineInputSerializer(many=True, required=False)
    lines = DispatchLineInputSerializer(many=True, required=False)
    idempotency_key = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    transport_details = serializers.DictField(required=False, default=dict)

    def validate(self, attrs):
        lines = attrs.pop('lines', None)
        if 'items' not in attrs:
            if lines is None:
                raise serializers.ValidationError({'items': ['This field is required.']})
            attrs['items'] = lines
        return attrs
