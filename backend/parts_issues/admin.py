from django.contrib import admin
from .models import (
    PartsIssueDispatch,
    PartsIssueDispatchLine,
    PartsIssueItem,
    PartsIssueRequest,
    PartsIssueStatusHistory,
)

# Workflow state only changes through the API operations; the admin is for inspection
REQUEST_WORKFLOW_FIELDS = [
    'issue_number', 'job_card', 'service_center', 'service_center_name', 'purchase_order', 'status',
    'total_amount', 'issued_by', 'issued_at',
    'sc_manager_approved', 'sc_manager_approved_by', 'sc_manager_approved_at',
    'sc_manager_rejected', 'sc_manager_rejected_by', 'sc_manager_rejected_at', 'sc_manager_rejection_reason',
    'sent_to_admin_at', 'resend_count',
    'admin_approved', 'admin_approved_by', 'admin_approved_at',
    'admin_rejected', 'admin_rejected_by', 'admin_rejected_at', 'admin_rejection_reason',
    'dispatched_at', 'received_by', 'received_at', 'transport_details',
    'version', 'created_at', 'updated_at',
]


class PartsIssueItemInline(admin.TabularInline):
    model = PartsIssueItem
    extra = 0
    readonly_fields = ['part', 'part_name', 'part_number', 'hsn_code', 'requested_qty', 'approved_qty',
                       'issued_qty', 'received_qty', 'is_warranty', 'serial_number', 'unit_price', 'total_price', 'sub_po_number']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class PartsIssueDispatchInline(admin.TabularInline):
    model = PartsIssueDispatch
    extra = 0
    readonly_fields = ['idempotency_key', 'dispatched_by', 'dispatched_at', 'transport_details']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class PartsIssueStatusHistoryInline(admin.TabularInline):
    model = PartsIssueStatusHistory
    extra = 0
    readonly_fields = ['action', 'from_status', 'to_status', 'actor', 'note', 'changes', 'created_at']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(PartsIssueRequest)
class PartsIssueRequestAdmin(admin.ModelAdmin):
    list_display = ['issue_number', 'job_card', 'service_center', 'status', 'total_amount', 'version', 'created_at']
    list_filter = ['status', 'service_center', 'admin_approved', 'sc_manager_approved']
    search_fields = ['issue_number', 'job_card__job_card_number', 'items__sub_po_number']
    ordering = ['-created_at']
    readonly_fields = REQUEST_WORKFLOW_FIELDS
    inlines = [PartsIssueItemInline, PartsIssueDispatchInline, PartsIssueStatusHistoryInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class PartsIssueDispatchLineInline(admin.TabularInline):
    model = PartsIssueDispatchLine
    extra = 0
    readonly_fields = ['item', 'quantity', 'sub_po_number']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(PartsIssueDispatch)
class PartsIssueDispatchAdmin(admin.ModelAdmin):
    list_display = ['issue', 'idempotency_key', 'dispatched_by', 'dispatched_at']
    search_fields = ['issue__issue_number', 'idempotency_key']
    readonly_fields = ['issue', 'idempotency_key', 'dispatched_by', 'dispatched_at', 'transport_details']
    inlines = [PartsIssueDispatchLineInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
