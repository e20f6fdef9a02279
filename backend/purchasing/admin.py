from django.contrib import admin
from .models import PurchaseOrder, PurchaseOrderItem


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['po_number', 'service_center', 'status', 'priority', 'created_by', 'created_at']
    list_filter = ['status', 'priority', 'service_center']
    search_fields = ['po_number', 'notes']
    ordering = ['-created_at']
    readonly_fields = ['po_number', 'created_at', 'updated_at']
    inlines = [PurchaseOrderItemInline]
