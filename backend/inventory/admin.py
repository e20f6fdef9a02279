from django.contrib import admin
from .models import CentralStock, StockAdjustment


@admin.register(CentralStock)
class CentralStockAdmin(admin.ModelAdmin):
    list_display = ['part', 'quantity', 'reserved_quantity', 'updated_at']
    search_fields = ['part__name', 'part__part_number']
    ordering = ['part__name']


@admin.register(StockAdjustment)
class StockAdjustmentAdmin(admin.ModelAdmin):
    list_display = ['part', 'adjustment_type', 'quantity', 'reason', 'reference', 'created_by', 'created_at']
    list_filter = ['adjustment_type', 'reason', 'created_at']
    search_fields = ['part__name', 'part__part_number', 'reference']
    ordering = ['-created_at']
