from django.contrib import admin
from .models import Part


@admin.register(Part)
class PartAdmin(admin.ModelAdmin):
    list_display = ['part_number', 'name', 'category', 'hsn_code', 'unit', 'unit_price', 'is_active']
    list_filter = ['is_active', 'category', 'unit']
    search_fields = ['part_number', 'name', 'hsn_code']
    ordering = ['name']
