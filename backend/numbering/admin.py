from django.contrib import admin
from .models import DocumentSequence


@admin.register(DocumentSequence)
class DocumentSequenceAdmin(admin.ModelAdmin):
    list_display = ['document_type', 'location_code', 'year', 'month', 'current_value', 'updated_at']
    list_filter = ['document_type', 'year']
    search_fields = ['location_code']
    ordering = ['document_type', 'location_code', '-year', '-month']
    readonly_fields = ['updated_at']
