from django.db import models
from backend.catalog.models import Part


class CentralStock(models.Model):
    """On-hand quantity of a part at the central store"""
    part = models.OneToOneField(Part, on_delete=models.CASCADE, related_name='central_stock')
    quantity = models.PositiveIntegerField(default=0)
    reserved_quantity = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def available_quantity(self):
        return max(0, self.quantity - self.reserved_quantity)

    def __str__(self):
        return f"{self.part.part_number}: {self.quantity}"

    class Meta:
        db_table = 'central_stock'
        verbose_name_plural = 'central stock'


class StockAdjustment(models.Model):
    """Stock movements at the central store (manual adjustments and dispatches)"""
    ADJUSTMENT_TYPE_CHOICES = [
        ('in', 'Stock In'),
        ('out', 'Stock Out'),
    ]

    REASON_CHOICES = [
        ('purchase', 'Purchase Receipt'),
        ('dispatch', 'Dispatched to Service Center'),
        ('damaged', 'Damaged'),
        ('correction', 'Correction'),
        ('other', 'Other'),
    ]

    adjustment_type = models.CharField(max_length=10, choices=ADJUSTMENT_TYPE_CHOICES)
    part = models.ForeignKey(Part, on_delete=models.CASCADE, related_name='adjustments')
    quantity = models.PositiveIntegerField()
    reason = models.CharField(max_length=50, choices=REASON_CHOICES)
    reference = models.CharField(max_length=100, blank=True, db_index=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_adjustments')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'stock_adjustments'
        ordering = ['-created_at']
