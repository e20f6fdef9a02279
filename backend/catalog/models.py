from django.db import models
from decimal import Decimal


class Part(models.Model):
    """Spare part master held by the central store"""
    UNIT_CHOICES = [
        ('pcs', 'Pieces'),
        ('set', 'Set'),
        ('ltr', 'Litre'),
        ('kg', 'Kilogram'),
        ('mtr', 'Metre'),
    ]

    part_number = models.CharField(max_length=100, unique=True, db_index=True)
    name = models.CharField(max_length=200, db_index=True)
    hsn_code = models.CharField(max_length=20, blank=True)
    category = models.CharField(max_length=100, blank=True, db_index=True)
    unit = models.CharField(max_length=10, choices=UNIT_CHOICES, default='pcs')
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.part_number})"

    class Meta:
        db_table = 'parts'
        ordering = ['name']
