from django.core.validators import RegexValidator
from django.db import models

# Location codes are embedded in document numbers, which are hyphen-separated
location_code_validator = RegexValidator(
    r'^[A-Z0-9]+$', 'Code may only contain uppercase letters and digits.'
)


class ServiceCenter(models.Model):
    """Service centers (workshops) that raise job cards and parts requests"""
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=20, unique=True, validators=[location_code_validator])
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.code})"

    class Meta:
        db_table = 'service_centers'
        ordering = ['name']
