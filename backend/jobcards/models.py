from django.db import models
from backend.locations.models import ServiceCenter
from backend.numbering.allocator import JobCardNumber


class JobCard(models.Model):
    """A unit of workshop work on a customer vehicle"""
    STATUS_CHOICES = [
        ('created', 'Created'),
        ('assigned', 'Assigned'),
        ('in_progress', 'In Progress'),
        ('parts_pending', 'Parts Pending'),
        ('completed', 'Completed'),
        ('invoiced', 'Invoiced'),
    ]

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('normal', 'Normal'),
        ('high', 'High'),
        ('critical', 'Critical'),
    ]

    job_card_number = models.CharField(max_length=50, unique=True, editable=False)
    service_center = models.ForeignKey(ServiceCenter, on_delete=models.PROTECT, related_name='job_cards')
    customer_name = models.CharField(max_length=200)
    customer_phone = models.CharField(max_length=20, blank=True)
    vehicle_number = models.CharField(max_length=30, db_index=True)
    vehicle_make = models.CharField(max_length=100, blank=True)
    vehicle_model = models.CharField(max_length=100, blank=True)
    service_type = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='created', db_index=True)
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default='normal')
    assigned_engineer = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_job_cards')
    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, related_name='created_job_cards')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    @property
    def number(self):
        return JobCardNumber.parse(self.job_card_number)

    def __str__(self):
        return self.job_card_number

    class Meta:
        db_table = 'job_cards'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['service_center', 'status'], name='idx_jobcard_sc_status'),
        ]
