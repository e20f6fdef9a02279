from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model with additional fields"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    # Technicians and service-center managers belong to one service center; central staff do not
    service_center = models.ForeignKey(
        'locations.ServiceCenter', on_delete=models.SET_NULL, null=True, blank=True, related_name='users'
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    class Meta:
        db_table = 'users'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('view', 'View'),
        ('jobcard_create', 'Job Card Created'),
        ('parts_issue_create', 'Parts Issue Requested'),
        ('parts_issue_sc_approve', 'Parts Issue Approved (Service Center)'),
        ('parts_issue_sc_reject', 'Parts Issue Rejected (Service Center)'),
        ('parts_issue_admin_approve', 'Parts Issue Approved (Admin)'),
        ('parts_issue_admin_reject', 'Parts Issue Rejected (Admin)'),
        ('parts_issue_resend', 'Parts Issue Resent'),
        ('parts_issue_dispatch', 'Parts Dispatched'),
        ('parts_issue_receive', 'Parts Received'),
        ('purchase_order_create', 'Purchase Order Created'),
        ('purchase_order_approve', 'Purchase Order Approved'),
        ('purchase_order_reject', 'Purchase Order Rejected'),
        ('stock_adjust', 'Stock Adjustment'),
        ('stock_issue', 'Stock Removed (Dispatch)'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., issue number, job card number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., issue number, sub-PO number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_audit_created'),
            models.Index(fields=['action'], name='idx_audit_action'),
            models.Index(fields=['model_name'], name='idx_audit_model'),
            models.Index(fields=['object_reference'], name='idx_audit_reference'),
        ]
