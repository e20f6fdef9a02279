from decimal import Decimal

from django.db import models
from django.db.models import F, Q

from backend.catalog.models import Part
from backend.core.models import User
from backend.jobcards.models import JobCard
from backend.locations.models import ServiceCenter


class PartsIssueStatus(models.TextChoices):
    PENDING_SC_APPROVAL = 'PENDING_SC_APPROVAL', 'Pending Service Center Approval'
    SC_APPROVED = 'SC_APPROVED', 'Service Center Approved'
    PENDING_ADMIN_APPROVAL = 'PENDING_ADMIN_APPROVAL', 'Pending Admin Approval'
    ADMIN_APPROVED = 'ADMIN_APPROVED', 'Admin Approved'
    DISPATCHED = 'DISPATCHED', 'Dispatched'
    COMPLETED = 'COMPLETED', 'Completed'
    SC_REJECTED = 'SC_REJECTED', 'Service Center Rejected'
    ADMIN_REJECTED = 'ADMIN_REJECTED', 'Admin Rejected'

    @classmethod
    def normalize(cls, value):
        """
        Map a status spelling (current or legacy, any case) to a member.

        Raises ValueError for unknown values.
        """
        key = str(value or '').strip().upper().replace('-', '_').replace(' ', '_')
        if key in cls.values:
            return cls(key)
        if key in LEGACY_STATUS_ALIASES:
            return cls(LEGACY_STATUS_ALIASES[key])
        raise ValueError(f"Unknown parts issue status: {value!r}")


# Spellings still sent by older clients and stored in imported data
LEGACY_STATUS_ALIASES = {
    'PENDING': 'PENDING_SC_APPROVAL',
    'PENDING_APPROVAL': 'PENDING_SC_APPROVAL',
    'SERVICE_MANAGER_APPROVED': 'PENDING_ADMIN_APPROVAL',
    'CIM_APPROVED': 'ADMIN_APPROVED',
    'APPROVED': 'ADMIN_APPROVED',
    'REJECTED': 'ADMIN_REJECTED',
    'ISSUED': 'DISPATCHED',
    'RECEIVED': 'COMPLETED',
}


class PartsIssueRequest(models.Model):
    """A service center's request for parts from the central store, from intake to receipt"""
    issue_number = models.CharField(max_length=50, unique=True, editable=False)
    job_card = models.ForeignKey(JobCard, on_delete=models.PROTECT, related_name='parts_issues')
    service_center = models.ForeignKey(ServiceCenter, on_delete=models.PROTECT, related_name='parts_issues')
    service_center_name = models.CharField(max_length=200, blank=True)
    purchase_order = models.ForeignKey('purchasing.PurchaseOrder', on_delete=models.SET_NULL, null=True, blank=True, related_name='parts_issues')
    status = models.CharField(max_length=30, choices=PartsIssueStatus.choices, default=PartsIssueStatus.PENDING_SC_APPROVAL, db_index=True)
    notes = models.TextField(blank=True)
    transport_details = models.JSONField(default=dict, blank=True)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))

    issued_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='requested_parts_issues')
    issued_at = models.DateTimeField(null=True, blank=True)

    sc_manager_approved = models.BooleanField(default=False)
    sc_manager_approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    sc_manager_approved_at = models.DateTimeField(null=True, blank=True)
    sc_manager_rejected = models.BooleanField(default=False)
    sc_manager_rejected_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    sc_manager_rejected_at = models.DateTimeField(null=True, blank=True)
    sc_manager_rejection_reason = models.TextField(blank=True)

    sent_to_admin_at = models.DateTimeField(null=True, blank=True)
    resend_count = models.PositiveIntegerField(default=0)

    admin_approved = models.BooleanField(default=False)
    admin_approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    admin_approved_at = models.DateTimeField(null=True, blank=True)
    admin_rejected = models.BooleanField(default=False)
    admin_rejected_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    admin_rejected_at = models.DateTimeField(null=True, blank=True)
    admin_rejection_reason = models.TextField(blank=True)

    dispatched_at = models.DateTimeField(null=True, blank=True)
    received_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    received_at = models.DateTimeField(null=True, blank=True)

    # Bumped by every mutation; clients send it back to detect stale writes
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.issue_number

    def recalculate_totals(self):
        """Recompute every item's total_price and the request total_amount (saves items, not the request)"""
        total = Decimal('0.00')
        use_approved = self.admin_approved
        for item in self.items.all():
            item.total_price = item.calculate_total(use_approved)
            item.save(update_fields=['total_price'])
            total += item.total_price
        self.total_amount = total
        return total

    @property
    def is_fully_issued(self):
        return all(item.issued_qty >= item.approved_qty for item in self.items.all())

    @property
    def is_partially_dispatched(self):
        items = list(self.items.all())
        return any(item.issued_qty > 0 for item in items) and \
            any(item.issued_qty < item.approved_qty for item in items)

    @property
    def is_currently_rejected(self):
        """Rejected right now; the sc_manager_rejected and admin_rejected flags keep the history across resends"""
        return self.status in (PartsIssueStatus.SC_REJECTED, PartsIssueStatus.ADMIN_REJECTED)

    @property
    def is_fully_rejected(self):
        """Admin-approved with every quantity cut to zero: nothing will be dispatched"""
        return self.admin_approved and all(item.approved_qty == 0 for item in self.items.all())

    class Meta:
        db_table = 'parts_issue_requests'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['service_center', 'status'], name='idx_pi_sc_status'),
            models.Index(fields=['-created_at'], name='idx_pi_created'),
        ]


class PartsIssueItem(models.Model):
    issue = models.ForeignKey(PartsIssueRequest, on_delete=models.CASCADE, related_name='items')
    part = models.ForeignKey(Part, on_delete=models.PROTECT, related_name='issue_items')
    # Snapshots taken at intake for display on documents
    part_name = models.CharField(max_length=200)
    part_number = models.CharField(max_length=100)
    hsn_code = models.CharField(max_length=20, blank=True)

    requested_qty = models.PositiveIntegerField()
    approved_qty = models.PositiveIntegerField(default=0)
    issued_qty = models.PositiveIntegerField(default=0)
    received_qty = models.PositiveIntegerField(default=0)

    is_warranty = models.BooleanField(default=False)
    serial_number = models.CharField(max_length=100, blank=True)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    sub_po_number = models.CharField(max_length=50, unique=True, null=True, blank=True, editable=False)

    def calculate_total(self, use_approved=True):
        quantity = self.approved_qty if use_approved else self.requested_qty
        return self.unit_price * quantity

    @property
    def remaining_qty(self):
        return self.approved_qty - self.issued_qty

    @property
    def is_sub_po_closed(self):
        return bool(self.sub_po_number) and self.issued_qty >= self.approved_qty

    @property
    def sub_po_display(self):
        """Sub-PO number with the closed marker once the line is fully issued"""
        if not self.sub_po_number:
            return None
        return f"{self.sub_po_number}-C" if self.is_sub_po_closed else self.sub_po_number

    def __str__(self):
        return f"{self.issue.issue_number} / {self.part_number}"

    class Meta:
        db_table = 'parts_issue_items'
        ordering = ['id']
        constraints = [
            models.CheckConstraint(
                condition=Q(approved_qty__lte=F('requested_qty')),
                name='chk_pi_item_approved_lte_requested',
            ),
            models.CheckConstraint(
                condition=Q(issued_qty__lte=F('approved_qty')),
                name='chk_pi_item_issued_lte_approved',
            ),
            models.CheckConstraint(
                condition=Q(received_qty__lte=F('issued_qty')),
                name='chk_pi_item_received_lte_issued',
            ),
        ]


class PartsIssueDispatch(models.Model):
    """One accepted dispatch call against a request"""
    issue = models.ForeignKey(PartsIssueRequest, on_delete=models.CASCADE, related_name='dispatches')
    idempotency_key = models.CharField(max_length=100, null=True, blank=True)
    dispatched_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='parts_dispatches')
    dispatched_at = models.DateTimeField(auto_now_add=True)
    transport_details = models.JSONField(default=dict, blank=True)

    def line_signature(self):
        return sorted((line.item_id, line.quantity) for line in self.lines.all())

    class Meta:
        db_table = 'parts_issue_dispatches'
        ordering = ['dispatched_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['issue', 'idempotency_key'],
                condition=Q(idempotency_key__isnull=False),
                name='uniq_pi_dispatch_idempotency_key',
            ),
        ]


class PartsIssueDispatchLine(models.Model):
    dispatch = models.ForeignKey(PartsIssueDispatch, on_delete=models.CASCADE, related_name='lines')
    item = models.ForeignKey(PartsIssueItem, on_delete=models.CASCADE, related_name='dispatch_lines')
    quantity = models.PositiveIntegerField()
    sub_po_number = models.CharField(max_length=50)

    class Meta:
        db_table = 'parts_issue_dispatch_lines'
        ordering = ['id']


class PartsIssueStatusHistory(models.Model):
    """Every workflow action taken on a request"""
    issue = models.ForeignKey(PartsIssueRequest, on_delete=models.CASCADE, related_name='history')
    action = models.CharField(max_length=30)
    from_status = models.CharField(max_length=30, blank=True)
    to_status = models.CharField(max_length=30)
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='+')
    note = models.TextField(blank=True)
    changes = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'parts_issue_status_history'
        ordering = ['created_at', 'id']
