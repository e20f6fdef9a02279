"""Creating parts-issue requests from a job card"""
import logging

from django.db import transaction
from django.utils import timezone

from backend.catalog.models import Part
from backend.numbering.allocator import PARTS_ISSUE, allocate_number
from .exceptions import PartsIssueValidationError
from .models import PartsIssueItem, PartsIssueRequest, PartsIssueStatus, PartsIssueStatusHistory
from .workflow import whole_number

logger = logging.getLogger(__name__)

# Purchase orders that can still have parts issued against them
OPEN_PURCHASE_ORDER_STATUSES = ('approved', 'partially_fulfilled')


def _resolve_part(value):
    if isinstance(value, Part):
        part = value
    else:
        try:
            part = Part.objects.get(pk=value)
        except (Part.DoesNotExist, TypeError, ValueError):
            raise PartsIssueValidationError(f"Part {value!r} does not exist", part=value)
    if not part.is_active:
        raise PartsIssueValidationError(f"Part {part.part_number} is not active", part=part.pk)
    return part


def _parse_quantity(value, index):
    quantity = whole_number(value, f"Item {index}: quantity")
    if quantity <= 0:
        raise PartsIssueValidationError(f"Item {index}: quantity must be greater than zero", index=index)
    return quantity


def validate_items(items):
    """Check request lines and resolve their parts; returns a list of clean dicts"""
    if not items:
        raise PartsIssueValidationError('At least one item is required')

    cleaned = []
    for index, item in enumerate(items, start=1):
        part = _resolve_part(item.get('part'))
        quantity = _parse_quantity(item.get('quantity'), index)
        is_warranty = bool(item.get('is_warranty', False))
        serial_number = (item.get('serial_number') or '').strip()
        if is_warranty and not serial_number:
            raise PartsIssueValidationError(
                f"Item {index}: a serial number is required for warranty parts", index=index
            )
        cleaned.append({
            'part': part,
            'quantity': quantity,
            'is_warranty': is_warranty,
            'serial_number': serial_number,
        })
    return cleaned


def create_request(job_card, items, requested_by, notes=None, purchase_order=None):
    """
    Create a parts-issue request for ``job_card``.

    Args:
        job_card: JobCard the parts are for; its service center owns the request
        items: list of ``{'part', 'quantity', 'is_warranty', 'serial_number'}``
        requested_by: user raising the request
        notes: optional free text
        purchase_order: optional approved PurchaseOrder this request fulfils

    Stock is not reserved at this stage.
    """
    cleaned = validate_items(items)
    service_center = job_card.service_center

    if purchase_order is not None:
        if purchase_order.service_center_id != service_center.id:
            raise PartsIssueValidationError(
                f"Purchase order {purchase_order.po_number} belongs to another service center"
            )
        if purchase_order.status not in OPEN_PURCHASE_ORDER_STATUSES:
            raise PartsIssueValidationError(
                f"Purchase order {purchase_order.po_number} is {purchase_order.status}, not open for issue"
            )

    with transaction.atomic():
        issue = PartsIssueRequest.objects.create(
            issue_number=allocate_number(PARTS_ISSUE, service_center.code),
            job_card=job_card,
            service_center=service_center,
            service_center_name=service_center.name,
            purchase_order=purchase_order,
            status=PartsIssueStatus.PENDING_SC_APPROVAL,
            notes=notes or '',
            issued_by=requested_by,
            issued_at=timezone.now(),
        )
        PartsIssueItem.objects.bulk_create([
            PartsIssueItem(
                issue=issue,
                part=line['part'],
                part_name=line['part'].name,
                part_number=line['part'].part_number,
                hsn_code=line['part'].hsn_code or '',
                requested_qty=line['quantity'],
                approved_qty=line['quantity'],
                is_warranty=line['is_warranty'],
                serial_number=line['serial_number'],
                unit_price=line['part'].unit_price,
            )
            for line in cleaned
        ])
        issue.recalculate_totals()
        issue.save(update_fields=['total_amount'])
        PartsIssueStatusHistory.objects.create(
            issue=issue,
            action='create',
            to_status=issue.status,
            actor=requested_by,
            changes={'items': [{'part': line['part'].part_number, 'quantity': line['quantity']} for line in cleaned]},
        )

    logger.info(
        f"Created parts issue {issue.issue_number} for job card {job_card.job_card_number} "
        f"({len(cleaned)} items, total {issue.total_amount})"
    )
    return issue
