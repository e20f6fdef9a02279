import logging

from django.db import transaction
from django.utils import timezone

from backend.numbering.allocator import PURCHASE_ORDER, allocate_number
from .models import PurchaseOrder, PurchaseOrderItem

logger = logging.getLogger(__name__)


class PurchaseOrderError(Exception):
    pass


@transaction.atomic
def create_purchase_order(service_center, items, created_by=None, job_card=None, priority='normal', notes=''):
    """
    Create a purchase order.

    Args:
        items: list of dicts with ``part`` (Part) and ``quantity``; unit price is
            taken from the catalog
    """
    if not items:
        raise PurchaseOrderError('At least one item is required')
    if job_card is not None and job_card.service_center_id != service_center.id:
        raise PurchaseOrderError('Job card belongs to a different service center')

    purchase_order = PurchaseOrder.objects.create(
        po_number=allocate_number(PURCHASE_ORDER, service_center.code),
        service_center=service_center,
        job_card=job_card,
        priority=priority,
        notes=notes,
        created_by=created_by,
    )
    for item in items:
        quantity = item['quantity']
        if quantity <= 0:
            raise PurchaseOrderError(f"Quantity must be greater than 0 for part {item['part'].part_number}")
        PurchaseOrderItem.objects.create(
            purchase_order=purchase_order,
            part=item['part'],
            requested_qty=quantity,
            unit_price=item['part'].unit_price,
            notes=item.get('notes', ''),
        )
    logger.info(f"Purchase order {purchase_order.po_number} created with {len(items)} items")
    return purchase_order


@transaction.atomic
def approve_purchase_order(purchase_order_id, actor):
    purchase_order = PurchaseOrder.objects.select_for_update().get(pk=purchase_order_id)
    if purchase_order.status != 'pending':
        raise PurchaseOrderError(f"Cannot approve a purchase order in status '{purchase_order.status}'")
    purchase_order.status = 'approved'
    purchase_order.approved_by = actor
    purchase_order.approved_at = timezone.now()
    purchase_order.save(update_fields=['status', 'approved_by', 'approved_at', 'updated_at'])
    return purchase_order


@transaction.atomic
def reject_purchase_order(purchase_order_id, actor, reason):
    if not reason or not reason.strip():
        raise PurchaseOrderError('A rejection reason is required')
    purchase_order = PurchaseOrder.objects.select_for_update().get(pk=purchase_order_id)
    if purchase_order.status != 'pending':
        raise PurchaseOrderError(f"Cannot reject a purchase order in status '{purchase_order.status}'")
    purchase_order.status = 'rejected'
    purchase_order.rejected_by = actor
    purchase_order.rejected_at = timezone.now()
    purchase_order.rejection_reason = reason.strip()
    purchase_order.save(update_fields=['status', 'rejected_by', 'rejected_at', 'rejection_reason', 'updated_at'])
    return purchase_order
