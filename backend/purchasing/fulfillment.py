"""
Purchase-order fulfillment, derived from the parts issues linked to an order.

Dispatch lines are the source of truth for what left the central store: the
issued quantity of a PO line is the sum of dispatched quantities of parts-issue
items for the same part on issues linked to that order.
"""
import logging

from django.db.models import Sum
from django.utils import timezone

from backend.parts_issues.models import PartsIssueDispatchLine

logger = logging.getLogger(__name__)

# Orders in these states track fulfillment; pending and rejected orders do not
FULFILLMENT_STATUSES = ('approved', 'partially_fulfilled', 'fulfilled')


def issued_quantities_by_part(purchase_order):
    rows = (
        PartsIssueDispatchLine.objects
        .filter(item__issue__purchase_order=purchase_order)
        .values('item__part_id')
        .annotate(total=Sum('quantity'))
    )
    return {row['item__part_id']: row['total'] or 0 for row in rows}


def calculate_remaining_quantity(requested_qty, issued_qty):
    return max(0, requested_qty - issued_qty)


def fulfillment_summary(purchase_order):
    """
    Per-line requested / issued / remaining quantities.

    When a part appears on several PO lines, issued quantity fills them in
    line order.
    """
    issued_by_part = issued_quantities_by_part(purchase_order)
    lines = []
    for item in purchase_order.items.all():
        available = issued_by_part.get(item.part_id, 0)
        issued = min(available, item.requested_qty)
        issued_by_part[item.part_id] = available - issued
        lines.append({
            'item_id': item.id,
            'part': item.part_id,
            'requested_qty': item.requested_qty,
            'issued_qty': issued,
            'remaining_qty': calculate_remaining_quantity(item.requested_qty, issued),
        })
    return lines


def refresh_fulfillment_status(purchase_order):
    """Move an approved order to partially_fulfilled / fulfilled after a dispatch"""
    if purchase_order.status not in FULFILLMENT_STATUSES:
        return purchase_order.status

    lines = fulfillment_summary(purchase_order)
    if lines and all(line['remaining_qty'] == 0 for line in lines):
        new_status = 'fulfilled'
    elif any(line['issued_qty'] > 0 for line in lines):
        new_status = 'partially_fulfilled'
    else:
        new_status = 'approved'

    if new_status != purchase_order.status:
        logger.info(f"Purchase order {purchase_order.po_number}: {purchase_order.status} -> {new_status}")
        purchase_order.status = new_status
        purchase_order.fulfilled_at = timezone.now() if new_status == 'fulfilled' else None
        purchase_order.save(update_fields=['status', 'fulfilled_at', 'updated_at'])
    return new_status
