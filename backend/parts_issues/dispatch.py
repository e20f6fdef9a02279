"""
Dispatching approved parts from the central store and receiving them at the
service center.

A dispatch is all-or-nothing: every line is validated against the item's
remaining approved quantity before anything is written, and the whole call
runs in one transaction with the request row locked.
"""
import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from backend.inventory import services as stock_services
from backend.numbering.allocator import SUB_PO, allocate_number
from backend.purchasing.fulfillment import refresh_fulfillment_status
from backend.purchasing.models import PurchaseOrder
from .exceptions import (
    InsufficientStockError,
    PartsIssueValidationError,
    QuantityExceededError,
)
from .models import PartsIssueDispatch, PartsIssueDispatchLine, PartsIssueStatus
from .workflow import check_version, load_for_update, require_status, save_transition, whole_number

logger = logging.getLogger(__name__)

DISPATCHABLE_STATUSES = (PartsIssueStatus.ADMIN_APPROVED, PartsIssueStatus.DISPATCHED)


def parse_lines(lines):
    """Normalise ``[{'item_id', 'quantity'}]`` into ``[(item_id, quantity)]``"""
    if not lines:
        raise PartsIssueValidationError('At least one dispatch line is required')

    parsed = []
    seen = set()
    for line in lines:
        item_id = whole_number(line.get('item_id'), 'item_id')
        quantity = whole_number(line.get('quantity'), f"Quantity for item {item_id}")
        if quantity <= 0:
            raise PartsIssueValidationError(
                f"Quantity for item {item_id} must be greater than zero", item_id=item_id
            )
        if item_id in seen:
            raise PartsIssueValidationError(f"Item {item_id} appears more than once", item_id=item_id)
        seen.add(item_id)
        parsed.append((item_id, quantity))
    return parsed


def _replay(issue, idempotency_key, parsed):
    """Return the earlier dispatch made under ``idempotency_key``, if any"""
    previous = issue.dispatches.filter(idempotency_key=idempotency_key).first()
    if previous is None:
        return None
    if previous.line_signature() != sorted(parsed):
        raise PartsIssueValidationError(
            f"Idempotency key {idempotency_key!r} was already used with different lines",
            idempotency_key=idempotency_key,
        )
    return previous


def _consume_stock(item, quantity, actor, reference):
    try:
        stock_services.consume_stock(item.part, quantity, user=actor, reference=reference)
    except stock_services.InsufficientStockError as e:
        raise InsufficientStockError(
            str(e), part_number=e.part_number, requested=e.requested, available=e.available
        ) from e


def dispatch(issue_id, lines, actor, idempotency_key=None, transport_details=None, expected_version=None):
    """
    Issue approved quantities to the service center.

    Each line adds to the item's ``issued_qty``; the first dispatch of an item
    allocates its sub-PO number, which never changes afterwards. When every
    item is fully issued the request becomes DISPATCHED.

    A repeated call with the same ``idempotency_key`` and the same lines
    returns the request unchanged (``issue.replayed`` is True). Without a key a
    replay fails the headroom check with QuantityExceededError.
    """
    parsed = parse_lines(lines)

    with transaction.atomic():
        issue = load_for_update(issue_id)

        if idempotency_key and _replay(issue, idempotency_key, parsed):
            logger.info(f"Dispatch replay for {issue.issue_number} (key {idempotency_key})")
            issue.replayed = True
            return issue

        check_version(issue, expected_version)
        require_status(issue, DISPATCHABLE_STATUSES, 'dispatch')

        items = {item.id: item for item in issue.items.select_related('part')}
        for item_id, quantity in parsed:
            item = items.get(item_id)
            if item is None:
                raise PartsIssueValidationError(f"Item {item_id} does not belong to this request", item_id=item_id)
            if quantity > item.remaining_qty:
                raise QuantityExceededError(
                    f"Cannot dispatch {quantity} x {item.part_number}: only {item.remaining_qty} remaining",
                    item_id=item_id,
                    requested=quantity,
                    remaining=item.remaining_qty,
                )

        record = PartsIssueDispatch.objects.create(
            issue=issue,
            idempotency_key=idempotency_key or None,
            dispatched_by=actor,
            transport_details=transport_details or {},
        )

        service_center_code = issue.service_center.code
        changes = []
        for item_id, quantity in parsed:
            item = items[item_id]
            if settings.PARTS_ISSUE_STOCK_CONTROL:
                _consume_stock(item, quantity, actor, issue.issue_number)

            item.issued_qty += quantity
            fields = ['issued_qty']
            if not item.sub_po_number:
                item.sub_po_number = allocate_number(SUB_PO, service_center_code)
                fields.append('sub_po_number')
            item.save(update_fields=fields)

            PartsIssueDispatchLine.objects.create(
                dispatch=record, item=item, quantity=quantity, sub_po_number=item.sub_po_number
            )
            changes.append({'item_id': item_id, 'quantity': quantity, 'sub_po_number': item.sub_po_number})

        from_status = issue.status
        fields = []
        if transport_details:
            issue.transport_details = {**(issue.transport_details or {}), **transport_details}
            fields.append('transport_details')
        if all(item.issued_qty >= item.approved_qty for item in items.values()):
            issue.status = PartsIssueStatus.DISPATCHED
            issue.dispatched_at = timezone.now()
            fields.extend(['status', 'dispatched_at'])
        save_transition(issue, fields, 'dispatch', from_status, actor, changes={'lines': changes})

        if issue.purchase_order_id:
            purchase_order = PurchaseOrder.objects.select_for_update().get(pk=issue.purchase_order_id)
            refresh_fulfillment_status(purchase_order)

    issue.replayed = False
    logger.info(
        f"Dispatched {sum(q for _, q in parsed)} units on {issue.issue_number} "
        f"({len(parsed)} lines), status {issue.status}"
    )
    return issue


def receive(issue_id, actor, received_quantities=None, expected_version=None):
    """
    Confirm receipt at the service center; DISPATCHED -> COMPLETED.

    Items missing from ``received_quantities`` are received in full.
    """
    with transaction.atomic():
        issue = load_for_update(issue_id)
        check_version(issue, expected_version)
        require_status(issue, (PartsIssueStatus.DISPATCHED,), 'receive')

        items = {item.id: item for item in issue.items.all()}
        quantities = {}
        for raw_id, raw_qty in (received_quantities or {}).items():
            item_id = whole_number(raw_id, 'item_id')
            if item_id not in items:
                raise PartsIssueValidationError(f"Item {item_id} does not belong to this request", item_id=item_id)
            quantity = whole_number(raw_qty, f"Quantity for item {item_id}")
            if quantity < 0:
                raise PartsIssueValidationError(f"Quantity for item {item_id} cannot be negative", item_id=item_id)
            if quantity > items[item_id].issued_qty:
                raise QuantityExceededError(
                    f"Cannot receive {quantity} of item {item_id}: only {items[item_id].issued_qty} issued",
                    item_id=item_id,
                )
            quantities[item_id] = quantity

        changes = {}
        for item in items.values():
            item.received_qty = quantities.get(item.id, item.issued_qty)
            item.save(update_fields=['received_qty'])
            changes[str(item.id)] = item.received_qty

        from_status = issue.status
        issue.status = PartsIssueStatus.COMPLETED
        issue.received_by = actor
        issue.received_at = timezone.now()
        save_transition(
            issue, ['status', 'received_by', 'received_at'], 'receive', from_status, actor,
            changes={'received_qty': changes},
        )

    logger.info(f"Parts issue {issue.issue_number} received by {actor}")
    return issue
