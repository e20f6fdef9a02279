"""
Central stock operations.

Stock rows are locked with ``select_for_update`` and changed with ``F()``
expressions, so callers must run inside ``transaction.atomic()`` to hold the
lock until their own writes commit.
"""
import logging

from django.db import transaction
from django.db.models import F

from .models import CentralStock, StockAdjustment

logger = logging.getLogger(__name__)


class InventoryError(Exception):
    """Base exception for central stock operations"""
    pass


class InsufficientStockError(InventoryError):
    """Raised when requested quantity exceeds available stock"""
    def __init__(self, part_number, requested, available):
        self.part_number = part_number
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for {part_number}: requested {requested}, available {available}")


def get_available_quantity(part):
    stock = CentralStock.objects.filter(part=part).first()
    return stock.available_quantity if stock else 0


def check_availability(requirements):
    """
    Raise InsufficientStockError for the first part whose requirement exceeds stock.

    Args:
        requirements: dict mapping Part -> required quantity
    """
    for part, required in requirements.items():
        if required <= 0:
            continue
        available = get_available_quantity(part)
        if required > available:
            raise InsufficientStockError(part.part_number, required, available)


@transaction.atomic
def consume_stock(part, quantity, user=None, reference='', reason='dispatch'):
    """Remove ``quantity`` of ``part`` from central stock, recording an adjustment"""
    stock, _ = CentralStock.objects.select_for_update().get_or_create(part=part)
    if quantity > stock.available_quantity:
        raise InsufficientStockError(part.part_number, quantity, stock.available_quantity)

    CentralStock.objects.filter(pk=stock.pk).update(quantity=F('quantity') - quantity)
    adjustment = StockAdjustment.objects.create(
        adjustment_type='out',
        part=part,
        quantity=quantity,
        reason=reason,
        reference=reference,
        created_by=user,
    )
    logger.info(f"Consumed {quantity} x {part.part_number} from central stock ({reference or reason})")
    return adjustment


@transaction.atomic
def receive_stock(part, quantity, user=None, reference='', reason='purchase', notes=''):
    """Add ``quantity`` of ``part`` to central stock, recording an adjustment"""
    if quantity <= 0:
        raise InventoryError('Quantity must be greater than zero')
    stock, _ = CentralStock.objects.select_for_update().get_or_create(part=part)
    CentralStock.objects.filter(pk=stock.pk).update(quantity=F('quantity') + quantity)
    return StockAdjustment.objects.create(
        adjustment_type='in',
        part=part,
        quantity=quantity,
        reason=reason,
        reference=reference,
        notes=notes,
        created_by=user,
    )
