"""
Test suite for central stock
"""
from django.test import TestCase
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.roles import INVENTORY_MANAGER, SC_MANAGER
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import CentralStock, StockAdjustment
from backend.inventory.services import (
    InsufficientStockError,
    InventoryError,
    check_availability,
    consume_stock,
    get_available_quantity,
    receive_stock,
)


class StockServiceTests(TestCase):
    """Test stock consumption and receipt"""

    def setUp(self):
        self.user = TestDataFactory.create_user(roles=[INVENTORY_MANAGER])
        self.part = TestDataFactory.create_part(part_number='BP-001', stock=10)

    def test_consume_stock(self):
        adjustment = consume_stock(self.part, 4, user=self.user, reference='PI-SC001-2025-03-0001')
        self.assertEqual(adjustment.adjustment_type, 'out')
        self.assertEqual(adjustment.reason, 'dispatch')
        self.assertEqual(get_available_quantity(self.part), 6)

    def test_consume_more_than_available(self):
        with self.assertRaises(InsufficientStockError) as ctx:
            consume_stock(self.part, 11)
        self.assertEqual(ctx.exception.available, 10)
        self.assertEqual(CentralStock.objects.get(part=self.part).quantity, 10)
        self.assertFalse(StockAdjustment.objects.exists())

    def test_reserved_quantity_is_not_available(self):
        CentralStock.objects.filter(part=self.part).update(reserved_quantity=8)
        with self.assertRaises(InsufficientStockError):
            consume_stock(self.part, 3)

    def test_receive_stock_creates_row(self):
        part = TestDataFactory.create_part()
        receive_stock(part, 7, user=self.user, reference='GRN-1')
        self.assertEqual(get_available_quantity(part), 7)

        with self.assertRaises(InventoryError):
            receive_stock(part, 0)

    def test_check_availability(self):
        other = TestDataFactory.create_part()
        check_availability({self.part: 10, other: 0})
        with self.assertRaises(InsufficientStockError) as ctx:
            check_availability({self.part: 3, other: 1})
        self.assertEqual(ctx.exception.part_number, other.part_number)


class StockAPITests(TestCase):
    """Test central stock endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.storekeeper = TestDataFactory.create_user(roles=[INVENTORY_MANAGER])
        self.manager = TestDataFactory.create_user(roles=[SC_MANAGER])
        self.brake_pad = TestDataFactory.create_part(part_number='BP-001', name='Brake Pad', stock=50)
        self.filter = TestDataFactory.create_part(part_number='OF-010', name='Oil Filter', stock=3)

    def test_list_and_low_stock(self):
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/central-stock/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/v1/central-stock/', {'low_stock': 5})
        self.assertEqual([row['part_number'] for row in response.data['results']], ['OF-010'])

        response = self.client.get('/api/v1/central-stock/', {'low_stock': 'few'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_adjust_stock_in_and_out(self):
        self.client.authenticate_user(self.storekeeper)
        response = self.client.post('/api/v1/stock-adjustments/', {
            'adjustment_type': 'in', 'part': self.filter.id, 'quantity': 7, 'reason': 'purchase',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(CentralStock.objects.get(part=self.filter).quantity, 10)

        response = self.client.post('/api/v1/stock-adjustments/', {
            'adjustment_type': 'out', 'part': self.filter.id, 'quantity': 2, 'reason': 'damaged',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(CentralStock.objects.get(part=self.filter).quantity, 8)

        log = AuditLog.objects.filter(action='stock_adjust').latest('id')
        self.assertEqual(log.changes['new_stock_quantity'], 8)

        response = self.client.get('/api/v1/stock-adjustments/', {'part': self.filter.id})
        self.assertEqual(response.data['count'], 2)

    def test_insufficient_stock_reports_code(self):
        self.client.authenticate_user(self.storekeeper)
        response = self.client.post('/api/v1/stock-adjustments/', {
            'adjustment_type': 'out', 'part': self.filter.id, 'quantity': 4, 'reason': 'damaged',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'insufficient_stock')

    def test_zero_quantity_rejected(self):
        self.client.authenticate_user(self.storekeeper)
        response = self.client.post('/api/v1/stock-adjustments/', {
            'adjustment_type': 'in', 'part': self.filter.id, 'quantity': 0, 'reason': 'purchase',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_workshop_roles_cannot_adjust(self):
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/stock-adjustments/', {
            'adjustment_type': 'in', 'part': self.filter.id, 'quantity': 1, 'reason': 'purchase',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
