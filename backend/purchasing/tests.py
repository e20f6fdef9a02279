"""
Test suite for purchase orders
Tests: creation, approval and rejection, fulfillment tracking from dispatches
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from backend.core.roles import CENTRAL_ADMIN, INVENTORY_MANAGER, SC_MANAGER
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.parts_issues import workflow
from backend.parts_issues.dispatch import dispatch
from backend.purchasing.fulfillment import calculate_remaining_quantity, fulfillment_summary, refresh_fulfillment_status
from backend.purchasing.models import PurchaseOrder
from backend.purchasing.services import (
    PurchaseOrderError,
    approve_purchase_order,
    reject_purchase_order,
)


class PurchaseOrderServiceTests(TestCase):
    """Test purchase order services"""

    def setUp(self):
        self.service_center = TestDataFactory.create_service_center(code='SC001')
        self.user = TestDataFactory.create_user(roles=[SC_MANAGER], service_center=self.service_center)
        self.admin = TestDataFactory.create_user(roles=[CENTRAL_ADMIN])
        self.part = TestDataFactory.create_part(unit_price=Decimal('40.00'))

    def test_create_prices_from_catalog(self):
        purchase_order = TestDataFactory.create_purchase_order(self.service_center, self.user, [self.part], [3])
        self.assertTrue(purchase_order.po_number.startswith('PO-SC001-'))
        self.assertEqual(purchase_order.status, 'pending')
        self.assertEqual(purchase_order.get_total(), Decimal('120.00'))

    def test_create_validation(self):
        with self.assertRaises(PurchaseOrderError):
            TestDataFactory.create_purchase_order(self.service_center, self.user, [], [])
        with self.assertRaises(PurchaseOrderError):
            TestDataFactory.create_purchase_order(self.service_center, self.user, [self.part], [-1])

        other_center = TestDataFactory.create_service_center()
        job_card = TestDataFactory.create_job_card(other_center)
        with self.assertRaises(PurchaseOrderError):
            TestDataFactory.create_purchase_order(self.service_center, self.user, [self.part], job_card=job_card)

    def test_approve_and_reject_only_from_pending(self):
        purchase_order = TestDataFactory.create_purchase_order(self.service_center, self.user)
        approve_purchase_order(purchase_order.id, self.admin)
        purchase_order.refresh_from_db()
        self.assertEqual(purchase_order.status, 'approved')
        self.assertEqual(purchase_order.approved_by, self.admin)

        with self.assertRaises(PurchaseOrderError):
            approve_purchase_order(purchase_order.id, self.admin)
        with self.assertRaises(PurchaseOrderError):
            reject_purchase_order(purchase_order.id, self.admin, 'late')

    def test_reject_requires_reason(self):
        purchase_order = TestDataFactory.create_purchase_order(self.service_center, self.user)
        with self.assertRaises(PurchaseOrderError):
            reject_purchase_order(purchase_order.id, self.admin, '  ')
        reject_purchase_order(purchase_order.id, self.admin, ' over budget ')
        purchase_order.refresh_from_db()
        self.assertEqual(purchase_order.rejection_reason, 'over budget')


class FulfillmentTests(TestCase):
    """Test fulfillment derived from parts-issue dispatches"""

    def setUp(self):
        self.service_center = TestDataFactory.create_service_center(code='SC001')
        self.technician = TestDataFactory.create_user(service_center=self.service_center)
        self.admin = TestDataFactory.create_user(roles=[CENTRAL_ADMIN])
        self.storekeeper = TestDataFactory.create_user(roles=[INVENTORY_MANAGER])
        self.part = TestDataFactory.create_part(stock=100)
        self.job_card = TestDataFactory.create_job_card(self.service_center)
        self.purchase_order = TestDataFactory.create_purchase_order(
            self.service_center, self.technician, [self.part, self.part], [4, 6]
        )
        approve_purchase_order(self.purchase_order.id, self.admin)

    def dispatch_quantity(self, quantity):
        issue = TestDataFactory.create_parts_issue(
            self.technician, self.job_card, [self.part], [quantity], purchase_order=self.purchase_order
        )
        workflow.sc_approve(issue.id, self.admin)
        workflow.admin_approve(issue.id, self.admin)
        item = issue.items.get()
        dispatch(issue.id, [{'item_id': item.id, 'quantity': quantity}], self.storekeeper)

    def test_remaining_quantity_never_negative(self):
        self.assertEqual(calculate_remaining_quantity(5, 2), 3)
        self.assertEqual(calculate_remaining_quantity(5, 8), 0)

    def test_summary_fills_lines_in_order(self):
        self.dispatch_quantity(5)
        lines = fulfillment_summary(self.purchase_order)
        self.assertEqual([(line['issued_qty'], line['remaining_qty']) for line in lines], [(4, 0), (1, 5)])

        self.purchase_order.refresh_from_db()
        self.assertEqual(self.purchase_order.status, 'partially_fulfilled')

    def test_fulfilled_when_nothing_remains(self):
        self.dispatch_quantity(10)
        self.purchase_order.refresh_from_db()
        self.assertEqual(self.purchase_order.status, 'fulfilled')
        self.assertIsNotNone(self.purchase_order.fulfilled_at)

    def test_pending_orders_are_left_alone(self):
        pending = TestDataFactory.create_purchase_order(self.service_center, self.technician, [self.part])
        self.assertEqual(refresh_fulfillment_status(pending), 'pending')
        self.assertEqual(refresh_fulfillment_status(self.purchase_order), 'approved')


class PurchaseOrderAPITests(TestCase):
    """Test purchase order endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.service_center = TestDataFactory.create_service_center(code='SC001')
        self.other_center = TestDataFactory.create_service_center(code='SC002')
        self.manager = TestDataFactory.create_user(roles=[SC_MANAGER], service_center=self.service_center)
        self.admin = TestDataFactory.create_user(roles=[CENTRAL_ADMIN])
        self.part = TestDataFactory.create_part(unit_price=Decimal('10.00'))

    def test_create_forces_own_service_center(self):
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/purchase-orders/', {
            'service_center': self.other_center.id,
            'items': [{'part': self.part.id, 'quantity': 2}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['service_center_code'], 'SC001')
        self.assertEqual(response.data['total'], '20.00')
        self.assertEqual(response.data['fulfillment'][0]['remaining_qty'], 2)

    def test_create_requires_items(self):
        self.client.authenticate_user(self.manager)
        response = self.client.post('/api/v1/purchase-orders/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_approve_and_reject(self):
        first = TestDataFactory.create_purchase_order(self.service_center, self.manager)
        second = TestDataFactory.create_purchase_order(self.service_center, self.manager)

        self.client.authenticate_user(self.manager)
        response = self.client.patch(f'/api/v1/purchase-orders/{first.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/purchase-orders/{first.id}/approve/')
        self.assertEqual(response.data['status'], 'approved')
        response = self.client.patch(f'/api/v1/purchase-orders/{first.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.patch(f'/api/v1/purchase-orders/{second.id}/reject/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.patch(f'/api/v1/purchase-orders/{second.id}/reject/', {'reason': 'duplicate'}, format='json')
        self.assertEqual(response.data['status'], 'rejected')

    def test_visibility_and_status_filter(self):
        own = TestDataFactory.create_purchase_order(self.service_center, self.manager)
        TestDataFactory.create_purchase_order(self.other_center)

        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/purchase-orders/')
        self.assertEqual([row['id'] for row in response.data['results']], [own.id])

        self.client.authenticate_user(self.admin)
        self.assertEqual(self.client.get('/api/v1/purchase-orders/').data['count'], 2)
        response = self.client.get('/api/v1/purchase-orders/', {'status': 'approved'})
        self.assertEqual(response.data['count'], 0)
        self.assertEqual(PurchaseOrder.objects.filter(status='pending').count(), 2)
