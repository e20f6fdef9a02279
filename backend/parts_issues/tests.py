"""
Test suite for the parts-issue workflow
Tests: intake, approvals, dispatch and receipt, projection, API endpoints, roles and admin
"""
from decimal import Decimal
from django.contrib import admin
from django.contrib.auth import get_user_model
from django.test import RequestFactory, TestCase, override_settings
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.roles import TECHNICIAN, SC_MANAGER, CENTRAL_ADMIN, INVENTORY_MANAGER
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.inventory.models import CentralStock, StockAdjustment
from backend.purchasing.services import approve_purchase_order
from backend.parts_issues import workflow
from backend.parts_issues.dispatch import dispatch, receive
from backend.parts_issues.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    InvalidStateError,
    PartsIssueValidationError,
    QuantityExceededError,
)
from backend.parts_issues.intake import create_request
from backend.parts_issues.models import PartsIssueDispatch, PartsIssueRequest, PartsIssueStatus
from backend.parts_issues.projection import project, summarize
from backend.parts_issues.serializers import PartsIssueRequestSerializer


class PartsIssueTestMixin:
    """Service center SC001 with one user per role and part BP-001 at 250.00"""

    def setUp(self):
        self.service_center = TestDataFactory.create_service_center(name='Main Workshop', code='SC001')
        self.technician = TestDataFactory.create_user(roles=[TECHNICIAN], service_center=self.service_center)
        self.manager = TestDataFactory.create_user(roles=[SC_MANAGER], service_center=self.service_center)
        self.admin = TestDataFactory.create_user(roles=[CENTRAL_ADMIN])
        self.storekeeper = TestDataFactory.create_user(roles=[INVENTORY_MANAGER])
        self.part = TestDataFactory.create_part(part_number='BP-001', name='Brake Pad', unit_price=Decimal('250.00'), stock=100)
        self.job_card = TestDataFactory.create_job_card(self.service_center, user=self.technician)

    def create_issue(self, parts=None, quantities=None, **kwargs):
        return TestDataFactory.create_parts_issue(
            self.technician, job_card=self.job_card, parts=parts or [self.part], quantities=quantities or [10], **kwargs
        )

    def pending_admin_issue(self, **kwargs):
        issue = self.create_issue(**kwargs)
        return workflow.sc_approve(issue.id, self.manager)

    def approved_issue(self, approved_quantities=None, **kwargs):
        issue = self.pending_admin_issue(**kwargs)
        return workflow.admin_approve(issue.id, self.admin, approved_quantities)


class IntakeTests(PartsIssueTestMixin, TestCase):
    """Test creating parts-issue requests"""

    def test_create_request_snapshots_part_and_allocates_number(self):
        issue = self.create_issue()
        item = issue.items.get()

        self.assertRegex(issue.issue_number, r'^PI-SC001-\d{4}-\d{2}-0001$')
        self.assertEqual(issue.status, PartsIssueStatus.PENDING_SC_APPROVAL)
        self.assertEqual(issue.service_center, self.service_center)
        self.assertEqual(issue.service_center_name, 'Main Workshop')
        self.assertEqual(issue.issued_by, self.technician)
        self.assertIsNotNone(issue.issued_at)
        self.assertEqual(item.part_number, 'BP-001')
        self.assertEqual(item.part_name, 'Brake Pad')
        self.assertEqual(item.requested_qty, 10)
        self.assertEqual(item.approved_qty, 10)
        self.assertEqual(item.issued_qty, 0)
        self.assertIsNone(item.sub_po_number)
        self.assertEqual(issue.total_amount, Decimal('2500.00'))
        self.assertEqual(issue.history.get().action, 'create')

    def test_issue_numbers_are_consecutive(self):
        first = self.create_issue()
        second = self.create_issue()
        self.assertTrue(first.issue_number.endswith('-0001'))
        self.assertTrue(second.issue_number.endswith('-0002'))

    def test_price_snapshot_survives_catalog_change(self):
        issue = self.create_issue()
        self.part.unit_price = Decimal('999.00')
        self.part.save()
        self.assertEqual(issue.items.get().unit_price, Decimal('250.00'))

    def test_empty_items_rejected(self):
        with self.assertRaises(PartsIssueValidationError):
            create_request(self.job_card, [], self.technician)

    def test_zero_quantity_rejected(self):
        with self.assertRaises(PartsIssueValidationError):
            create_request(self.job_card, [{'part': self.part, 'quantity': 0}], self.technician)
        self.assertEqual(PartsIssueRequest.objects.count(), 0)

    def test_inactive_part_rejected(self):
        part = TestDataFactory.create_part(is_active=False)
        with self.assertRaises(PartsIssueValidationError):
            create_request(self.job_card, [{'part': part, 'quantity': 1}], self.technician)

    def test_unknown_part_rejected(self):
        with self.assertRaises(PartsIssueValidationError):
            create_request(self.job_card, [{'part': 999999, 'quantity': 1}], self.technician)

    def test_warranty_item_requires_serial_number(self):
        with self.assertRaises(PartsIssueValidationError):
            create_request(self.job_card, [{'part': self.part, 'quantity': 1, 'is_warranty': True}], self.technician)

        issue = create_request(
            self.job_card,
            [{'part': self.part, 'quantity': 1, 'is_warranty': True, 'serial_number': 'SN-1'}],
            self.technician,
        )
        self.assertEqual(issue.items.get().serial_number, 'SN-1')

    def test_purchase_order_must_be_open_and_local(self):
        other_center = TestDataFactory.create_service_center(code='SC002')
        foreign_po = TestDataFactory.create_purchase_order(other_center, parts=[self.part])
        approve_purchase_order(foreign_po.id, self.admin)
        with self.assertRaises(PartsIssueValidationError):
            self.create_issue(purchase_order=foreign_po)

        pending_po = TestDataFactory.create_purchase_order(self.service_center, parts=[self.part])
        with self.assertRaises(PartsIssueValidationError):
            self.create_issue(purchase_order=pending_po)


class ApprovalWorkflowTests(PartsIssueTestMixin, TestCase):
    """Test service-center and admin approval, rejection and resend"""

    def test_sc_approve_forwards_to_admin(self):
        issue = self.pending_admin_issue()
        self.assertEqual(issue.status, PartsIssueStatus.PENDING_ADMIN_APPROVAL)
        self.assertTrue(issue.sc_manager_approved)
        self.assertEqual(issue.sc_manager_approved_by, self.manager)
        self.assertIsNotNone(issue.sent_to_admin_at)
        self.assertEqual(issue.version, 2)

    def test_sc_reject_requires_reason(self):
        issue = self.create_issue()
        with self.assertRaises(PartsIssueValidationError):
            workflow.sc_reject(issue.id, self.manager, '  ')
        issue = workflow.sc_reject(issue.id, self.manager, 'Wrong part')
        self.assertEqual(issue.status, PartsIssueStatus.SC_REJECTED)
        self.assertEqual(issue.sc_manager_rejection_reason, 'Wrong part')

    def test_scenario_a_admin_approves_reduced_quantity(self):
        issue = self.pending_admin_issue()
        item = issue.items.get()

        workflow.admin_approve(issue.id, self.admin, {item.id: 6})

        issue.refresh_from_db()
        item.refresh_from_db()
        self.assertEqual(issue.status, PartsIssueStatus.ADMIN_APPROVED)
        self.assertEqual(item.approved_qty, 6)
        self.assertEqual(item.total_price, Decimal('1500.00'))
        self.assertEqual(issue.total_amount, Decimal('1500.00'))
        self.assertTrue(issue.admin_approved)

    def test_admin_approve_accepts_string_keys_and_clamps_to_requested(self):
        issue = self.pending_admin_issue()
        item = issue.items.get()
        workflow.admin_approve(issue.id, self.admin, {str(item.id): 50})
        item.refresh_from_db()
        self.assertEqual(item.approved_qty, 10)

    def test_admin_approve_missing_items_default_to_requested(self):
        other = TestDataFactory.create_part(unit_price=Decimal('10.00'))
        issue = self.pending_admin_issue(parts=[self.part, other], quantities=[10, 3])
        first, second = issue.items.all()
        workflow.admin_approve(issue.id, self.admin, {first.id: 4})
        second.refresh_from_db()
        self.assertEqual(second.approved_qty, 3)
        issue.refresh_from_db()
        self.assertEqual(issue.total_amount, Decimal('1030.00'))

    def test_admin_approve_rejects_negative_and_unknown_items(self):
        issue = self.pending_admin_issue()
        item = issue.items.get()
        with self.assertRaises(PartsIssueValidationError):
            workflow.admin_approve(issue.id, self.admin, {item.id: -1})
        with self.assertRaises(PartsIssueValidationError):
            workflow.admin_approve(issue.id, self.admin, {item.id + 1000: 1})
        issue.refresh_from_db()
        self.assertEqual(issue.status, PartsIssueStatus.PENDING_ADMIN_APPROVAL)

    def test_admin_approve_requires_pending_admin_status(self):
        issue = self.create_issue()
        with self.assertRaises(InvalidStateError):
            workflow.admin_approve(issue.id, self.admin)

    def test_admin_approve_from_legacy_sc_approved(self):
        issue = self.create_issue()
        PartsIssueRequest.objects.filter(pk=issue.pk).update(status=PartsIssueStatus.SC_APPROVED)
        issue = workflow.admin_approve(issue.id, self.admin)
        self.assertEqual(issue.status, PartsIssueStatus.ADMIN_APPROVED)

    def test_zero_quantity_approval_is_surfaced(self):
        issue = self.pending_admin_issue()
        item = issue.items.get()
        workflow.admin_approve(issue.id, self.admin, {item.id: 0})

        issue = PartsIssueRequest.objects.get(pk=issue.pk)
        self.assertEqual(issue.status, PartsIssueStatus.ADMIN_APPROVED)
        self.assertTrue(issue.is_fully_rejected)
        self.assertEqual(issue.total_amount, Decimal('0.00'))
        projection = project(issue)
        self.assertEqual(projection['bucket'], 'rejected')
        self.assertIn('zero_quantity_approval', projection['badges'])

    def test_scenario_d_admin_reject_then_resend(self):
        issue = self.pending_admin_issue()
        item = issue.items.get()

        issue = workflow.admin_reject(issue.id, self.admin, 'out of stock')
        item.refresh_from_db()
        self.assertEqual(issue.status, PartsIssueStatus.ADMIN_REJECTED)
        self.assertEqual(issue.admin_rejection_reason, 'out of stock')
        self.assertEqual(item.approved_qty, 10)

        issue = workflow.resend(issue.id, self.manager)
        item.refresh_from_db()
        self.assertEqual(issue.status, PartsIssueStatus.PENDING_ADMIN_APPROVAL)
        self.assertEqual(project(issue)['bucket'], 'pending')
        self.assertEqual(item.approved_qty, 10)
        self.assertEqual(item.requested_qty, 10)
        self.assertEqual(issue.resend_count, 1)
        self.assertEqual(issue.admin_rejection_reason, 'out of stock')

    def test_rejection_flags_outlive_resend(self):
        issue = self.pending_admin_issue()
        issue = workflow.admin_reject(issue.id, self.admin, 'out of stock')
        self.assertTrue(issue.is_currently_rejected)

        workflow.resend(issue.id, self.manager)
        issue = workflow.admin_approve(issue.id, self.admin)
        self.assertTrue(issue.admin_rejected)
        self.assertFalse(issue.is_currently_rejected)

        data = PartsIssueRequestSerializer(issue).data
        self.assertTrue(data['admin_rejected'])
        self.assertFalse(data['is_currently_rejected'])
        self.assertEqual(data['status'], PartsIssueStatus.ADMIN_APPROVED)

    def test_resend_after_sc_rejection_returns_to_sc_review(self):
        issue = self.create_issue()
        workflow.sc_reject(issue.id, self.manager, 'Check part number')
        issue = workflow.resend(issue.id, self.technician)
        self.assertEqual(issue.status, PartsIssueStatus.PENDING_SC_APPROVAL)

    def test_resend_while_pending_admin_only_refreshes_timestamp(self):
        issue = self.pending_admin_issue()
        sent_at = issue.sent_to_admin_at
        issue = workflow.resend(issue.id, self.manager)
        self.assertEqual(issue.status, PartsIssueStatus.PENDING_ADMIN_APPROVAL)
        self.assertGreaterEqual(issue.sent_to_admin_at, sent_at)
        self.assertIn('resent', project(issue)['badges'])

    def test_resend_not_allowed_after_approval(self):
        issue = self.approved_issue()
        with self.assertRaises(InvalidStateError):
            workflow.resend(issue.id, self.manager)

    def test_stale_version_is_rejected(self):
        issue = self.create_issue()
        self.assertEqual(issue.version, 1)
        workflow.sc_approve(issue.id, self.manager, expected_version=1)

        with self.assertRaises(ConcurrencyConflictError) as ctx:
            workflow.admin_approve(issue.id, self.admin, expected_version=1)
        self.assertEqual(ctx.exception.details['current_version'], 2)

        issue.refresh_from_db()
        self.assertEqual(issue.status, PartsIssueStatus.PENDING_ADMIN_APPROVAL)
        workflow.admin_approve(issue.id, self.admin, expected_version=2)

    def test_every_action_is_recorded_in_history(self):
        issue = self.approved_issue()
        actions = list(issue.history.values_list('action', flat=True))
        self.assertEqual(actions, ['create', 'sc_approve', 'admin_approve'])

    @override_settings(PARTS_ISSUE_STOCK_CONTROL=True)
    def test_stock_control_blocks_approval_beyond_stock(self):
        CentralStock.objects.filter(part=self.part).update(quantity=4)
        issue = self.pending_admin_issue()
        item = issue.items.get()

        with self.assertRaises(InsufficientStockError) as ctx:
            workflow.admin_approve(issue.id, self.admin)
        self.assertEqual(ctx.exception.details['available'], 4)

        item.refresh_from_db()
        issue.refresh_from_db()
        self.assertEqual(item.approved_qty, 10)
        self.assertEqual(issue.status, PartsIssueStatus.PENDING_ADMIN_APPROVAL)

        workflow.admin_approve(issue.id, self.admin, {item.id: 4})
        issue.refresh_from_db()
        self.assertEqual(issue.status, PartsIssueStatus.ADMIN_APPROVED)


class DispatchTests(PartsIssueTestMixin, TestCase):
    """Test dispatch, sub-PO allocation, idempotency and receipt"""

    def test_scenario_b_full_dispatch(self):
        issue = self.pending_admin_issue()
        item = issue.items.get()
        workflow.admin_approve(issue.id, self.admin, {item.id: 6})

        issue = dispatch(issue.id, [{'item_id': item.id, 'quantity': 6}], self.storekeeper)

        item.refresh_from_db()
        self.assertEqual(item.issued_qty, 6)
        self.assertEqual(issue.status, PartsIssueStatus.DISPATCHED)
        self.assertIsNotNone(issue.dispatched_at)
        self.assertRegex(item.sub_po_number, r'^SPO-SC001-\d{4}-\d{2}-0001$')
        self.assertEqual(item.sub_po_display, f'{item.sub_po_number}-C')
        self.assertEqual(project(issue)['bucket'], 'issued')

    def test_scenario_c_dispatch_above_approved_is_rejected(self):
        issue = self.pending_admin_issue()
        item = issue.items.get()
        issue = workflow.admin_approve(issue.id, self.admin, {item.id: 6})
        version = issue.version

        with self.assertRaises(QuantityExceededError):
            dispatch(issue.id, [{'item_id': item.id, 'quantity': 7}], self.storekeeper)

        item.refresh_from_db()
        issue.refresh_from_db()
        self.assertEqual(item.issued_qty, 0)
        self.assertIsNone(item.sub_po_number)
        self.assertEqual(issue.status, PartsIssueStatus.ADMIN_APPROVED)
        self.assertEqual(issue.version, version)
        self.assertFalse(PartsIssueDispatch.objects.exists())

    def test_replayed_dispatch_without_key_fails(self):
        issue = self.approved_issue()
        item = issue.items.get()
        dispatch(issue.id, [{'item_id': item.id, 'quantity': 10}], self.storekeeper)
        with self.assertRaises(QuantityExceededError):
            dispatch(issue.id, [{'item_id': item.id, 'quantity': 10}], self.storekeeper)
        item.refresh_from_db()
        self.assertEqual(item.issued_qty, 10)

    def test_replayed_dispatch_with_key_returns_unchanged(self):
        issue = self.approved_issue()
        item = issue.items.get()
        lines = [{'item_id': item.id, 'quantity': 3}]

        first = dispatch(issue.id, lines, self.storekeeper, idempotency_key='dispatch-1')
        second = dispatch(issue.id, lines, self.storekeeper, idempotency_key='dispatch-1', expected_version=1)

        item.refresh_from_db()
        self.assertFalse(first.replayed)
        self.assertTrue(second.replayed)
        self.assertEqual(second.version, first.version)
        self.assertEqual(item.issued_qty, 3)
        self.assertEqual(PartsIssueDispatch.objects.count(), 1)

    def test_idempotency_key_reused_with_other_lines(self):
        issue = self.approved_issue()
        item = issue.items.get()
        dispatch(issue.id, [{'item_id': item.id, 'quantity': 3}], self.storekeeper, idempotency_key='dispatch-1')
        with self.assertRaises(PartsIssueValidationError):
            dispatch(issue.id, [{'item_id': item.id, 'quantity': 4}], self.storekeeper, idempotency_key='dispatch-1')

    def test_partial_dispatch_keeps_sub_po_number(self):
        issue = self.approved_issue()
        item = issue.items.get()

        issue = dispatch(issue.id, [{'item_id': item.id, 'quantity': 4}], self.storekeeper)
        item.refresh_from_db()
        sub_po_number = item.sub_po_number
        self.assertEqual(issue.status, PartsIssueStatus.ADMIN_APPROVED)
        self.assertEqual(item.sub_po_display, sub_po_number)
        projection = project(PartsIssueRequest.objects.get(pk=issue.pk))
        self.assertEqual(projection['bucket'], 'approved')
        self.assertIn('partially_dispatched', projection['badges'])

        issue = dispatch(issue.id, [{'item_id': item.id, 'quantity': 6}], self.storekeeper)
        item.refresh_from_db()
        self.assertEqual(item.sub_po_number, sub_po_number)
        self.assertEqual(item.issued_qty, 10)
        self.assertEqual(issue.status, PartsIssueStatus.DISPATCHED)
        self.assertEqual(list(item.dispatch_lines.values_list('sub_po_number', flat=True)), [sub_po_number] * 2)

    def test_sub_po_numbers_are_unique_per_item(self):
        other = TestDataFactory.create_part()
        issue = self.approved_issue(parts=[self.part, other], quantities=[2, 2])
        first, second = issue.items.all()
        dispatch(issue.id, [{'item_id': first.id, 'quantity': 2}, {'item_id': second.id, 'quantity': 2}], self.storekeeper)
        first.refresh_from_db()
        second.refresh_from_db()
        self.assertTrue(first.sub_po_number.endswith('-0001'))
        self.assertTrue(second.sub_po_number.endswith('-0002'))

    def test_dispatch_validation(self):
        issue = self.approved_issue()
        item = issue.items.get()
        with self.assertRaises(PartsIssueValidationError):
            dispatch(issue.id, [], self.storekeeper)
        with self.assertRaises(PartsIssueValidationError):
            dispatch(issue.id, [{'item_id': item.id, 'quantity': 0}], self.storekeeper)
        with self.assertRaises(PartsIssueValidationError):
            dispatch(issue.id, [{'item_id': item.id, 'quantity': 1}, {'item_id': item.id, 'quantity': 1}], self.storekeeper)
        with self.assertRaises(PartsIssueValidationError):
            dispatch(issue.id, [{'item_id': item.id + 1000, 'quantity': 1}], self.storekeeper)

    def test_fractional_quantities_are_rejected(self):
        issue = self.approved_issue()
        item = issue.items.get()
        for quantity in [2.9, '2.5', Decimal('1.5')]:
            with self.assertRaises(PartsIssueValidationError):
                dispatch(issue.id, [{'item_id': item.id, 'quantity': quantity}], self.storekeeper)
        item.refresh_from_db()
        self.assertEqual(item.issued_qty, 0)

        issue = dispatch(issue.id, [{'item_id': item.id, 'quantity': 4.0}], self.storekeeper)
        item.refresh_from_db()
        self.assertEqual(item.issued_qty, 4)

        dispatch(issue.id, [{'item_id': item.id, 'quantity': '6'}], self.storekeeper)
        with self.assertRaises(PartsIssueValidationError):
            receive(issue.id, self.manager, {item.id: 9.5})
        item.refresh_from_db()
        self.assertEqual(item.received_qty, 0)

    def test_fractional_request_and_approval_quantities_are_rejected(self):
        with self.assertRaises(PartsIssueValidationError):
            self.create_issue(quantities=[2.5])
        issue = self.pending_admin_issue()
        item = issue.items.get()
        with self.assertRaises(PartsIssueValidationError):
            workflow.admin_approve(issue.id, self.admin, {item.id: 3.7})
        item.refresh_from_db()
        self.assertEqual(item.approved_qty, 10)

    def test_dispatch_requires_admin_approval(self):
        issue = self.pending_admin_issue()
        item = issue.items.get()
        with self.assertRaises(InvalidStateError):
            dispatch(issue.id, [{'item_id': item.id, 'quantity': 1}], self.storekeeper)

    def test_zero_approved_item_cannot_be_dispatched(self):
        issue = self.pending_admin_issue()
        item = issue.items.get()
        workflow.admin_approve(issue.id, self.admin, {item.id: 0})
        with self.assertRaises(QuantityExceededError):
            dispatch(issue.id, [{'item_id': item.id, 'quantity': 1}], self.storekeeper)

    def test_transport_details_are_merged(self):
        issue = self.approved_issue()
        item = issue.items.get()
        issue = dispatch(
            issue.id, [{'item_id': item.id, 'quantity': 10}], self.storekeeper,
            transport_details={'courier': 'BlueDart', 'awb': '12345'},
        )
        self.assertEqual(issue.transport_details['courier'], 'BlueDart')

    @override_settings(PARTS_ISSUE_STOCK_CONTROL=True)
    def test_dispatch_consumes_central_stock(self):
        issue = self.approved_issue()
        item = issue.items.get()
        dispatch(issue.id, [{'item_id': item.id, 'quantity': 10}], self.storekeeper)

        self.assertEqual(CentralStock.objects.get(part=self.part).quantity, 90)
        adjustment = StockAdjustment.objects.get(part=self.part)
        self.assertEqual(adjustment.adjustment_type, 'out')
        self.assertEqual(adjustment.reference, issue.issue_number)

    @override_settings(PARTS_ISSUE_STOCK_CONTROL=True)
    def test_dispatch_shortage_rolls_back(self):
        issue = self.approved_issue()
        item = issue.items.get()
        CentralStock.objects.filter(part=self.part).update(quantity=3)

        with self.assertRaises(InsufficientStockError):
            dispatch(issue.id, [{'item_id': item.id, 'quantity': 10}], self.storekeeper)

        item.refresh_from_db()
        self.assertEqual(item.issued_qty, 0)
        self.assertEqual(CentralStock.objects.get(part=self.part).quantity, 3)

    def test_dispatch_updates_purchase_order_fulfillment(self):
        purchase_order = TestDataFactory.create_purchase_order(self.service_center, parts=[self.part], quantities=[10])
        approve_purchase_order(purchase_order.id, self.admin)
        issue = self.approved_issue(purchase_order=purchase_order)
        item = issue.items.get()

        dispatch(issue.id, [{'item_id': item.id, 'quantity': 4}], self.storekeeper)
        purchase_order.refresh_from_db()
        self.assertEqual(purchase_order.status, 'partially_fulfilled')

        dispatch(issue.id, [{'item_id': item.id, 'quantity': 6}], self.storekeeper)
        purchase_order.refresh_from_db()
        self.assertEqual(purchase_order.status, 'fulfilled')
        self.assertIsNotNone(purchase_order.fulfilled_at)

    def test_receive_completes_request(self):
        issue = self.approved_issue()
        item = issue.items.get()
        dispatch(issue.id, [{'item_id': item.id, 'quantity': 10}], self.storekeeper)

        issue = receive(issue.id, self.manager)
        item.refresh_from_db()
        self.assertEqual(issue.status, PartsIssueStatus.COMPLETED)
        self.assertEqual(item.received_qty, 10)
        self.assertEqual(issue.received_by, self.manager)
        self.assertIn('received', project(issue)['badges'])

    def test_receive_validation(self):
        issue = self.approved_issue()
        item = issue.items.get()
        with self.assertRaises(InvalidStateError):
            receive(issue.id, self.manager)

        dispatch(issue.id, [{'item_id': item.id, 'quantity': 10}], self.storekeeper)
        with self.assertRaises(QuantityExceededError):
            receive(issue.id, self.manager, {item.id: 11})

        issue = receive(issue.id, self.manager, {item.id: 9})
        item.refresh_from_db()
        self.assertEqual(item.received_qty, 9)


class StatusTests(TestCase):
    """Test status normalisation"""

    def test_legacy_spellings(self):
        self.assertEqual(PartsIssueStatus.normalize('approved'), PartsIssueStatus.ADMIN_APPROVED)
        self.assertEqual(PartsIssueStatus.normalize('PENDING_APPROVAL'), PartsIssueStatus.PENDING_SC_APPROVAL)
        self.assertEqual(PartsIssueStatus.normalize('cim-approved'), PartsIssueStatus.ADMIN_APPROVED)
        self.assertEqual(PartsIssueStatus.normalize('issued'), PartsIssueStatus.DISPATCHED)
        self.assertEqual(PartsIssueStatus.normalize('admin_rejected'), PartsIssueStatus.ADMIN_REJECTED)

    def test_unknown_status(self):
        with self.assertRaises(ValueError):
            PartsIssueStatus.normalize('lost')


class PartsIssueAPITests(PartsIssueTestMixin, TestCase):
    """Test the parts-issue REST endpoints"""

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()

    def api_create(self, quantity=10):
        self.client.authenticate_user(self.technician)
        return self.client.post('/api/v1/parts-issues/', {
            'job_card': self.job_card.id,
            'items': [{'part': self.part.id, 'quantity': quantity}],
            'notes': 'Front brakes',
        }, format='json')

    def test_create_request(self):
        response = self.api_create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'PENDING_SC_APPROVAL')
        self.assertEqual(response.data['projection']['bucket'], 'pending')
        self.assertEqual(response.data['version'], 1)
        self.assertEqual(len(response.data['items']), 1)
        self.assertTrue(AuditLog.objects.filter(action='parts_issue_create').exists())

    def test_create_validation_error_shape(self):
        response = self.api_create(quantity=0)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'validation_error')

    def test_create_requires_workshop_role(self):
        self.client.authenticate_user(self.storekeeper)
        response = self.client.post('/api/v1/parts-issues/', {
            'job_card': self.job_card.id,
            'items': [{'part': self.part.id, 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_for_other_service_center_is_denied(self):
        other_center = TestDataFactory.create_service_center(code='SC002')
        other_technician = TestDataFactory.create_user(roles=[TECHNICIAN], service_center=other_center)
        self.client.authenticate_user(other_technician)
        response = self.client.post('/api/v1/parts-issues/', {
            'job_card': self.job_card.id,
            'items': [{'part': self.part.id, 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'permission_denied')

    def test_full_workflow_over_api(self):
        issue_id = self.api_create().data['id']

        self.client.authenticate_user(self.manager)
        response = self.client.patch(f'/api/v1/parts-issues/{issue_id}/sc-approve/', {'version': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'PENDING_ADMIN_APPROVAL')
        self.assertEqual(response['ETag'], '"2"')
        item_id = response.data['items'][0]['id']

        self.client.authenticate_user(self.admin)
        response = self.client.patch(
            f'/api/v1/parts-issues/{issue_id}/admin-approve/',
            {'approved_quantities': {str(item_id): 6}},
            format='json',
            HTTP_IF_MATCH='"2"',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_amount'], '1500.00')

        self.client.authenticate_user(self.storekeeper)
        response = self.client.patch(f'/api/v1/parts-issues/{issue_id}/dispatch/', {
            'items': [{'item_id': item_id, 'quantity': 6}],
            'idempotency_key': 'abc-1',
            'transport_details': {'courier': 'BlueDart'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'DISPATCHED')
        self.assertTrue(response.data['items'][0]['sub_po_display'].endswith('-C'))
        self.assertEqual(len(response.data['dispatches']), 1)

        self.client.authenticate_user(self.manager)
        response = self.client.patch(f'/api/v1/parts-issues/{issue_id}/receive/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'COMPLETED')

        response = self.client.get(f'/api/v1/parts-issues/{issue_id}/history/')
        self.assertEqual(
            [entry['action'] for entry in response.data],
            ['create', 'sc_approve', 'admin_approve', 'dispatch', 'receive'],
        )

    def test_dispatch_replay_over_api(self):
        issue = self.approved_issue()
        item = issue.items.get()
        self.client.authenticate_user(self.storekeeper)
        payload = {'lines': [{'item_id': item.id, 'quantity': 2}]}

        first = self.client.patch(f'/api/v1/parts-issues/{issue.id}/dispatch/', payload, format='json', HTTP_IDEMPOTENCY_KEY='k-1')
        second = self.client.patch(f'/api/v1/parts-issues/{issue.id}/dispatch/', payload, format='json', HTTP_IDEMPOTENCY_KEY='k-1')

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(second['Idempotent-Replay'], 'true')
        self.assertEqual(second.data['items'][0]['issued_qty'], 2)
        self.assertEqual(AuditLog.objects.filter(action='parts_issue_dispatch').count(), 1)

    def test_quantity_exceeded_over_api(self):
        issue = self.approved_issue()
        item = issue.items.get()
        self.client.authenticate_user(self.storekeeper)
        response = self.client.patch(f'/api/v1/parts-issues/{issue.id}/dispatch/', {
            'items': [{'item_id': item.id, 'quantity': 11}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'quantity_exceeded')
        self.assertEqual(response.data['details']['remaining'], 10)

    def test_dispatch_body_uses_items(self):
        issue = self.approved_issue()
        item = issue.items.get()
        self.client.authenticate_user(self.storekeeper)
        url = f'/api/v1/parts-issues/{issue.id}/dispatch/'

        response = self.client.patch(url, {'items': [{'itemId': item.id, 'quantity': 3}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['issued_qty'], 3)

        response = self.client.patch(url, {'lines': [{'item_id': item.id, 'quantity': 2}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['issued_qty'], 5)

        response = self.client.patch(url, {'transport_details': {}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)

        response = self.client.patch(url, {'items': [{'item_id': item.id, 'quantity': 2.5}]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        item.refresh_from_db()
        self.assertEqual(item.issued_qty, 5)

    def test_stale_version_conflict(self):
        issue = self.pending_admin_issue()
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/parts-issues/{issue.id}/admin-reject/', {
            'reason': 'duplicate', 'version': 1,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'concurrency_conflict')

    def test_invalid_state_conflict(self):
        issue = self.create_issue()
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/parts-issues/{issue.id}/admin-approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'invalid_state')

    @override_settings(PARTS_ISSUE_REQUIRE_VERSION=True)
    def test_version_required_when_configured(self):
        issue = self.create_issue()
        self.client.authenticate_user(self.manager)
        response = self.client.patch(f'/api/v1/parts-issues/{issue.id}/sc-approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'validation_error')

    def test_role_checks_on_actions(self):
        issue = self.create_issue()
        self.client.authenticate_user(self.technician)
        response = self.client.patch(f'/api/v1/parts-issues/{issue.id}/sc-approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.patch(f'/api/v1/parts-issues/{issue.id}/admin-approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_other_service_center_cannot_see_request(self):
        issue = self.create_issue()
        other_center = TestDataFactory.create_service_center(code='SC002')
        other_manager = TestDataFactory.create_user(roles=[SC_MANAGER], service_center=other_center)
        self.client.authenticate_user(other_manager)

        self.assertEqual(self.client.get(f'/api/v1/parts-issues/{issue.id}/').status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get('/api/v1/parts-issues/').data['count'], 0)
        response = self.client.patch(f'/api/v1/parts-issues/{issue.id}/sc-approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_filters(self):
        pending = self.create_issue()
        approved = self.approved_issue()
        zero = self.pending_admin_issue()
        workflow.admin_approve(zero.id, self.admin, {zero.items.get().id: 0})

        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/parts-issues/', {'status': 'approved'})
        self.assertEqual({row['id'] for row in response.data['results']}, {approved.id, zero.id})

        response = self.client.get('/api/v1/parts-issues/', {'bucket': 'approved'})
        self.assertEqual([row['id'] for row in response.data['results']], [approved.id])

        response = self.client.get('/api/v1/parts-issues/', {'bucket': 'rejected'})
        self.assertEqual([row['id'] for row in response.data['results']], [zero.id])

        response = self.client.get('/api/v1/parts-issues/', {'bucket': 'pending'})
        self.assertEqual([row['id'] for row in response.data['results']], [pending.id])

        response = self.client.get('/api/v1/parts-issues/', {'search': pending.issue_number})
        self.assertEqual(response.data['count'], 1)

    def test_list_is_paginated(self):
        for _ in range(3):
            self.create_issue()
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/parts-issues/', {'limit': 2})
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(len(response.data['results']), 2)
        self.assertEqual(response.data['next'], 2)
        self.assertEqual(response.data['total_pages'], 2)

    def test_summary(self):
        self.create_issue()
        self.create_issue()
        issue = self.pending_admin_issue()
        workflow.admin_reject(issue.id, self.admin, 'not needed')

        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/parts-issues/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'pending': 2, 'approved': 0, 'rejected': 1, 'issued': 0, 'total': 3})
        self.assertEqual(summarize(PartsIssueRequest.objects.all()), response.data)


class AdminTests(PartsIssueTestMixin, TestCase):
    """Test that the Django admin cannot edit workflow state"""

    def setUp(self):
        super().setUp()
        self.request = RequestFactory().get('/admin/')
        self.request.user = get_user_model().objects.create_superuser('root', 'root@example.com', 'pass')

    def test_request_workflow_fields_are_read_only(self):
        model_admin = admin.site._registry[PartsIssueRequest]
        issue = self.approved_issue()

        readonly = model_admin.get_readonly_fields(self.request, issue)
        for field in ('status', 'total_amount', 'admin_approved', 'sc_manager_rejected', 'resend_count', 'version'):
            self.assertIn(field, readonly)
        self.assertFalse(model_admin.has_delete_permission(self.request, issue))
        self.assertFalse(model_admin.has_add_permission(self.request))

        for inline in model_admin.get_inline_instances(self.request, issue):
            self.assertFalse(inline.can_delete)
            self.assertFalse(inline.has_add_permission(self.request, issue))
        item_inline = model_admin.get_inline_instances(self.request, issue)[0]
        for field in ('requested_qty', 'approved_qty', 'issued_qty', 'unit_price', 'total_price'):
            self.assertIn(field, item_inline.get_readonly_fields(self.request, issue))

    def test_dispatch_records_are_read_only(self):
        issue = self.approved_issue()
        dispatch(issue.id, [{'item_id': issue.items.get().id, 'quantity': 4}], self.storekeeper)
        model_admin = admin.site._registry[PartsIssueDispatch]
        record = PartsIssueDispatch.objects.get(issue=issue)

        self.assertFalse(model_admin.has_delete_permission(self.request, record))
        self.assertIn('issue', model_admin.get_readonly_fields(self.request, record))
        line_inline = model_admin.get_inline_instances(self.request, record)[0]
        self.assertFalse(line_inline.can_delete)
        self.assertIn('quantity', line_inline.get_readonly_fields(self.request, record))
