"""
Tests for the parts-issue HTTP client, the poller and the projection helpers
"""
import threading
from unittest import mock

import requests
from django.test import SimpleTestCase

from backend.parts_issues.client import ApiError, NetworkError, PartsIssueClient, TransientError
from backend.parts_issues.exceptions import (
    ConcurrencyConflictError,
    PartsIssueValidationError,
    PermissionDeniedError,
    QuantityExceededError,
)
from backend.parts_issues.poller import PartsIssuePoller
from backend.parts_issues.projection import project_payload, project_values


def make_response(status_code=200, body=None):
    response = mock.Mock()
    response.status_code = status_code
    response.content = b'{}' if body is not None else b''
    if body is None:
        response.json.side_effect = ValueError('No JSON')
    else:
        response.json.return_value = body
    return response


def issue_payload(issue_id=1, status='ADMIN_APPROVED', approved=5, issued=0, **extra):
    data = {
        'id': issue_id,
        'issue_number': f'PI-SC001-2025-03-{issue_id:04d}',
        'status': status,
        'sc_manager_approved': True,
        'admin_approved': status in ('ADMIN_APPROVED', 'DISPATCHED', 'COMPLETED'),
        'resend_count': 0,
        'version': 3,
        'items': [{'id': 10, 'approved_qty': approved, 'issued_qty': issued}],
    }
    data.update(extra)
    return data


class PartsIssueClientTests(SimpleTestCase):
    """Test request building and error mapping"""

    def setUp(self):
        self.session = mock.Mock()
        self.session.headers = {}
        self.client = PartsIssueClient('http://parts.local/api/v1/', session=self.session, timeout=5)

    def test_authenticate_stores_bearer_token(self):
        self.session.request.return_value = make_response(200, {'access': 'abc', 'refresh': 'def'})
        self.client.authenticate('manager', 'secret')
        self.assertEqual(self.session.headers['Authorization'], 'Bearer abc')
        self.session.request.assert_called_once_with(
            'POST', 'http://parts.local/api/v1/auth/login/', timeout=5,
            json={'username': 'manager', 'password': 'secret'},
        )

    def test_action_sends_version_and_string_keys(self):
        self.session.request.return_value = make_response(200, issue_payload())
        self.client.admin_approve(7, {10: 4}, version=2)
        self.session.request.assert_called_once_with(
            'PATCH', 'http://parts.local/api/v1/parts-issues/7/admin-approve/', timeout=5,
            json={'approved_quantities': {'10': 4}, 'version': 2},
        )

    def test_dispatch_payload(self):
        self.session.request.return_value = make_response(200, issue_payload(status='DISPATCHED'))
        self.client.dispatch(7, [{'item_id': 10, 'quantity': 5}], idempotency_key='k-1')
        _, kwargs = self.session.request.call_args
        self.assertEqual(kwargs['json'], {
            'items': [{'item_id': 10, 'quantity': 5}],
            'transport_details': {},
            'idempotency_key': 'k-1',
        })

    def test_error_codes_map_to_workflow_exceptions(self):
        self.session.request.return_value = make_response(409, {
            'error': 'modified by someone else', 'code': 'concurrency_conflict', 'details': {'current_version': 4},
        })
        with self.assertRaises(ConcurrencyConflictError) as ctx:
            self.client.sc_approve(7, version=3)
        self.assertEqual(ctx.exception.details['current_version'], 4)

        self.session.request.return_value = make_response(400, {'error': 'too many', 'code': 'quantity_exceeded'})
        with self.assertRaises(QuantityExceededError):
            self.client.dispatch(7, [{'item_id': 10, 'quantity': 50}])

    def test_errors_without_code(self):
        self.session.request.return_value = make_response(403, {'detail': 'You do not have the role required for this action.'})
        with self.assertRaises(PermissionDeniedError):
            self.client.admin_reject(7, 'no')

        self.session.request.return_value = make_response(400, {'items': ['This field is required.']})
        with self.assertRaises(PartsIssueValidationError):
            self.client.create(1, [])

        self.session.request.return_value = make_response(404, {'detail': 'Not found.'})
        with self.assertRaises(ApiError) as ctx:
            self.client.get(99)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_transport_failures(self):
        self.session.request.side_effect = requests.exceptions.Timeout()
        with self.assertRaises(TransientError):
            self.client.list()

        self.session.request.side_effect = requests.exceptions.ConnectionError('refused')
        with self.assertRaises(NetworkError) as ctx:
            self.client.list()
        self.assertNotIsInstance(ctx.exception, TransientError)

        self.session.request.side_effect = None
        self.session.request.return_value = make_response(503, None)
        with self.assertRaises(TransientError):
            self.client.list()

    def test_list_all_follows_pages(self):
        self.session.request.side_effect = [
            make_response(200, {'results': [issue_payload(1)], 'next': 2}),
            make_response(200, {'results': [issue_payload(2)], 'next': None}),
        ]
        results = self.client.list_all(bucket='approved')
        self.assertEqual([row['id'] for row in results], [1, 2])
        _, kwargs = self.session.request.call_args
        self.assertEqual(kwargs['params'], {'page': 2, 'bucket': 'approved'})


class PartsIssuePollerTests(SimpleTestCase):
    """Test visibility, mutation suspension and backoff"""

    def setUp(self):
        self.fetch = mock.Mock(return_value=[issue_payload()])
        self.updates = []
        self.poller = PartsIssuePoller(self.fetch, self.updates.append, interval=5, max_backoff=60)

    def test_poll_projects_each_issue(self):
        self.assertTrue(self.poller.poll_once())
        snapshot = self.updates[0]
        self.assertEqual(snapshot[0]['issue']['id'], 1)
        self.assertEqual(snapshot[0]['projection']['bucket'], 'approved')

    def test_hidden_poller_skips(self):
        self.poller.set_visible(False)
        self.assertFalse(self.poller.poll_once())
        self.fetch.assert_not_called()

        self.poller._wake.clear()
        self.poller.set_visible(True)
        self.assertTrue(self.poller._wake.is_set())

    def test_mutation_suspends_and_refreshes(self):
        with self.poller.mutation():
            self.assertTrue(self.poller.mutation_in_flight)
            self.assertFalse(self.poller.poll_once())
        self.assertFalse(self.poller.mutation_in_flight)
        self.assertTrue(self.poller._wake.is_set())
        self.fetch.assert_not_called()

    def test_failed_mutation_does_not_refresh(self):
        with self.assertRaises(ConcurrencyConflictError):
            with self.poller.mutation():
                raise ConcurrencyConflictError('stale')
        self.assertFalse(self.poller.mutation_in_flight)
        self.assertFalse(self.poller._wake.is_set())

    def test_failures_are_swallowed_with_backoff(self):
        self.fetch.side_effect = TransientError('timeout')
        with self.assertLogs('backend.parts_issues.poller', level='WARNING'):
            self.assertFalse(self.poller.poll_once())
        self.assertEqual(self.poller.next_delay(), 10)

        for _ in range(5):
            self.poller.poll_once()
        self.assertEqual(self.poller.failures, 6)
        self.assertEqual(self.poller.next_delay(), 60)

        self.fetch.side_effect = None
        self.assertTrue(self.poller.poll_once())
        self.assertEqual(self.poller.failures, 0)
        self.assertEqual(self.poller.next_delay(), 5)

    def test_refresh_during_poll_is_not_lost(self):
        calls = []

        def fetch():
            calls.append(1)
            if len(calls) == 1:
                poller.refresh_now()
            else:
                poller.stop()
            return [issue_payload()]

        poller = PartsIssuePoller(fetch, self.updates.append, interval=60, max_backoff=60)
        runner = threading.Thread(target=poller.run, daemon=True)
        runner.start()
        runner.join(5)
        self.assertFalse(runner.is_alive())
        self.assertEqual(len(calls), 2)
        self.assertEqual(len(self.updates), 2)

    def test_background_thread(self):
        polled = threading.Event()
        poller = PartsIssuePoller(self.fetch, lambda snapshot: polled.set(), interval=0.01, max_backoff=0.05)
        poller.start()
        try:
            self.assertTrue(polled.wait(2))
        finally:
            poller.stop(timeout=2)
        self.assertFalse(poller._thread.is_alive())


class ProjectionTests(SimpleTestCase):
    """Test bucket and badge projection"""

    def test_buckets(self):
        self.assertEqual(project_values('PENDING_SC_APPROVAL', False, False, 0, [(5, 0)])['bucket'], 'pending')
        self.assertEqual(project_values('PENDING_ADMIN_APPROVAL', True, False, 0, [(5, 0)])['bucket'], 'pending')
        self.assertEqual(project_values('ADMIN_APPROVED', True, True, 0, [(5, 0)])['bucket'], 'approved')
        self.assertEqual(project_values('SC_REJECTED', False, False, 0, [(5, 0)])['bucket'], 'rejected')
        self.assertEqual(project_values('DISPATCHED', True, True, 0, [(5, 5)])['bucket'], 'issued')
        self.assertEqual(project_values('COMPLETED', True, True, 0, [(5, 5)])['bucket'], 'issued')

    def test_zero_quantity_approval_is_rejected_bucket(self):
        projection = project_values('ADMIN_APPROVED', True, True, 0, [(0, 0), (0, 0)])
        self.assertEqual(projection['bucket'], 'rejected')
        self.assertIn('zero_quantity_approval', projection['badges'])

    def test_badges(self):
        projection = project_values('ADMIN_APPROVED', True, True, 0, [(5, 2)])
        self.assertEqual(projection['badges'], ['sc_approved', 'admin_approved', 'partially_dispatched'])

        projection = project_values('PENDING_ADMIN_APPROVAL', True, False, 2, [(5, 0)])
        self.assertEqual(projection['badges'], ['sc_approved', 'resent'])

    def test_payload_with_legacy_status(self):
        projection = project_payload(issue_payload(status='issued', approved=5, issued=5))
        self.assertEqual(projection['status'], 'DISPATCHED')
        self.assertEqual(projection['bucket'], 'issued')
