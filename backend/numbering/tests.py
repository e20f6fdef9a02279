"""
Test suite for document numbering
"""
import threading
from datetime import datetime
from io import StringIO
from unittest import skipIf

from django.core.management import call_command
from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.utils import timezone

from backend.core.test_utils import TestDataFactory
from backend.jobcards.models import JobCard
from backend.numbering.allocator import (
    JOB_CARD,
    PARTS_ISSUE,
    SUB_PO,
    DocumentNumber,
    allocate,
    allocate_number,
    next_sequence,
    scope_for,
)
from backend.numbering.models import DocumentSequence


MARCH_2025 = timezone.make_aware(datetime(2025, 3, 14, 10, 30))


class DocumentNumberTests(TestCase):
    """Test rendering and parsing of document numbers"""

    def test_render(self):
        scope = scope_for(PARTS_ISSUE, 'sc001', MARCH_2025)
        self.assertEqual(str(DocumentNumber.from_scope(scope, 7)), 'PI-SC001-2025-03-0007')
        scope = scope_for(JOB_CARD, 'SC001', MARCH_2025)
        self.assertEqual(str(DocumentNumber.from_scope(scope, 12345)), 'SC001-2025-03-12345')

    def test_parse(self):
        number = DocumentNumber.parse('SPO-SC001-2025-03-0002')
        self.assertEqual(number.document_type, SUB_PO)
        self.assertEqual(number.sequence, 2)
        self.assertEqual(str(number), 'SPO-SC001-2025-03-0002')

        self.assertEqual(DocumentNumber.parse('SC001-2025-03-0001').document_type, JOB_CARD)

    def test_parse_rejects_malformed(self):
        for value in ['', 'SC001-2025-3-0001', 'XX-SC001-2025-03-0001', 'SC001-2025-13-0001',
                      'SC001-25-03-0001', 'SC001-2025-03-abcd', 'SC-001-2025-03-0001-1']:
            with self.assertRaises(ValueError, msg=value):
                DocumentNumber.parse(value)

    def test_scope_requires_known_type_and_location(self):
        with self.assertRaises(ValueError):
            scope_for('invoice', 'SC001')
        with self.assertRaises(ValueError):
            scope_for(JOB_CARD, '')


class AllocationTests(TestCase):
    """Test counter allocation"""

    def test_strictly_increasing_within_scope(self):
        scope = scope_for(JOB_CARD, 'SC001', MARCH_2025)
        values = [allocate(scope) for _ in range(5)]
        self.assertEqual(values, [1, 2, 3, 4, 5])
        self.assertEqual(DocumentSequence.objects.get(location_code='SC001').current_value, 5)

    def test_scopes_are_independent(self):
        self.assertEqual(allocate_number(JOB_CARD, 'SC001', MARCH_2025), 'SC001-2025-03-0001')
        self.assertEqual(allocate_number(JOB_CARD, 'SC002', MARCH_2025), 'SC002-2025-03-0001')
        self.assertEqual(allocate_number(PARTS_ISSUE, 'SC001', MARCH_2025), 'PI-SC001-2025-03-0001')
        april = timezone.make_aware(datetime(2025, 4, 1, 9, 0))
        self.assertEqual(allocate_number(JOB_CARD, 'SC001', april), 'SC001-2025-04-0001')
        self.assertEqual(allocate_number(JOB_CARD, 'SC001', MARCH_2025), 'SC001-2025-03-0002')

    def test_next_sequence_skips_malformed_and_other_scopes(self):
        scope = scope_for(JOB_CARD, 'SC001', MARCH_2025)
        existing = ['SC001-2025-03-0004', 'SC001-2025-03-0011', 'garbage', None,
                    'SC002-2025-03-0099', 'PI-SC001-2025-03-0050']
        self.assertEqual(next_sequence(existing, scope), 12)
        self.assertEqual(next_sequence([], scope), 1)


@skipIf(connection.vendor == 'sqlite', 'SQLite serializes writers, so row locks are not exercised')
class ConcurrentAllocationTests(TransactionTestCase):
    """Test allocation from parallel connections"""

    WORKERS = 8

    def test_parallel_allocations_are_distinct_and_gapless(self):
        scope = scope_for(PARTS_ISSUE, 'SC001', MARCH_2025)
        barrier = threading.Barrier(self.WORKERS)
        results = []
        errors = []
        lock = threading.Lock()

        def worker():
            try:
                barrier.wait()
                value = allocate(scope)
                with lock:
                    results.append(value)
            except Exception as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(self.WORKERS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(sorted(results), list(range(1, self.WORKERS + 1)))
        self.assertEqual(DocumentSequence.objects.get(location_code='SC001').current_value, self.WORKERS)


class SeedSequencesCommandTests(TestCase):
    """Test seeding counters from stored numbers"""

    def setUp(self):
        self.service_center = TestDataFactory.create_service_center(code='SC001')
        for number in ['SC001-2024-01-0003', 'SC001-2024-01-0009', 'legacy-7']:
            JobCard.objects.create(job_card_number=number, service_center=self.service_center,
                                   customer_name='Customer', vehicle_number='KA011234')

    def test_seeds_counters(self):
        out = StringIO()
        call_command('seed_sequences', stdout=out)
        sequence = DocumentSequence.objects.get(document_type=JOB_CARD, location_code='SC001', year=2024, month=1)
        self.assertEqual(sequence.current_value, 9)
        self.assertIn('Skipped 1 malformed', out.getvalue())

        january = timezone.make_aware(datetime(2024, 1, 20, 12, 0))
        self.assertEqual(allocate_number(JOB_CARD, 'SC001', january), 'SC001-2024-01-0010')

    def test_dry_run_writes_nothing(self):
        out = StringIO()
        call_command('seed_sequences', '--dry-run', stdout=out)
        self.assertFalse(DocumentSequence.objects.exists())
        self.assertIn('job_card SC001-2024-01: 9', out.getvalue())

    def test_never_moves_backwards(self):
        DocumentSequence.objects.create(document_type=JOB_CARD, location_code='SC001', year=2024, month=1,
                                        current_value=20)
        call_command('seed_sequences', stdout=StringIO())
        sequence = DocumentSequence.objects.get(document_type=JOB_CARD, location_code='SC001', year=2024, month=1)
        self.assertEqual(sequence.current_value, 20)
