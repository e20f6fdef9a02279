from django.core.management.base import BaseCommand
from django.db import transaction

from backend.jobcards.models import JobCard
from backend.numbering.allocator import DocumentNumber, next_sequence
from backend.numbering.models import DocumentSequence
from backend.parts_issues.models import PartsIssueItem, PartsIssueRequest
from backend.purchasing.models import PurchaseOrder


class Command(BaseCommand):
    help = 'Initialise document sequence counters from numbers already stored on job cards, parts issues and purchase orders'

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='Report the counters without writing them')

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        existing_numbers = []
        existing_numbers.extend(JobCard.objects.values_list('job_card_number', flat=True))
        existing_numbers.extend(PartsIssueRequest.objects.values_list('issue_number', flat=True))
        existing_numbers.extend(
            PartsIssueItem.objects.exclude(sub_po_number__isnull=True).values_list('sub_po_number', flat=True)
        )
        existing_numbers.extend(PurchaseOrder.objects.values_list('po_number', flat=True))

        scopes = set()
        skipped = 0
        for number in existing_numbers:
            try:
                scopes.add(DocumentNumber.parse(number).scope)
            except ValueError:
                skipped += 1

        updated_count = 0
        for scope in sorted(scopes):
            last_issued = next_sequence(existing_numbers, scope) - 1
            label = f"{scope.document_type} {scope.location_code}-{scope.year}-{scope.month:02d}"
            if dry_run:
                self.stdout.write(f'  {label}: {last_issued}')
                continue
            with transaction.atomic():
                sequence, _ = DocumentSequence.objects.select_for_update().get_or_create(
                    document_type=scope.document_type,
                    location_code=scope.location_code,
                    year=scope.year,
                    month=scope.month,
                )
                # Never move a counter backwards
                if sequence.current_value < last_issued:
                    sequence.current_value = last_issued
                    sequence.save(update_fields=['current_value', 'updated_at'])
                    updated_count += 1
                    self.stdout.write(f'  {label}: set to {last_issued}')

        if skipped:
            self.stdout.write(self.style.WARNING(f'Skipped {skipped} malformed document numbers'))
        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {len(scopes)} scopes found, {updated_count} counters updated'
        ))
