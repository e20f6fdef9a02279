"""
Document numbering.

Numbers look like ``[PREFIX-]{location}-{year}-{month:02}-{sequence:04}``,
e.g. ``SC001-2025-03-0007`` for a job card or ``SPO-SC001-2025-03-0002`` for
a sub purchase order. Sequences are scoped to (document type, location code,
year, month) and handed out by :func:`allocate`, which increments a locked
counter row so concurrent callers never receive the same value.
"""
import logging
from collections import namedtuple
from dataclasses import dataclass

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .models import DocumentSequence

logger = logging.getLogger(__name__)

JOB_CARD = 'job_card'
PARTS_ISSUE = 'parts_issue'
SUB_PO = 'sub_po'
PURCHASE_ORDER = 'purchase_order'

DOCUMENT_PREFIXES = {
    JOB_CARD: '',
    PARTS_ISSUE: 'PI',
    SUB_PO: 'SPO',
    PURCHASE_ORDER: 'PO',
}
PREFIX_DOCUMENT_TYPES = {prefix: document_type for document_type, prefix in DOCUMENT_PREFIXES.items()}

SEQUENCE_WIDTH = 4

SequenceScope = namedtuple('SequenceScope', ['document_type', 'location_code', 'year', 'month'])


def scope_for(document_type, location_code, when=None):
    """Scope for a document created at ``when`` (defaults to now, local time)"""
    if document_type not in DOCUMENT_PREFIXES:
        raise ValueError(f"Unknown document type: {document_type}")
    if not location_code:
        raise ValueError('A location code is required for document numbering')
    when = timezone.localtime(when) if when else timezone.localtime()
    return SequenceScope(document_type, location_code.upper(), when.year, when.month)


@dataclass(frozen=True)
class DocumentNumber:
    """Parsed document number; ``str()`` renders it back"""
    location_code: str
    year: int
    month: int
    sequence: int
    prefix: str = ''

    @property
    def document_type(self):
        return PREFIX_DOCUMENT_TYPES[self.prefix]

    @property
    def scope(self):
        return SequenceScope(self.document_type, self.location_code, self.year, self.month)

    def __str__(self):
        body = f"{self.location_code}-{self.year}-{self.month:02d}-{self.sequence:0{SEQUENCE_WIDTH}d}"
        return f"{self.prefix}-{body}" if self.prefix else body

    @classmethod
    def from_scope(cls, scope, sequence):
        return cls(scope.location_code, scope.year, scope.month, sequence, DOCUMENT_PREFIXES[scope.document_type])

    @classmethod
    def parse(cls, value):
        """Parse a rendered number, raising ValueError when it is malformed"""
        parts = (value or '').strip().split('-')
        prefix = ''
        if len(parts) == 5:
            prefix = parts.pop(0)
        if len(parts) != 4 or prefix not in PREFIX_DOCUMENT_TYPES:
            raise ValueError(f"Malformed document number: {value!r}")
        location_code, year, month, sequence = parts
        if not location_code.isalnum() or len(year) != 4 or not year.isdigit() \
                or len(month) != 2 or not month.isdigit() or not sequence.isdigit():
            raise ValueError(f"Malformed document number: {value!r}")
        if not 1 <= int(month) <= 12:
            raise ValueError(f"Malformed document number: {value!r}")
        return cls(location_code, int(year), int(month), int(sequence), prefix)


# Job-card numbers carry no prefix; the name documents intent at call sites
JobCardNumber = DocumentNumber


def allocate(scope):
    """
    Return the next sequence number for ``scope``.

    Atomic: the counter row is locked for the duration of the increment, so
    two allocations in the same scope never return the same value and values
    are strictly increasing in allocation order.
    """
    with transaction.atomic():
        DocumentSequence.objects.get_or_create(
            document_type=scope.document_type,
            location_code=scope.location_code,
            year=scope.year,
            month=scope.month,
        )
        sequence = DocumentSequence.objects.select_for_update().get(
            document_type=scope.document_type,
            location_code=scope.location_code,
            year=scope.year,
            month=scope.month,
        )
        DocumentSequence.objects.filter(pk=sequence.pk).update(current_value=F('current_value') + 1)
        sequence.refresh_from_db(fields=['current_value'])
    logger.debug(f"Allocated {scope.document_type} {scope.location_code}-{scope.year}-{scope.month:02d} #{sequence.current_value}")
    return sequence.current_value


def format_document_number(scope, sequence):
    return str(DocumentNumber.from_scope(scope, sequence))


def allocate_number(document_type, location_code, when=None):
    """Allocate and render the next document number, e.g. ``PI-SC001-2025-03-0001``"""
    scope = scope_for(document_type, location_code, when)
    return format_document_number(scope, allocate(scope))


def next_sequence(existing_numbers, scope):
    """
    Derive the next sequence for ``scope`` by scanning already issued numbers.

    Malformed numbers and numbers from other scopes are skipped; returns 1 when
    nothing matches. Not safe under concurrent use: it only seeds counters from
    documents that were numbered before :func:`allocate` existed.
    """
    highest = 0
    for number in existing_numbers:
        try:
            parsed = DocumentNumber.parse(number)
        except ValueError:
            continue
        if parsed.scope == scope and parsed.sequence > highest:
            highest = parsed.sequence
    return highest + 1
