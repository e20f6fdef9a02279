"""
Approval workflow for parts-issue requests.

Every operation locks the request row (``select_for_update``) inside one
transaction, checks the optional ``expected_version`` under that lock, applies
its changes, bumps ``version`` and records a status-history row. A rejected
operation raises a :class:`~backend.parts_issues.exceptions.PartsIssueError`
and leaves the request untouched.

Status transitions::

    PENDING_SC_APPROVAL --sc_approve--> PENDING_ADMIN_APPROVAL --admin_approve--> ADMIN_APPROVED
    PENDING_SC_APPROVAL --sc_reject--> SC_REJECTED --resend--> PENDING_SC_APPROVAL
    PENDING_ADMIN_APPROVAL --admin_reject--> ADMIN_REJECTED --resend--> PENDING_ADMIN_APPROVAL
    PENDING_ADMIN_APPROVAL --resend--> PENDING_ADMIN_APPROVAL (nudge)
"""
import logging
from collections import defaultdict

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from backend.inventory import services as stock_services
from .exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    InvalidStateError,
    PartsIssueValidationError,
)
from .models import PartsIssueRequest, PartsIssueStatus, PartsIssueStatusHistory

logger = logging.getLogger(__name__)

ADMIN_REVIEW_STATUSES = (PartsIssueStatus.PENDING_ADMIN_APPROVAL, PartsIssueStatus.SC_APPROVED)


def load_for_update(issue_id):
    """Fetch and lock a request; must be called inside ``transaction.atomic()``"""
    return PartsIssueRequest.objects.select_for_update().get(pk=issue_id)


def whole_number(value, label):
    """``value`` as an int; anything that is not a whole number is rejected, never truncated"""
    if isinstance(value, bool):
        raise PartsIssueValidationError(f"{label} must be a whole number")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise PartsIssueValidationError(f"{label} must be a whole number")
    if number != value and str(number) != str(value).strip():
        raise PartsIssueValidationError(f"{label} must be a whole number")
    return number


def check_version(issue, expected_version):
    if expected_version is None:
        return
    try:
        expected = int(expected_version)
    except (TypeError, ValueError):
        raise PartsIssueValidationError(f"Invalid version: {expected_version!r}")
    if expected != issue.version:
        raise ConcurrencyConflictError(
            f"Parts issue {issue.issue_number} was modified by someone else "
            f"(current version {issue.version}, yours {expected}). Reload and try again.",
            current_version=issue.version,
        )


def require_status(issue, allowed, operation):
    if issue.status not in allowed:
        raise InvalidStateError(
            f"Cannot {operation} parts issue {issue.issue_number} in status {issue.status}",
            status=issue.status,
        )


def require_reason(reason):
    reason = (reason or '').strip()
    if not reason:
        raise PartsIssueValidationError('A reason is required')
    return reason


def save_transition(issue, fields, action, from_status, actor, note='', changes=None):
    """Persist ``fields`` plus the bumped version and log the transition"""
    issue.version += 1
    issue.save(update_fields=list(fields) + ['version', 'updated_at'])
    PartsIssueStatusHistory.objects.create(
        issue=issue,
        action=action,
        from_status=from_status,
        to_status=issue.status,
        actor=actor,
        note=note,
        changes=changes or {},
    )


def sc_approve(issue_id, actor, expected_version=None):
    """Service-center manager approval; forwards the request to central admin"""
    with transaction.atomic():
        issue = load_for_update(issue_id)
        check_version(issue, expected_version)
        require_status(issue, (PartsIssueStatus.PENDING_SC_APPROVAL,), 'approve (service center)')

        now = timezone.now()
        from_status = issue.status
        issue.sc_manager_approved = True
        issue.sc_manager_approved_by = actor
        issue.sc_manager_approved_at = now
        issue.sent_to_admin_at = now
        issue.status = PartsIssueStatus.PENDING_ADMIN_APPROVAL
        save_transition(
            issue,
            ['sc_manager_approved', 'sc_manager_approved_by', 'sc_manager_approved_at', 'sent_to_admin_at', 'status'],
            'sc_approve', from_status, actor,
        )

    logger.info(f"Parts issue {issue.issue_number} approved by service center ({actor})")
    return issue


def sc_reject(issue_id, actor, reason, expected_version=None):
    reason = require_reason(reason)
    with transaction.atomic():
        issue = load_for_update(issue_id)
        check_version(issue, expected_version)
        require_status(issue, (PartsIssueStatus.PENDING_SC_APPROVAL,), 'reject (service center)')

        from_status = issue.status
        issue.sc_manager_rejected = True
        issue.sc_manager_rejected_by = actor
        issue.sc_manager_rejected_at = timezone.now()
        issue.sc_manager_rejection_reason = reason
        issue.status = PartsIssueStatus.SC_REJECTED
        save_transition(
            issue,
            ['sc_manager_rejected', 'sc_manager_rejected_by', 'sc_manager_rejected_at',
             'sc_manager_rejection_reason', 'status'],
            'sc_reject', from_status, actor, note=reason,
        )

    logger.info(f"Parts issue {issue.issue_number} rejected by service center: {reason}")
    return issue


def _parse_approved_quantities(approved_quantities, items_by_id):
    """Normalise ``{item_id: qty}`` (keys may arrive as strings from JSON)"""
    parsed = {}
    for raw_id, raw_qty in (approved_quantities or {}).items():
        try:
            item_id = int(raw_id)
        except (TypeError, ValueError):
            raise PartsIssueValidationError(f"Invalid item id: {raw_id!r}")
        if item_id not in items_by_id:
            raise PartsIssueValidationError(f"Item {item_id} does not belong to this request", item_id=item_id)
        quantity = whole_number(raw_qty, f"Quantity for item {item_id}")
        if quantity < 0:
            raise PartsIssueValidationError(f"Quantity for item {item_id} cannot be negative", item_id=item_id)
        parsed[item_id] = quantity
    return parsed


def _check_stock(items):
    requirements = defaultdict(int)
    parts = {}
    for item in items:
        parts[item.part_id] = item.part
        requirements[item.part_id] += item.approved_qty
    try:
        stock_services.check_availability({parts[part_id]: qty for part_id, qty in requirements.items()})
    except stock_services.InsufficientStockError as e:
        raise InsufficientStockError(
            str(e), part_number=e.part_number, requested=e.requested, available=e.available
        ) from e


def admin_approve(issue_id, actor, approved_quantities=None, expected_version=None):
    """
    Central-admin approval with per-item quantities.

    Items missing from ``approved_quantities`` are approved in full; a value
    above the requested quantity is capped at the requested quantity. Cutting
    every item to zero still yields ADMIN_APPROVED; such requests report
    ``is_fully_rejected`` and project into the rejected bucket.
    """
    with transaction.atomic():
        issue = load_for_update(issue_id)
        check_version(issue, expected_version)
        require_status(issue, ADMIN_REVIEW_STATUSES, 'approve (admin)')

        items = list(issue.items.select_related('part'))
        quantities = _parse_approved_quantities(approved_quantities, {item.id: item for item in items})

        changes = {}
        for item in items:
            given = quantities.get(item.id, item.requested_qty)
            item.approved_qty = min(item.requested_qty, given)
            item.save(update_fields=['approved_qty'])
            changes[str(item.id)] = item.approved_qty

        if settings.PARTS_ISSUE_STOCK_CONTROL:
            _check_stock(items)

        from_status = issue.status
        issue.admin_approved = True
        issue.admin_approved_by = actor
        issue.admin_approved_at = timezone.now()
        issue.status = PartsIssueStatus.ADMIN_APPROVED
        issue.recalculate_totals()
        save_transition(
            issue,
            ['admin_approved', 'admin_approved_by', 'admin_approved_at', 'status', 'total_amount'],
            'admin_approve', from_status, actor, changes={'approved_qty': changes},
        )

    if issue.is_fully_rejected:
        logger.warning(f"Parts issue {issue.issue_number} approved with zero quantity on every item")
    else:
        logger.info(f"Parts issue {issue.issue_number} approved by admin ({actor}), total {issue.total_amount}")
    return issue


def admin_reject(issue_id, actor, reason, expected_version=None):
    """Central-admin rejection; approved quantities are kept as they were"""
    reason = require_reason(reason)
    with transaction.atomic():
        issue = load_for_update(issue_id)
        check_version(issue, expected_version)
        require_status(issue, ADMIN_REVIEW_STATUSES, 'reject (admin)')

        from_status = issue.status
        issue.admin_rejected = True
        issue.admin_rejected_by = actor
        issue.admin_rejected_at = timezone.now()
        issue.admin_rejection_reason = reason
        issue.status = PartsIssueStatus.ADMIN_REJECTED
        save_transition(
            issue,
            ['admin_rejected', 'admin_rejected_by', 'admin_rejected_at', 'admin_rejection_reason', 'status'],
            'admin_reject', from_status, actor, note=reason,
        )

    logger.info(f"Parts issue {issue.issue_number} rejected by admin: {reason}")
    return issue


def resend(issue_id, actor, expected_version=None):
    """
    Send a request back for review.

    From PENDING_ADMIN_APPROVAL it only refreshes ``sent_to_admin_at``. A
    rejected request returns to the pending state of the stage that rejected
    it. Quantities and rejection details are never cleared; use
    ``is_currently_rejected`` for the present state.
    """
    with transaction.atomic():
        issue = load_for_update(issue_id)
        check_version(issue, expected_version)
        require_status(
            issue,
            (PartsIssueStatus.PENDING_ADMIN_APPROVAL, PartsIssueStatus.ADMIN_REJECTED, PartsIssueStatus.SC_REJECTED),
            'resend',
        )

        from_status = issue.status
        fields = ['resend_count']
        if issue.status == PartsIssueStatus.SC_REJECTED:
            issue.status = PartsIssueStatus.PENDING_SC_APPROVAL
            fields.append('status')
        else:
            issue.status = PartsIssueStatus.PENDING_ADMIN_APPROVAL
            issue.sent_to_admin_at = timezone.now()
            fields.extend(['status', 'sent_to_admin_at'])
        issue.resend_count += 1
        save_transition(issue, fields, 'resend', from_status, actor)

    logger.info(f"Parts issue {issue.issue_number} resent ({from_status} -> {issue.status})")
    return issue
