"""
Read-only projection of a parts-issue request into the bucket and badges shown
in list views. Nothing here is stored; it is recomputed on every read.

Buckets:
    pending   - waiting on the service center manager or central admin
    approved  - admin approved, parts still to be dispatched
    rejected  - rejected at either stage, or approved with every quantity at zero
    issued    - dispatched in full or received
"""
from .models import PartsIssueStatus

PENDING = 'pending'
APPROVED = 'approved'
REJECTED = 'rejected'
ISSUED = 'issued'
BUCKETS = (PENDING, APPROVED, REJECTED, ISSUED)

STATUS_BUCKETS = {
    PartsIssueStatus.PENDING_SC_APPROVAL: PENDING,
    PartsIssueStatus.SC_APPROVED: PENDING,
    PartsIssueStatus.PENDING_ADMIN_APPROVAL: PENDING,
    PartsIssueStatus.ADMIN_APPROVED: APPROVED,
    PartsIssueStatus.DISPATCHED: ISSUED,
    PartsIssueStatus.COMPLETED: ISSUED,
    PartsIssueStatus.SC_REJECTED: REJECTED,
    PartsIssueStatus.ADMIN_REJECTED: REJECTED,
}


def bucket_statuses(bucket):
    """Statuses that land in ``bucket`` before quantity-based adjustments"""
    return [status for status, name in STATUS_BUCKETS.items() if name == bucket]


def project_values(status, sc_manager_approved, admin_approved, resend_count, quantities):
    """
    Args:
        status: status value, legacy spellings accepted
        quantities: iterable of ``(approved_qty, issued_qty)`` per item
    """
    status = PartsIssueStatus.normalize(status)
    quantities = list(quantities)

    fully_rejected = admin_approved and bool(quantities) and all(approved == 0 for approved, _ in quantities)
    partially_dispatched = any(issued > 0 for _, issued in quantities) and \
        any(issued < approved for approved, issued in quantities)

    bucket = STATUS_BUCKETS[status]
    if status == PartsIssueStatus.ADMIN_APPROVED and fully_rejected:
        bucket = REJECTED

    badges = []
    if sc_manager_approved:
        badges.append('sc_approved')
    if admin_approved:
        badges.append('admin_approved')
    if status == PartsIssueStatus.SC_REJECTED:
        badges.append('sc_rejected')
    if status == PartsIssueStatus.ADMIN_REJECTED:
        badges.append('admin_rejected')
    if resend_count and bucket == PENDING:
        badges.append('resent')
    if partially_dispatched:
        badges.append('partially_dispatched')
    if fully_rejected:
        badges.append('zero_quantity_approval')
    if status == PartsIssueStatus.COMPLETED:
        badges.append('received')

    return {'bucket': bucket, 'status': status.value, 'badges': badges}


def project(issue):
    """Project a PartsIssueRequest instance"""
    return project_values(
        issue.status,
        issue.sc_manager_approved,
        issue.admin_approved,
        issue.resend_count,
        [(item.approved_qty, item.issued_qty) for item in issue.items.all()],
    )


def project_payload(data):
    """Project a parts issue as serialized by the API (used by the poller)"""
    return project_values(
        data.get('status'),
        data.get('sc_manager_approved', False),
        data.get('admin_approved', False),
        data.get('resend_count', 0),
        [(item.get('approved_qty', 0), item.get('issued_qty', 0)) for item in data.get('items', [])],
    )


def summarize(issues):
    """Count requests per bucket"""
    counts = {bucket: 0 for bucket in BUCKETS}
    for issue in issues:
        counts[project(issue)['bucket']] += 1
    counts['total'] = sum(counts[bucket] for bucket in BUCKETS)
    return counts
