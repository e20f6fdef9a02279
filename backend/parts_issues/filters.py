import django_filters
from django.db.models import Q
from .models import PartsIssueItem, PartsIssueRequest, PartsIssueStatus
from .projection import APPROVED, BUCKETS, REJECTED, bucket_statuses


class PartsIssueFilter(django_filters.FilterSet):
    """Filter for the parts-issue list; ``status`` accepts legacy spellings"""

    status = django_filters.CharFilter(method='filter_status', label='Status')
    service_center = django_filters.NumberFilter(field_name='service_center_id')
    job_card = django_filters.NumberFilter(field_name='job_card_id')
    bucket = django_filters.ChoiceFilter(method='filter_bucket', choices=[(b, b) for b in BUCKETS])
    search = django_filters.CharFilter(method='filter_search', label='Search')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = PartsIssueRequest
        fields = ['status', 'service_center', 'job_card', 'bucket', 'search', 'date_from', 'date_to']

    def filter_status(self, queryset, name, value):
        statuses = []
        for raw in value.split(','):
            try:
                statuses.append(PartsIssueStatus.normalize(raw))
            except ValueError:
                continue
        if not statuses:
            return queryset.none()
        return queryset.filter(status__in=statuses)

    def filter_bucket(self, queryset, name, value):
        # Approved with every quantity at zero belongs to the rejected bucket
        zero_approval = (
            Q(status=PartsIssueStatus.ADMIN_APPROVED, admin_approved=True)
            & Q(pk__in=PartsIssueItem.objects.values('issue_id'))
            & ~Q(pk__in=PartsIssueItem.objects.filter(approved_qty__gt=0).values('issue_id'))
        )

        matches = Q(status__in=bucket_statuses(value))
        if value == REJECTED:
            return queryset.filter(matches | zero_approval)
        if value == APPROVED:
            return queryset.filter(matches).exclude(zero_approval)
        return queryset.filter(matches)

    def filter_search(self, queryset, name, value):
        for word in (value or '').split():
            queryset = queryset.filter(
                Q(issue_number__icontains=word) |
                Q(job_card__job_card_number__icontains=word) |
                Q(items__sub_po_number__icontains=word)
            )
        return queryset.distinct()
