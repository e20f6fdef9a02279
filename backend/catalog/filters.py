import django_filters
from django.db.models import Q
from .models import Part


class PartFilter(django_filters.FilterSet):
    """Filter for the parts catalog"""

    # Multi-word search: every word must appear in the name, part number or HSN code
    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.CharFilter(field_name='category', lookup_expr='iexact')
    active = django_filters.CharFilter(method='filter_active', label='Active')
    in_stock = django_filters.CharFilter(method='filter_in_stock', label='In Stock')

    class Meta:
        model = Part
        fields = ['search', 'category', 'active', 'in_stock']

    def filter_search(self, queryset, name, value):
        words = (value or '').split()
        for word in words:
            queryset = queryset.filter(
                Q(name__icontains=word) |
                Q(part_number__icontains=word) |
                Q(hsn_code__icontains=word)
            )
        return queryset

    def filter_active(self, queryset, name, value):
        if value == 'true':
            return queryset.filter(is_active=True)
        if value == 'false':
            return queryset.filter(is_active=False)
        return queryset

    def filter_in_stock(self, queryset, name, value):
        if value == 'true':
            return queryset.filter(central_stock__quantity__gt=0)
        if value == 'false':
            return queryset.filter(Q(central_stock__isnull=True) | Q(central_stock__quantity__lte=0))
        return queryset
