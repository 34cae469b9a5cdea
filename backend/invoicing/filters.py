import django_filters
from django.db.models import Q
from django.utils import timezone
from .models import Invoice


class InvoiceFilter(django_filters.FilterSet):
    """Filter for Invoice model using django-filter"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.ChoiceFilter(field_name='status', choices=Invoice.STATUS_CHOICES)
    customer = django_filters.NumberFilter(field_name='customer_id', lookup_expr='exact')
    date_from = django_filters.DateFilter(field_name='issue_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='issue_date', lookup_expr='lte')
    overdue = django_filters.BooleanFilter(method='filter_overdue', label='Overdue')

    class Meta:
        model = Invoice
        fields = ['search', 'status', 'customer', 'date_from', 'date_to', 'overdue']

    def filter_search(self, queryset, name, value):
        search = (value or '').strip()
        if not search:
            return queryset
        return queryset.filter(
            Q(invoice_number__icontains=search) |
            Q(customer__name__icontains=search)
        )

    def filter_overdue(self, queryset, name, value):
        """Outstanding invoices past their due date, whether or not already flagged OVERDUE"""
        if not value:
            return queryset
        return queryset.filter(
            status__in=Invoice.OUTSTANDING_STATUSES,
            due_date__lt=timezone.localdate()
        )
