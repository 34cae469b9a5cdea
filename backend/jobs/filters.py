from datetime import timedelta
import django_filters
from django.utils import timezone
from .models import Job


class JobFilter(django_filters.FilterSet):
    """Filter for Job model using django-filter"""
    status = django_filters.ChoiceFilter(field_name='status', choices=Job.STATUS_CHOICES)
    days = django_filters.NumberFilter(method='filter_days', label='Updated within days')
    invoice = django_filters.NumberFilter(field_name='invoice_id', lookup_expr='exact')
    customer = django_filters.NumberFilter(field_name='customer_id', lookup_expr='exact')
    assigned_to = django_filters.NumberFilter(field_name='assigned_to_id', lookup_expr='exact')
    priority = django_filters.ChoiceFilter(field_name='priority', choices=Job.PRIORITY_CHOICES)

    class Meta:
        model = Job
        fields = ['status', 'days', 'invoice', 'customer', 'assigned_to', 'priority']

    def filter_days(self, queryset, name, value):
        if value is None or value <= 0:
            return queryset
        return queryset.filter(updated_at__gte=timezone.now() - timedelta(days=int(value)))
