import django_filters
from .models import HourLog, Attendance


class HourLogFilter(django_filters.FilterSet):
    """Filter for HourLog model using django-filter"""
    user = django_filters.NumberFilter(field_name='user_id', lookup_expr='exact')
    job = django_filters.NumberFilter(field_name='job_id', lookup_expr='exact')
    start_date = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    end_date = django_filters.DateFilter(field_name='date', lookup_expr='lte')
    is_active = django_filters.BooleanFilter(field_name='is_active')
    is_paid = django_filters.BooleanFilter(field_name='is_paid')

    class Meta:
        model = HourLog
        fields = ['user', 'job', 'start_date', 'end_date', 'is_active', 'is_paid']


class AttendanceFilter(django_filters.FilterSet):
    user = django_filters.NumberFilter(field_name='user_id', lookup_expr='exact')
    date = django_filters.DateFilter(field_name='date', lookup_expr='exact')
    start_date = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    end_date = django_filters.DateFilter(field_name='date', lookup_expr='lte')

    class Meta:
        model = Attendance
        fields = ['user', 'date', 'start_date', 'end_date']
