from django.urls import path
from .views import (
    sales_status_toggle, sales_status_check, activity_list_create, activity_detail,
    activity_follow_ups, follow_up_detail, sales_pipeline,
    quote_list_create, quote_detail, quote_convert
)

urlpatterns = [
    # Sales team membership
    path('employees/<int:pk>/sales-status/', sales_status_toggle, name='sales-status-toggle'),
    path('employees/<int:pk>/sales-status/check/', sales_status_check, name='sales-status-check'),

    # CRM
    path('sales/activities/', activity_list_create, name='sales-activity-list-create'),
    path('sales/activities/<int:pk>/', activity_detail, name='sales-activity-detail'),
    path('sales/activities/<int:pk>/follow-ups/', activity_follow_ups, name='sales-activity-follow-ups'),
    path('sales/follow-ups/<int:pk>/', follow_up_detail, name='sales-follow-up-detail'),
    path('sales/pipeline/', sales_pipeline, name='sales-pipeline'),

    # Quotations
    path('quotes/', quote_list_create, name='quote-list-create'),
    path('quotes/<int:pk>/', quote_detail, name='quote-detail'),
    path('quotes/<int:pk>/convert/', quote_convert, name='quote-convert'),
]
