from django.urls import path
from .views import (
    job_list_create, job_detail, job_status, job_product_update, job_progress,
    job_create_from_invoice, job_assignments, job_assignment_delete, employee_jobs
)

urlpatterns = [
    # Job endpoints
    path('jobs/', job_list_create, name='job-list-create'),
    path('jobs/create-from-invoice/', job_create_from_invoice, name='job-create-from-invoice'),
    path('jobs/<int:pk>/', job_detail, name='job-detail'),
    path('jobs/<int:pk>/status/', job_status, name='job-status'),
    path('jobs/<int:pk>/progress/', job_progress, name='job-progress'),
    path('jobs/<int:pk>/products/<int:jp_id>/', job_product_update, name='job-product-update'),

    # Assignments
    path('jobs/<int:pk>/assignments/', job_assignments, name='job-assignments'),
    path('jobs/<int:pk>/assignments/<int:user_id>/', job_assignment_delete, name='job-assignment-delete'),
    path('employee/jobs/', employee_jobs, name='employee-jobs'),
]
