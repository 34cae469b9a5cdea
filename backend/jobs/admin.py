from django.contrib import admin
from .models import Job, JobProduct, JobAssignment, ProgressUpdate


class JobProductInline(admin.TabularInline):
    model = JobProduct
    extra = 0
    fields = ['product', 'quantity', 'unit_price', 'total_price', 'completed_quantity', 'ink_usage_in_ml', 'time_taken']


class ProgressUpdateInline(admin.TabularInline):
    model = ProgressUpdate
    extra = 0
    readonly_fields = ['user', 'content', 'created_at']


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ['title', 'customer', 'status', 'priority', 'due_date', 'assigned_to', 'updated_at']
    list_filter = ['status', 'priority']
    search_fields = ['title', 'description', 'customer__name', 'invoice__invoice_number']
    inlines = [JobProductInline, ProgressUpdateInline]


@admin.register(JobAssignment)
class JobAssignmentAdmin(admin.ModelAdmin):
    list_display = ['job', 'user', 'created_at']
    search_fields = ['job__title', 'user__username']
