from django.contrib import admin
from .models import SalesEmployee, SalesActivity, FollowUp, Quotation


@admin.register(SalesEmployee)
class SalesEmployeeAdmin(admin.ModelAdmin):
    list_display = ['user', 'is_active', 'created_at']
    list_filter = ['is_active']


class FollowUpInline(admin.TabularInline):
    model = FollowUp
    extra = 0


@admin.register(SalesActivity)
class SalesActivityAdmin(admin.ModelAdmin):
    list_display = ['shop_name', 'contact_name', 'employee', 'status', 'date']
    list_filter = ['status', 'date']
    search_fields = ['shop_name', 'contact_name', 'contact_email']
    inlines = [FollowUpInline]


@admin.register(Quotation)
class QuotationAdmin(admin.ModelAdmin):
    list_display = ['quote_number', 'customer', 'status', 'total_amount', 'expires_at', 'created_at']
    list_filter = ['status']
    search_fields = ['quote_number', 'customer__name']
    readonly_fields = ['quote_number', 'total_amount', 'items', 'created_at', 'updated_at']
