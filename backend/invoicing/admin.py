from django.contrib import admin
from .models import Invoice, InvoiceItem


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    fields = ['product', 'description', 'quantity', 'unit_price', 'length', 'width', 'area', 'total_price']
    readonly_fields = ['area', 'total_price']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'customer', 'issue_date', 'due_date', 'status', 'total_amount', 'created_at']
    list_filter = ['status', 'issue_date', 'due_date']
    search_fields = ['invoice_number', 'customer__name', 'customer__email']
    ordering = ['-created_at']
    readonly_fields = ['subtotal', 'tax_amount', 'total_amount', 'paid_at', 'created_at', 'updated_at']
    inlines = [InvoiceItemInline]
