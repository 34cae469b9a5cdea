from django.contrib import admin
from .models import PortalUser, CustomerProductCatalog, CustomerOrder, CustomerOrderItem


@admin.register(PortalUser)
class PortalUserAdmin(admin.ModelAdmin):
    list_display = ['email', 'first_name', 'last_name', 'customer', 'role', 'status', 'last_login']
    list_filter = ['role', 'status']
    search_fields = ['email', 'first_name', 'last_name', 'customer__name']
    exclude = ['password']
    readonly_fields = ['last_login', 'created_at', 'updated_at']


@admin.register(CustomerProductCatalog)
class CustomerProductCatalogAdmin(admin.ModelAdmin):
    list_display = ['customer', 'product', 'custom_price', 'is_visible', 'customer_product_code']
    list_filter = ['is_visible']
    search_fields = ['customer__name', 'product__name', 'product__sku', 'customer_product_code']


class CustomerOrderItemInline(admin.TabularInline):
    model = CustomerOrderItem
    extra = 0
    readonly_fields = ['total_price']


@admin.register(CustomerOrder)
class CustomerOrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'customer', 'portal_user', 'status', 'total_amount', 'invoice', 'created_at']
    list_filter = ['status']
    search_fields = ['order_number', 'customer__name', 'portal_user__email']
    readonly_fields = ['order_number', 'total_amount', 'created_at', 'updated_at']
    inlines = [CustomerOrderItemInline]
