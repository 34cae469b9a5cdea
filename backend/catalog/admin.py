from django.contrib import admin
from .models import Product, ProductVariant


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0
    fields = ['name', 'price_adjustment', 'is_active']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'product_class', 'base_price', 'unit', 'is_active', 'created_at']
    list_filter = ['product_class', 'is_active', 'created_at']
    search_fields = ['name', 'sku', 'description']
    ordering = ['name']
    inlines = [ProductVariantInline]


@admin.register(ProductVariant)
class ProductVariantAdmin(admin.ModelAdmin):
    list_display = ['product', 'name', 'price_adjustment', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name', 'product__name', 'product__sku']
    ordering = ['product__name', 'name']
