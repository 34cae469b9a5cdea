from django.urls import path
from .views import (
    product_list_create, product_detail, product_by_class,
    product_variants, product_variant_detail
)

urlpatterns = [
    # Product endpoints
    path('products/', product_list_create, name='product-list-create'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/class/<str:product_class>/', product_by_class, name='product-by-class'),

    # Variant endpoints
    path('products/<int:pk>/variants/', product_variants, name='product-variants'),
    path('products/variants/<int:pk>/', product_variant_detail, name='product-variant-detail'),
]
