from django.urls import path
from .views import (
    portal_user_list_create, portal_user_detail, customer_catalog, customer_catalog_stats,
    order_admin_list, order_status_update, order_convert,
    portal_login, portal_verify, portal_products, portal_product_detail,
    portal_invoices, portal_invoice_detail, portal_orders
)

urlpatterns = [
    # Staff management of the portal
    path('portal/users/', portal_user_list_create, name='portal-user-list-create'),
    path('portal/users/<int:pk>/', portal_user_detail, name='portal-user-detail'),
    path('portal/catalog/', customer_catalog, name='portal-catalog'),
    path('portal/catalog/stats/', customer_catalog_stats, name='portal-catalog-stats'),
    path('portal/orders/admin/', order_admin_list, name='portal-order-admin-list'),
    path('portal/orders/<int:pk>/status/', order_status_update, name='portal-order-status'),
    path('portal/orders/<int:pk>/convert/', order_convert, name='portal-order-convert'),

    # Customer-facing portal
    path('portal/auth/login/', portal_login, name='portal-login'),
    path('portal/auth/verify/', portal_verify, name='portal-verify'),
    path('portal/products/', portal_products, name='portal-products'),
    path('portal/products/<int:pk>/', portal_product_detail, name='portal-product-detail'),
    path('portal/invoices/', portal_invoices, name='portal-invoices'),
    path('portal/invoices/<int:pk>/', portal_invoice_detail, name='portal-invoice-detail'),
    path('portal/orders/', portal_orders, name='portal-orders'),
]
