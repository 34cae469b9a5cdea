from django.urls import path
from .views import invoice_list_create, invoice_detail, invoice_status, invoice_calculate

urlpatterns = [
    # Invoice endpoints
    path('invoices/', invoice_list_create, name='invoice-list-create'),
    path('invoices/calculate/', invoice_calculate, name='invoice-calculate'),
    path('invoices/<int:pk>/', invoice_detail, name='invoice-detail'),
    path('invoices/<int:pk>/status/', invoice_status, name='invoice-status'),
]
