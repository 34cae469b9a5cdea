"""
Helpers for sales access checks and quotation pricing
"""
from decimal import Decimal
from django.utils import timezone
from backend.core.permissions import is_admin_user
from backend.core.utils import quantize_money
from backend.invoicing.pricing import price_item_data
from backend.invoicing.utils import resolve_item_products
from .models import SalesEmployee, Quotation

QUOTE_ITEM_REQUIRED_FIELDS = ['product', 'quantity', 'unit_price']


def is_sales_employee(user):
    return SalesEmployee.objects.filter(user=user, is_active=True).exists()


def has_sales_access(user):
    """Admins and active sales employees may use the CRM"""
    return is_admin_user(user) or is_sales_employee(user)


def generate_quote_number(day=None):
    """Q-YYYYMMDD-NNNN, sequential per day"""
    day = day or timezone.localdate()
    prefix = f"Q-{day.strftime('%Y%m%d')}-"
    sequence = Quotation.objects.filter(quote_number__startswith=prefix).count() + 1
    quote_number = f"{prefix}{sequence:04d}"
    while Quotation.objects.filter(quote_number=quote_number).exists():
        sequence += 1
        quote_number = f"{prefix}{sequence:04d}"
    return quote_number


def price_quote_items(items):
    """
    Price quote lines through the invoice pricing layer.
    Returns (priced_items, total_amount); no tax is applied to quotes.
    """
    priced = []
    total = Decimal('0.00')
    for item, product in resolve_item_products(items, QUOTE_ITEM_REQUIRED_FIELDS):
        data = price_item_data(item, product)
        total += data['total_price']
        priced.append({
            'product': product.id,
            'product_name': product.name,
            'product_class': product.product_class,
            'description': item.get('description') or product.name,
            'quantity': data['quantity'],
            'unit_price': str(data['unit_price']),
            'length': str(data['length']) if data['length'] is not None else None,
            'width': str(data['width']) if data['width'] is not None else None,
            'area': str(data['area']) if data['area'] is not None else None,
            'total_price': str(data['total_price']),
        })
    return priced, quantize_money(total)
