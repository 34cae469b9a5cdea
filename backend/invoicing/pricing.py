"""
Line-item and invoice pricing.

Every place that prices goods (invoice create and edit, the pricing preview,
quotes and portal orders) goes through these functions so the invariants
hold everywhere:

    area        = length x width                      (wide-format only)
    total_price = area x unit_price x quantity        (wide-format)
    total_price = quantity x unit_price               (all other classes)
    tax_amount  = subtotal x tax_rate
    total       = subtotal + tax_amount

All amounts are Decimals rounded half-up to 2 places.
"""
from collections import namedtuple
from decimal import Decimal
from django.conf import settings
from backend.core.exceptions import PricingError
from backend.core.utils import quantize_money, to_decimal, to_whole_number, get_decimal_setting
from .models import InvoiceItem

WIDE_FORMAT = 'WIDE_FORMAT'

LinePrice = namedtuple('LinePrice', ['area', 'total_price'])
InvoiceTotals = namedtuple('InvoiceTotals', ['subtotal', 'tax_amount', 'total_amount'])


def default_tax_rate():
    """Tax rate from the settings table, falling back to settings.PRINTSHOP"""
    return normalize_tax_rate(get_decimal_setting('DEFAULT_TAX_RATE', settings.PRINTSHOP['DEFAULT_TAX_RATE']))


def normalize_tax_rate(value):
    """
    Accept a tax rate as a fraction (0.2) or a percentage (20) and return
    the fraction. ``None`` or blank means the configured default.
    """
    if value is None or value == '':
        return default_tax_rate()
    rate = to_decimal(value)
    if rate is None:
        raise PricingError(f'Invalid tax rate: {value}')
    if rate > 1:
        rate = rate / Decimal('100')
    if rate < 0 or rate > 1:
        raise PricingError(f'Tax rate must be between 0 and 100%: {value}')
    return rate.quantize(Decimal('0.0001'))


def compute_area(length, width):
    length = to_decimal(length)
    width = to_decimal(width)
    if length is None or width is None:
        raise PricingError('Length and width are required for wide-format items.')
    if length <= 0 or width <= 0:
        raise PricingError('Length and width must be greater than zero.')
    return quantize_money(length * width)


def parse_quantity(quantity):
    parsed = to_whole_number(quantity)
    if parsed is None:
        raise PricingError(f"Invalid quantity: {quantity}")
    if parsed < 1:
        raise PricingError('Quantity must be at least 1.')
    return parsed


def parse_unit_price(unit_price):
    price = to_decimal(unit_price)
    if price is None:
        raise PricingError(f'Invalid unit price: {unit_price}')
    if price < 0:
        raise PricingError('Unit price cannot be negative.')
    return price


def price_line(product_class, quantity, unit_price, length=None, width=None):
    """Price a single line. Returns LinePrice(area, total_price)."""
    quantity = parse_quantity(quantity)
    unit_price = parse_unit_price(unit_price)

    if product_class == WIDE_FORMAT:
        area = compute_area(length, width)
        return LinePrice(area=area, total_price=quantize_money(area * unit_price * quantity))

    area = None
    if to_decimal(length) is not None and to_decimal(width) is not None:
        area = quantize_money(to_decimal(length) * to_decimal(width))
    return LinePrice(area=area, total_price=quantize_money(unit_price * quantity))


def compute_totals(line_totals, tax_rate):
    """Sum line totals and apply tax. Returns InvoiceTotals."""
    rate = normalize_tax_rate(tax_rate)
    subtotal = quantize_money(sum((Decimal(str(total)) for total in line_totals), Decimal('0.00')))
    tax_amount = quantize_money(subtotal * rate)
    return InvoiceTotals(subtotal=subtotal, tax_amount=tax_amount, total_amount=subtotal + tax_amount)


def optional_dimension(value):
    value = to_decimal(value)
    return quantize_money(value) if value is not None else None


def price_item_data(item, product):
    """
    Price one item payload (dict with quantity, unit_price, length, width)
    for ``product`` and return the fields to store on a line model.
    """
    line = price_line(
        product.product_class,
        item.get('quantity'),
        item.get('unit_price'),
        item.get('length'),
        item.get('width'),
    )
    return {
        'quantity': parse_quantity(item.get('quantity')),
        'unit_price': quantize_money(parse_unit_price(item.get('unit_price'))),
        'length': optional_dimension(item.get('length')),
        'width': optional_dimension(item.get('width')),
        'area': line.area,
        'total_price': line.total_price,
    }


def update_invoice_totals(invoice):
    """Recalculate subtotal, tax and total from the invoice's saved items"""
    # Bypasses any prefetched items cache
    line_totals = InvoiceItem.objects.filter(invoice=invoice).values_list('total_price', flat=True)
    totals = compute_totals(list(line_totals), invoice.tax_rate)
    invoice.subtotal = totals.subtotal
    invoice.tax_amount = totals.tax_amount
    invoice.total_amount = totals.total_amount
    invoice.save(update_fields=['subtotal', 'tax_amount', 'total_amount', 'updated_at'])
    return totals
