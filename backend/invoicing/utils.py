"""
Utility functions for invoice operations
"""
import logging
from collections import defaultdict
from django.utils import timezone
from backend.catalog.models import Product
from backend.core.exceptions import PricingError
from .models import Invoice, InvoiceItem
from .pricing import price_item_data, update_invoice_totals, normalize_tax_rate

logger = logging.getLogger(__name__)

ITEM_REQUIRED_FIELDS = ['product', 'description', 'quantity', 'unit_price']


def generate_invoice_number(day=None):
    """
    INV-YYYYMMDD-NNN where NNN is one more than the number of invoices
    created that day. Skips forward if the number is already taken.
    """
    day = day or timezone.localdate()
    sequence = Invoice.objects.filter(created_at__date=day).count() + 1
    invoice_number = f"INV-{day.strftime('%Y%m%d')}-{sequence:03d}"
    while Invoice.objects.filter(invoice_number=invoice_number).exists():
        sequence += 1
        invoice_number = f"INV-{day.strftime('%Y%m%d')}-{sequence:03d}"
    return invoice_number


def resolve_item_products(items, required_fields=ITEM_REQUIRED_FIELDS):
    """
    Validate item payloads and look up their products.

    Returns a list of (item, product) pairs. Raises PricingError for a
    missing field or an unknown product.
    """
    if not isinstance(items, list) or not items:
        raise PricingError('At least one item is required')

    for item in items:
        if not isinstance(item, dict) or any(item.get(field) in (None, '') for field in required_fields):
            raise PricingError('Each item must have ' + ', '.join(f.replace('_', ' ') for f in required_fields))

    product_ids = {int(item['product']) for item in items if str(item['product']).isdigit()}
    products = Product.objects.in_bulk(product_ids)

    resolved = []
    for item in items:
        product = products.get(int(item['product'])) if str(item['product']).isdigit() else None
        if product is None:
            raise PricingError(f"Product {item['product']} not found")
        resolved.append((item, product))
    return resolved


def create_invoice_item(invoice, item, product):
    return InvoiceItem.objects.create(
        invoice=invoice,
        product=product,
        description=item['description'],
        **price_item_data(item, product)
    )


def sync_invoice_items(invoice, items):
    """
    Make the invoice's items match ``items``: update those whose id is
    known, create those without one, delete existing items not present.
    """
    resolved = resolve_item_products(items)
    existing = {item.id: item for item in invoice.items.all()}
    kept_ids = set()

    for item, product in resolved:
        item_id = item.get('id')
        line = existing.get(int(item_id)) if item_id not in (None, '') and str(item_id).isdigit() else None
        if line is None:
            line = create_invoice_item(invoice, item, product)
        else:
            line.product = product
            line.description = item['description']
            for field, value in price_item_data(item, product).items():
                setattr(line, field, value)
            line.save()
        kept_ids.add(line.id)

    removed = [item_id for item_id in existing if item_id not in kept_ids]
    if removed:
        invoice.items.filter(id__in=removed).delete()
    logger.debug(f"Synced items for invoice {invoice.invoice_number}: {len(kept_ids)} kept, {len(removed)} removed")


def sync_job_products(invoice):
    """
    Propagate invoice items to the linked job's products, matched by product.

    A product with one job product per invoice line is updated line for line
    and keeps its recorded progress. A product whose work was split into a
    different number of job products is left as it is. Job products for
    products no longer on the invoice are removed.
    """
    from backend.jobs.models import JobProduct

    job = getattr(invoice, 'job', None)
    if job is None:
        return

    job_products = defaultdict(list)
    for job_product in job.job_products.all().order_by('id'):
        job_products[job_product.product_id].append(job_product)

    items = defaultdict(list)
    for item in invoice.items.all().order_by('id'):
        items[item.product_id].append(item)

    for product_id, product_items in items.items():
        lines = job_products.get(product_id, [])
        if not lines:
            for item in product_items:
                JobProduct.objects.create(
                    job=job,
                    product_id=product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                    notes=item.description,
                    completed_quantity=0,
                )
        elif len(lines) == len(product_items):
            for job_product, item in zip(lines, product_items):
                job_product.quantity = item.quantity
                job_product.unit_price = item.unit_price
                job_product.total_price = item.total_price
                job_product.notes = item.description
                job_product.completed_quantity = min(job_product.completed_quantity, item.quantity)
                job_product.save()
        else:
            logger.debug(f"Job {job.id} has {len(lines)} lines for product {product_id}, leaving them unchanged")

    stale = job.job_products.exclude(product_id__in=list(items))
    removed = stale.count()
    if removed:
        stale.delete()
    logger.info(f"Propagated invoice {invoice.invoice_number} items to job {job.id} ({removed} job products removed)")


def create_invoice(customer, lines, issue_date, due_date, tax_rate, created_by=None, notes=''):
    """
    Create an invoice from (item, product) pairs, pricing each line and the totals.
    Callers wrap this in a transaction.
    """
    invoice = Invoice.objects.create(
        invoice_number=generate_invoice_number(),
        customer=customer,
        issue_date=issue_date,
        due_date=due_date,
        status='PENDING',
        tax_rate=normalize_tax_rate(tax_rate),
        notes=notes or '',
        created_by=created_by,
    )
    for item, product in lines:
        create_invoice_item(invoice, item, product)
    update_invoice_totals(invoice)
    logger.info(f"Invoice created: {invoice.invoice_number} for {customer.name} total {invoice.total_amount}")
    return invoice
