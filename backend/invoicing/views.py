import logging
from datetime import datetime
from django.core.paginator import Paginator
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from backend.catalog.models import Product
from backend.core.utils import create_audit_log, to_whole_number
from backend.parties.models import Customer
from .filters import InvoiceFilter
from .models import Invoice
from .pricing import compute_totals, normalize_tax_rate, parse_quantity, price_line, update_invoice_totals
from .serializers import InvoiceSerializer, InvoiceDetailSerializer, InvoiceHeaderSerializer
from .utils import create_invoice, resolve_item_products, sync_invoice_items, sync_job_products

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a YYYY-MM-DD string (or pass a date through); None if invalid"""
    if hasattr(value, 'year'):
        return value
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except (TypeError, ValueError):
        return None


def apply_invoice_status(request, invoice, new_status):
    """
    Move an invoice to ``new_status`` if the transition is allowed.
    Returns an error message, or None on success.
    """
    valid_statuses = [choice[0] for choice in Invoice.STATUS_CHOICES]
    if new_status not in valid_statuses:
        return f'Invalid status: {new_status}'
    if new_status == invoice.status:
        return None
    if not invoice.can_transition_to(new_status):
        return f'Cannot change invoice status from {invoice.status} to {new_status}'

    old_status = invoice.status
    invoice.status = new_status
    if new_status == 'PAID':
        invoice.paid_at = timezone.now()
    elif old_status == 'PAID':
        invoice.paid_at = None
    invoice.save(update_fields=['status', 'paid_at', 'updated_at'])

    logger.info(f"Invoice {invoice.invoice_number} status changed: {old_status} -> {new_status}")
    create_audit_log(
        request=request,
        action='invoice_status',
        model_name='Invoice',
        object_id=invoice.id,
        object_name=invoice.invoice_number,
        object_reference=invoice.invoice_number,
        changes={'invoice_status': {'old': old_status, 'new': new_status}},
    )
    return None


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def invoice_list_create(request):
    """List invoices or create a new invoice with its line items"""
    if request.method == 'GET':
        queryset = Invoice.objects.select_related('customer').prefetch_related('items__product')
        queryset = InvoiceFilter(request.query_params, queryset=queryset).qs
        queryset = queryset.order_by('-created_at', '-id')

        page = to_whole_number(request.query_params.get('page'), default=1)
        limit = max(to_whole_number(request.query_params.get('limit'), default=50), 1)

        paginator = Paginator(queryset, limit)
        page_obj = paginator.get_page(page)

        serializer = InvoiceSerializer(page_obj, many=True)
        return Response({
            'results': serializer.data,
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page_obj.number,
            'page_size': limit,
            'total_pages': paginator.num_pages,
        })

    data = request.data
    customer_id = data.get('customer')
    items = data.get('invoice_items')
    if not customer_id or not data.get('issue_date') or not data.get('due_date') or not items:
        return Response(
            {'error': 'Customer, issue date, due date and at least one invoice item are required'},
            status=status.HTTP_400_BAD_REQUEST
        )

    issue_date = parse_date(data.get('issue_date'))
    due_date = parse_date(data.get('due_date'))
    if issue_date is None or due_date is None:
        return Response({'error': 'Dates must be in YYYY-MM-DD format'}, status=status.HTTP_400_BAD_REQUEST)
    if due_date < issue_date:
        return Response({'error': 'Due date cannot be before the issue date'}, status=status.HTTP_400_BAD_REQUEST)

    customer = Customer.objects.filter(pk=customer_id).first() if str(customer_id).isdigit() else None
    if customer is None:
        return Response({'error': 'Customer not found'}, status=status.HTTP_404_NOT_FOUND)

    lines = resolve_item_products(items)
    with transaction.atomic():
        invoice = create_invoice(
            customer=customer,
            lines=lines,
            issue_date=issue_date,
            due_date=due_date,
            tax_rate=data.get('tax_rate'),
            created_by=request.user,
            notes=data.get('notes', ''),
        )

    create_audit_log(
        request=request,
        action='invoice_create',
        model_name='Invoice',
        object_id=invoice.id,
        object_name=invoice.invoice_number,
        object_reference=invoice.invoice_number,
        changes={
            'customer': customer.name,
            'subtotal': str(invoice.subtotal),
            'tax_amount': str(invoice.tax_amount),
            'total_amount': str(invoice.total_amount),
            'items_count': len(lines),
        },
    )
    return Response(InvoiceDetailSerializer(invoice).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def invoice_detail(request, pk):
    """Retrieve, update or delete an invoice"""
    invoice = get_object_or_404(
        Invoice.objects.select_related('customer').prefetch_related('items__product'),
        pk=pk
    )

    if request.method == 'GET':
        return Response(InvoiceDetailSerializer(invoice).data)

    if request.method == 'DELETE':
        invoice_number = invoice.invoice_number
        invoice_id = invoice.id
        with transaction.atomic():
            invoice.items.all().delete()
            invoice.delete()
        logger.info(f"Invoice deleted: {invoice_number}")
        create_audit_log(
            request=request,
            action='delete',
            model_name='Invoice',
            object_id=invoice_id,
            object_name=invoice_number,
            object_reference=invoice_number,
        )
        return Response({'message': 'Invoice deleted successfully'})

    # PUT / PATCH: header fields, tax rate, status and items are each optional
    header = InvoiceHeaderSerializer(invoice, data=request.data, partial=True)
    if not header.is_valid():
        return Response(header.errors, status=status.HTTP_400_BAD_REQUEST)

    old_total = invoice.total_amount
    with transaction.atomic():
        invoice = header.save()

        if 'tax_rate' in request.data:
            invoice.tax_rate = normalize_tax_rate(request.data.get('tax_rate'))
            invoice.save(update_fields=['tax_rate', 'updated_at'])

        update_items = 'invoice_items' in request.data
        if update_items:
            sync_invoice_items(invoice, request.data.get('invoice_items'))

        update_invoice_totals(invoice)
        if update_items:
            sync_job_products(invoice)

        new_status = request.data.get('status')
        if new_status:
            error = apply_invoice_status(request, invoice, new_status)
            if error:
                transaction.set_rollback(True)
                return Response({'error': error}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='invoice_update',
        model_name='Invoice',
        object_id=invoice.id,
        object_name=invoice.invoice_number,
        object_reference=invoice.invoice_number,
        changes={'total_amount': {'old': str(old_total), 'new': str(invoice.total_amount)}},
    )
    invoice.refresh_from_db()
    return Response(InvoiceDetailSerializer(invoice).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_status(request, pk):
    """Change an invoice's status (mark paid, overdue, cancelled or reopen)"""
    invoice = get_object_or_404(Invoice, pk=pk)
    new_status = request.data.get('status')
    if not new_status:
        return Response({'error': 'Status is required'}, status=status.HTTP_400_BAD_REQUEST)

    error = apply_invoice_status(request, invoice, new_status)
    if error:
        return Response({'error': error}, status=status.HTTP_400_BAD_REQUEST)
    return Response(InvoiceDetailSerializer(invoice).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_calculate(request):
    """
    Price a set of lines without saving anything.

    Each item gives either ``product`` (id) or ``product_class``, plus
    quantity, unit_price and, for wide-format, length and width. When a
    product is given and unit_price is omitted its base price is used.
    """
    items = request.data.get('items')
    if not isinstance(items, list) or not items:
        return Response({'error': 'At least one item is required'}, status=status.HTTP_400_BAD_REQUEST)

    lines = []
    for index, item in enumerate(items):
        product = None
        product_class = item.get('product_class')
        unit_price = item.get('unit_price')
        if item.get('product') not in (None, ''):
            product = Product.objects.filter(pk=item['product']).first() if str(item['product']).isdigit() else None
            if product is None:
                return Response({'error': f"Product {item['product']} not found"}, status=status.HTTP_400_BAD_REQUEST)
            product_class = product.product_class
            if unit_price in (None, ''):
                unit_price = product.base_price
        if not product_class:
            return Response({'error': f'Item {index + 1} needs a product or product class'}, status=status.HTTP_400_BAD_REQUEST)

        line = price_line(product_class, item.get('quantity'), unit_price, item.get('length'), item.get('width'))
        lines.append({
            'index': index,
            'product': product.id if product else None,
            'product_class': product_class,
            'quantity': parse_quantity(item.get('quantity')),
            'unit_price': str(unit_price),
            'length': item.get('length'),
            'width': item.get('width'),
            'area': str(line.area) if line.area is not None else None,
            'total_price': str(line.total_price),
        })

    tax_rate = normalize_tax_rate(request.data.get('tax_rate'))
    totals = compute_totals([line['total_price'] for line in lines], tax_rate)
    return Response({
        'lines': lines,
        'subtotal': str(totals.subtotal),
        'tax_rate': str(tax_rate),
        'tax_amount': str(totals.tax_amount),
        'total_amount': str(totals.total_amount),
    })
