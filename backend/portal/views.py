import logging
from datetime import timedelta
from decimal import Decimal
from django.conf import settings
from django.db import transaction
from django.db.models import Max
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from backend.catalog.models import Product
from backend.core.exceptions import PortalAccessDenied
from backend.core.utils import create_audit_log, quantize_money, to_decimal, to_whole_number, get_setting
from backend.invoicing.models import Invoice
from backend.invoicing.utils import create_invoice
from backend.parties.models import Customer
from .authentication import PortalJWTAuthentication, issue_portal_token
from .models import PortalUser, CustomerProductCatalog, CustomerOrder, CustomerOrderItem
from .permissions import IsPortalUser
from .serializers import (
    PortalUserSerializer, CustomerProductCatalogSerializer, PortalProductSerializer,
    PortalProductVariantSerializer, CustomerOrderSerializer, PortalInvoiceSerializer,
    PortalInvoiceDetailSerializer, portal_user_payload
)

logger = logging.getLogger(__name__)


def get_customer_param(request):
    customer_id = request.query_params.get('customer') or request.data.get('customer')
    if not customer_id or not str(customer_id).isdigit():
        return None
    return Customer.objects.filter(pk=customer_id).first()


# Staff endpoints

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def portal_user_list_create(request):
    """List portal users or create one for a customer"""
    if request.method == 'GET':
        queryset = PortalUser.objects.select_related('customer')
        customer_id = request.query_params.get('customer')
        if customer_id:
            queryset = queryset.filter(customer_id=customer_id)
        return Response(PortalUserSerializer(queryset, many=True).data)

    data = request.data
    if not data.get('email') or not data.get('password') or not data.get('customer'):
        return Response({'error': 'Email, password and customer are required'}, status=status.HTTP_400_BAD_REQUEST)
    if PortalUser.objects.filter(email__iexact=data.get('email')).exists():
        return Response({'error': 'A portal user with this email already exists'}, status=status.HTTP_400_BAD_REQUEST)
    if not str(data.get('customer')).isdigit() or not Customer.objects.filter(pk=data.get('customer')).exists():
        return Response({'error': 'Customer not found'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = PortalUserSerializer(data=data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    portal_user = serializer.save()

    logger.info(f"Portal user created: {portal_user.email} for customer {portal_user.customer_id}")
    create_audit_log(
        request=request,
        action='create',
        model_name='PortalUser',
        object_id=portal_user.id,
        object_name=portal_user.email,
        changes={'customer': portal_user.customer.name, 'role': portal_user.role},
    )
    return Response(PortalUserSerializer(portal_user).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def portal_user_detail(request, pk):
    """Retrieve, update or delete a portal user"""
    portal_user = get_object_or_404(PortalUser.objects.select_related('customer'), pk=pk)

    if request.method == 'GET':
        return Response(PortalUserSerializer(portal_user).data)

    if request.method == 'DELETE':
        email = portal_user.email
        portal_user.delete()
        create_audit_log(request=request, action='delete', model_name='PortalUser', object_id=pk, object_name=email)
        return Response(status=status.HTTP_204_NO_CONTENT)

    email = request.data.get('email')
    if email and PortalUser.objects.filter(email__iexact=email).exclude(pk=portal_user.pk).exists():
        return Response({'error': 'A portal user with this email already exists'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = PortalUserSerializer(portal_user, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    portal_user = serializer.save()
    create_audit_log(
        request=request,
        action='update',
        model_name='PortalUser',
        object_id=portal_user.id,
        object_name=portal_user.email,
        changes={field: ('***' if field == 'password' else str(value)) for field, value in serializer.validated_data.items()},
    )
    return Response(PortalUserSerializer(portal_user).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def customer_catalog(request):
    """
    GET: a customer's portal catalog (?customer=<id>).
    POST: upsert catalog entries; one bad entry does not stop the rest.
    """
    customer = get_customer_param(request)
    if customer is None:
        return Response({'error': 'A valid customer is required'}, status=status.HTTP_400_BAD_REQUEST)

    if request.method == 'GET':
        entries = CustomerProductCatalog.objects.filter(customer=customer).select_related('product')
        return Response({'catalog': CustomerProductCatalogSerializer(entries, many=True).data})

    products = request.data.get('products')
    if not isinstance(products, list) or not products:
        return Response({'error': 'products must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)

    results = []
    succeeded = 0
    for entry in products:
        product_id = entry.get('product') if isinstance(entry, dict) else None
        product = Product.objects.filter(pk=product_id).first() if str(product_id).isdigit() else None
        if product is None:
            results.append({'product': product_id, 'success': False, 'error': 'Product not found'})
            continue

        defaults = {
            'custom_price': to_decimal(entry.get('custom_price')),
            'is_visible': entry.get('is_visible', True),
            'customer_product_code': entry.get('customer_product_code') or '',
            'customer_product_name': entry.get('customer_product_name') or '',
        }
        catalog_entry, created = CustomerProductCatalog.objects.update_or_create(
            customer=customer, product=product, defaults=defaults
        )
        results.append({'product': product.id, 'success': True, 'created': created, 'id': catalog_entry.id})
        succeeded += 1

    failed = len(results) - succeeded
    logger.info(f"Catalog update for {customer.name}: {succeeded} ok, {failed} failed")
    create_audit_log(
        request=request,
        action='catalog_update',
        model_name='CustomerProductCatalog',
        object_id=customer.id,
        object_name=customer.name,
        changes={'processed': succeeded, 'failed': failed},
    )
    return Response({
        'message': f'Processed {succeeded} products successfully, {failed} failed',
        'results': results,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_catalog_stats(request):
    customer = get_customer_param(request)
    if customer is None:
        return Response({'error': 'A valid customer is required'}, status=status.HTTP_400_BAD_REQUEST)

    entries = CustomerProductCatalog.objects.filter(customer=customer)
    last_updated = entries.aggregate(last=Max('updated_at'))['last']
    return Response({
        'total_products': entries.count(),
        'visible_products': entries.filter(is_visible=True).count(),
        'has_custom_pricing': entries.filter(custom_price__isnull=False).exists(),
        'last_updated': last_updated.isoformat() if last_updated else 'Never',
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_admin_list(request):
    """All portal orders, newest first"""
    queryset = CustomerOrder.objects.select_related('customer', 'portal_user', 'invoice').prefetch_related('items__product')
    order_status = request.query_params.get('status')
    if order_status:
        queryset = queryset.filter(status=order_status.upper())
    customer_id = request.query_params.get('customer')
    if customer_id:
        queryset = queryset.filter(customer_id=customer_id)
    return Response(CustomerOrderSerializer(queryset.order_by('-created_at', '-id'), many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_status_update(request, pk):
    order = get_object_or_404(CustomerOrder, pk=pk)
    new_status = request.data.get('status')
    if new_status not in dict(CustomerOrder.STATUS_CHOICES):
        return Response({'error': f'Invalid status: {new_status}'}, status=status.HTTP_400_BAD_REQUEST)

    old_status = order.status
    order.status = new_status
    order.save(update_fields=['status', 'updated_at'])
    logger.info(f"Order {order.order_number} status changed: {old_status} -> {new_status}")
    create_audit_log(
        request=request,
        action='update',
        model_name='CustomerOrder',
        object_id=order.id,
        object_name=order.order_number,
        object_reference=order.order_number,
        changes={'status': {'old': old_status, 'new': new_status}},
    )
    return Response(CustomerOrderSerializer(order).data)


def order_invoice_lines(order):
    """(item, product) pairs for turning an order into invoice lines"""
    lines = []
    for item in order.items.select_related('product'):
        product = item.product
        line = {
            'description': item.notes or product.name,
            'quantity': item.quantity,
            'unit_price': item.unit_price,
        }
        if product.is_wide_format:
            line['length'] = product.default_length or settings.PRINTSHOP['DEFAULT_WIDE_FORMAT_LENGTH']
            line['width'] = product.default_width or settings.PRINTSHOP['DEFAULT_WIDE_FORMAT_WIDTH']
        lines.append((line, product))
    return lines


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_convert(request, pk):
    """Create an invoice from a portal order"""
    order = get_object_or_404(CustomerOrder.objects.select_related('customer'), pk=pk)
    if order.invoice_id:
        return Response(
            {'error': 'Order has already been converted', 'invoice_id': order.invoice_id},
            status=status.HTTP_409_CONFLICT
        )
    if order.status == 'CANCELLED':
        return Response({'error': 'Cancelled orders cannot be converted'}, status=status.HTTP_400_BAD_REQUEST)

    lines = order_invoice_lines(order)
    if not lines:
        return Response({'error': 'Order has no items'}, status=status.HTTP_400_BAD_REQUEST)

    issue_date = timezone.localdate()
    due_days = int(get_setting('INVOICE_DUE_DAYS', 30))
    with transaction.atomic():
        invoice = create_invoice(
            customer=order.customer,
            lines=lines,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=due_days),
            tax_rate=None,
            created_by=request.user,
            notes=f"From portal order {order.order_number}" + (f"\n{order.notes}" if order.notes else ''),
        )
        order.invoice = invoice
        order.status = 'PROCESSING'
        order.save(update_fields=['invoice', 'status', 'updated_at'])

    logger.info(f"Order {order.order_number} converted to invoice {invoice.invoice_number}")
    create_audit_log(
        request=request,
        action='order_convert',
        model_name='CustomerOrder',
        object_id=order.id,
        object_name=order.order_number,
        object_reference=invoice.invoice_number,
        changes={'invoice': invoice.invoice_number, 'total_amount': str(invoice.total_amount)},
    )
    return Response({
        'message': 'Order converted to invoice',
        'invoice_id': invoice.id,
        'invoice_number': invoice.invoice_number,
        'order': CustomerOrderSerializer(order).data,
    }, status=status.HTTP_201_CREATED)


# Portal endpoints

@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def portal_login(request):
    email = request.data.get('email')
    password = request.data.get('password')
    if not email or not password:
        return Response({'error': 'Email and password are required'}, status=status.HTTP_400_BAD_REQUEST)

    portal_user = PortalUser.objects.select_related('customer').filter(email__iexact=email).first()
    if portal_user is None or not portal_user.check_password(password):
        logger.warning(f"Failed portal login for {email}")
        return Response({'error': 'Invalid email or password'}, status=status.HTTP_401_UNAUTHORIZED)
    if portal_user.status != 'ACTIVE':
        return Response({'error': 'Account is not active'}, status=status.HTTP_403_FORBIDDEN)

    portal_user.last_login = timezone.now()
    portal_user.save(update_fields=['last_login', 'updated_at'])

    logger.info(f"Portal login: {portal_user.email} ({portal_user.customer.name})")
    create_audit_log(
        request=request,
        action='portal_login',
        model_name='PortalUser',
        object_id=portal_user.id,
        object_name=portal_user.email,
        object_reference=portal_user.customer.name,
        changes={'portal_user': portal_user.email},
    )
    return Response({
        'token': issue_portal_token(portal_user),
        'user': portal_user_payload(portal_user),
    })


@api_view(['GET'])
@authentication_classes([PortalJWTAuthentication])
@permission_classes([IsPortalUser])
def portal_verify(request):
    return Response({'valid': True, 'user': portal_user_payload(request.user)})


def visible_catalog(portal_user):
    return CustomerProductCatalog.objects.filter(
        customer_id=portal_user.customer_id,
        is_visible=True,
        product__is_active=True,
    ).select_related('product')


@api_view(['GET'])
@authentication_classes([PortalJWTAuthentication])
@permission_classes([IsPortalUser])
def portal_products(request):
    """The caller's visible catalog with customer names and prices"""
    entries = visible_catalog(request.user).order_by('product__name')
    return Response({'products': PortalProductSerializer(entries, many=True).data})


@api_view(['GET'])
@authentication_classes([PortalJWTAuthentication])
@permission_classes([IsPortalUser])
def portal_product_detail(request, pk):
    entry = visible_catalog(request.user).filter(product_id=pk).first()
    if entry is None:
        return Response({'error': 'Product not found'}, status=status.HTTP_404_NOT_FOUND)

    data = PortalProductSerializer(entry).data
    variants = entry.product.variants.filter(is_active=True)
    data['variants'] = PortalProductVariantSerializer(variants, many=True).data
    return Response(data)


@api_view(['GET'])
@authentication_classes([PortalJWTAuthentication])
@permission_classes([IsPortalUser])
def portal_invoices(request):
    invoices = Invoice.objects.filter(customer_id=request.user.customer_id).order_by('-created_at', '-id')
    return Response({'invoices': PortalInvoiceSerializer(invoices, many=True).data})


@api_view(['GET'])
@authentication_classes([PortalJWTAuthentication])
@permission_classes([IsPortalUser])
def portal_invoice_detail(request, pk):
    invoice = get_object_or_404(Invoice.objects.prefetch_related('items__product'), pk=pk)
    if invoice.customer_id != request.user.customer_id:
        raise PortalAccessDenied('You do not have access to this invoice')
    return Response(PortalInvoiceDetailSerializer(invoice).data)


@api_view(['GET', 'POST'])
@authentication_classes([PortalJWTAuthentication])
@permission_classes([IsPortalUser])
def portal_orders(request):
    """
    GET: the caller's orders with items.
    POST: place an order priced from the caller's catalog.
    """
    portal_user = request.user

    if request.method == 'GET':
        orders = CustomerOrder.objects.filter(customer_id=portal_user.customer_id).prefetch_related('items__product')
        return Response({'orders': CustomerOrderSerializer(orders.order_by('-created_at', '-id'), many=True).data})

    items = request.data.get('items')
    if not isinstance(items, list) or not items:
        return Response({'error': 'At least one item is required'}, status=status.HTTP_400_BAD_REQUEST)

    catalog = {entry.product_id: entry for entry in visible_catalog(portal_user)}
    lines = []
    for item in items:
        product_id = (item.get('product') or item.get('product_id')) if isinstance(item, dict) else None
        entry = catalog.get(int(product_id)) if str(product_id).isdigit() else None
        if entry is None:
            return Response({'error': f'Product {product_id} is not available'}, status=status.HTTP_400_BAD_REQUEST)
        quantity = to_whole_number(item.get('quantity', 1), default=0)
        if quantity < 1:
            return Response({'error': f'Invalid quantity for product {product_id}'}, status=status.HTTP_400_BAD_REQUEST)
        unit_price = quantize_money(entry.effective_price)
        lines.append({
            'product': entry.product,
            'quantity': quantity,
            'unit_price': unit_price,
            'total_price': quantize_money(unit_price * quantity),
            'notes': item.get('notes', ''),
        })

    notes = request.data.get('specialInstructions') or request.data.get('notes') or ''
    with transaction.atomic():
        order = CustomerOrder.objects.create(
            customer_id=portal_user.customer_id,
            portal_user=portal_user,
            notes=notes,
            total_amount=sum((line['total_price'] for line in lines), Decimal('0.00')),
        )
        CustomerOrderItem.objects.bulk_create([CustomerOrderItem(order=order, **line) for line in lines])

    logger.info(f"Portal order {order.order_number} placed by {portal_user.email}, total {order.total_amount}")
    create_audit_log(
        request=request,
        action='portal_order',
        model_name='CustomerOrder',
        object_id=order.id,
        object_name=order.order_number,
        object_reference=order.order_number,
        changes={'portal_user': portal_user.email, 'total_amount': str(order.total_amount), 'items_count': len(lines)},
    )
    return Response({
        'success': True,
        'order': {
            'id': order.id,
            'order_number': order.order_number,
            'total_amount': str(order.total_amount),
            'status': order.status,
            'created_at': order.created_at,
        },
    }, status=status.HTTP_201_CREATED)
