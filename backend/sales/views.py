import logging
from datetime import timedelta
from django.db import transaction
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from backend.core.models import User
from backend.core.permissions import IsAdminRole, is_admin_user
from backend.core.utils import create_audit_log, get_setting
from backend.invoicing.utils import create_invoice, resolve_item_products
from backend.invoicing.views import parse_date
from .models import SalesEmployee, SalesActivity, FollowUp, Quotation
from .serializers import SalesActivitySerializer, FollowUpSerializer, QuotationSerializer
from .utils import has_sales_access, generate_quote_number, price_quote_items, QUOTE_ITEM_REQUIRED_FIELDS

logger = logging.getLogger(__name__)

SALES_ACCESS_DENIED = {'error': 'Sales access required'}


def activity_queryset(user, queryset=None):
    """Activities visible to ``user``: all for admins, their own otherwise"""
    if queryset is None:
        queryset = SalesActivity.objects.select_related('employee').prefetch_related('follow_ups')
    if not is_admin_user(user):
        queryset = queryset.filter(employee=user)
    return queryset


@api_view(['POST'])
@permission_classes([IsAdminRole])
def sales_status_toggle(request, pk):
    """Add a user to the sales team, or flip their active flag"""
    user = get_object_or_404(User, pk=pk)
    sales_employee, created = SalesEmployee.objects.get_or_create(user=user, defaults={'is_active': True})
    if not created:
        sales_employee.is_active = not sales_employee.is_active
        sales_employee.save(update_fields=['is_active', 'updated_at'])

    logger.info(f"Sales status for {user.username}: {sales_employee.is_active}")
    create_audit_log(
        request=request,
        action='update',
        model_name='SalesEmployee',
        object_id=user.id,
        object_name=user.username,
        changes={'is_sales_employee': sales_employee.is_active},
    )
    return Response({'is_sales_employee': sales_employee.is_active})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_status_check(request, pk):
    user = get_object_or_404(User, pk=pk)
    return Response({'is_sales_employee': SalesEmployee.objects.filter(user=user, is_active=True).exists()})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def activity_list_create(request):
    """List or record sales activities"""
    if not has_sales_access(request.user):
        return Response(SALES_ACCESS_DENIED, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        queryset = activity_queryset(request.user)
        activity_status = request.query_params.get('status')
        if activity_status:
            queryset = queryset.filter(status=activity_status.upper())
        date_from = parse_date(request.query_params.get('date_from')) if request.query_params.get('date_from') else None
        if date_from:
            queryset = queryset.filter(date__gte=date_from)
        date_to = parse_date(request.query_params.get('date_to')) if request.query_params.get('date_to') else None
        if date_to:
            queryset = queryset.filter(date__lte=date_to)
        employee_id = request.query_params.get('employee')
        if employee_id and is_admin_user(request.user):
            queryset = queryset.filter(employee_id=employee_id)
        return Response(SalesActivitySerializer(queryset, many=True).data)

    data = request.data.copy() if hasattr(request.data, 'copy') else dict(request.data)
    # Only admins may log activities on behalf of someone else
    if not data.get('employee') or not is_admin_user(request.user):
        data['employee'] = request.user.id
    if not data.get('date'):
        data['date'] = timezone.localdate().isoformat()

    serializer = SalesActivitySerializer(data=data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    activity = serializer.save()

    logger.info(f"Sales activity created: {activity.shop_name} ({activity.status}) by {request.user.username}")
    create_audit_log(
        request=request,
        action='create',
        model_name='SalesActivity',
        object_id=activity.id,
        object_name=activity.shop_name,
        changes={'status': activity.status},
    )
    return Response(SalesActivitySerializer(activity).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def activity_detail(request, pk):
    if not has_sales_access(request.user):
        return Response(SALES_ACCESS_DENIED, status=status.HTTP_403_FORBIDDEN)
    activity = get_object_or_404(activity_queryset(request.user), pk=pk)

    if request.method == 'GET':
        return Response(SalesActivitySerializer(activity).data)

    if request.method == 'DELETE':
        shop_name = activity.shop_name
        activity.delete()
        create_audit_log(request=request, action='delete', model_name='SalesActivity', object_id=pk, object_name=shop_name)
        return Response(status=status.HTTP_204_NO_CONTENT)

    data = request.data.copy() if hasattr(request.data, 'copy') else dict(request.data)
    if not is_admin_user(request.user):
        data.pop('employee', None)

    old_status = activity.status
    serializer = SalesActivitySerializer(activity, data=data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    activity = serializer.save()

    if activity.status != old_status:
        logger.info(f"Sales activity {activity.id} moved {old_status} -> {activity.status}")
    create_audit_log(
        request=request,
        action='update',
        model_name='SalesActivity',
        object_id=activity.id,
        object_name=activity.shop_name,
        changes={'status': {'old': old_status, 'new': activity.status}} if activity.status != old_status else {},
    )
    return Response(SalesActivitySerializer(activity).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def activity_follow_ups(request, pk):
    if not has_sales_access(request.user):
        return Response(SALES_ACCESS_DENIED, status=status.HTTP_403_FORBIDDEN)
    activity = get_object_or_404(activity_queryset(request.user), pk=pk)

    if request.method == 'GET':
        follow_ups = activity.follow_ups.order_by('-date', '-created_at')
        return Response(FollowUpSerializer(follow_ups, many=True).data)

    serializer = FollowUpSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    follow_up = serializer.save(activity=activity)
    return Response(FollowUpSerializer(follow_up).data, status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def follow_up_detail(request, pk):
    if not has_sales_access(request.user):
        return Response(SALES_ACCESS_DENIED, status=status.HTTP_403_FORBIDDEN)
    follow_up = get_object_or_404(FollowUp.objects.select_related('activity'), pk=pk)
    if not is_admin_user(request.user) and follow_up.activity.employee_id != request.user.id:
        return Response({'error': 'Follow-up not found'}, status=status.HTTP_404_NOT_FOUND)

    serializer = FollowUpSerializer(follow_up, data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    return Response(FollowUpSerializer(serializer.save()).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_pipeline(request):
    """Activity counts per pipeline stage with conversion rate"""
    if not has_sales_access(request.user):
        return Response(SALES_ACCESS_DENIED, status=status.HTTP_403_FORBIDDEN)

    activities = activity_queryset(request.user, SalesActivity.objects.all())
    counts = {row['status']: row['count'] for row in activities.values('status').annotate(count=Count('id'))}
    stages = {stage: counts.get(stage, 0) for stage in SalesActivity.PIPELINE_STAGES}
    total = sum(stages.values())
    conversion_rate = round(stages['CONVERTED'] / total * 100, 1) if total else 0.0

    by_employee = []
    employee_rows = activities.values('employee_id', 'employee__username', 'employee__first_name', 'employee__last_name') \
        .annotate(total=Count('id'), converted=Count('id', filter=Q(status='CONVERTED'))) \
        .order_by('-total')
    for row in employee_rows:
        name = f"{row['employee__first_name']} {row['employee__last_name']}".strip() or row['employee__username']
        by_employee.append({
            'employee_id': row['employee_id'],
            'employee_name': name,
            'total': row['total'],
            'converted': row['converted'],
        })

    open_follow_ups = FollowUp.objects.filter(activity__in=activities, completed=False).count()
    return Response({
        'stages': stages,
        'total': total,
        'conversion_rate': conversion_rate,
        'open_follow_ups': open_follow_ups,
        'by_employee': by_employee,
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def quote_list_create(request):
    """List quotations or create a priced quotation"""
    if request.method == 'GET':
        queryset = Quotation.objects.select_related('customer', 'created_by', 'invoice')
        customer_id = request.query_params.get('customer')
        if customer_id:
            queryset = queryset.filter(customer_id=customer_id)
        quote_status = request.query_params.get('status')
        if quote_status:
            queryset = queryset.filter(status=quote_status.upper())
        return Response(QuotationSerializer(queryset.order_by('-created_at', '-id'), many=True).data)

    serializer = QuotationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    items, total_amount = price_quote_items(request.data.get('items'))
    expires_at = serializer.validated_data.get('expires_at') or (
        timezone.localdate() + timedelta(days=int(get_setting('QUOTE_VALIDITY_DAYS', 30)))
    )
    quote = serializer.save(
        quote_number=generate_quote_number(),
        status='PENDING',
        expires_at=expires_at,
        items=items,
        total_amount=total_amount,
        created_by=request.user,
    )

    logger.info(f"Quotation created: {quote.quote_number} for {quote.customer.name} total {quote.total_amount}")
    create_audit_log(
        request=request,
        action='create',
        model_name='Quotation',
        object_id=quote.id,
        object_name=quote.customer.name,
        object_reference=quote.quote_number,
        changes={'total_amount': str(quote.total_amount), 'items_count': len(items)},
    )
    return Response(QuotationSerializer(quote).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def quote_detail(request, pk):
    quote = get_object_or_404(Quotation.objects.select_related('customer', 'created_by', 'invoice'), pk=pk)

    if request.method == 'GET':
        return Response(QuotationSerializer(quote).data)

    if request.method == 'DELETE':
        quote_number = quote.quote_number
        quote.delete()
        create_audit_log(request=request, action='delete', model_name='Quotation', object_id=pk,
                         object_name=quote_number, object_reference=quote_number)
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = QuotationSerializer(quote, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    extra = {}
    if 'items' in request.data:
        extra['items'], extra['total_amount'] = price_quote_items(request.data.get('items'))
    quote = serializer.save(**extra)

    create_audit_log(
        request=request,
        action='update',
        model_name='Quotation',
        object_id=quote.id,
        object_name=quote.customer.name,
        object_reference=quote.quote_number,
        changes={'status': quote.status, 'total_amount': str(quote.total_amount)},
    )
    return Response(QuotationSerializer(quote).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def quote_convert(request, pk):
    """Turn a pending or accepted quotation that has not expired into an invoice"""
    quote = get_object_or_404(Quotation.objects.select_related('customer'), pk=pk)

    if quote.invoice_id:
        return Response(
            {'error': 'Quotation has already been converted', 'invoice_id': quote.invoice_id},
            status=status.HTTP_409_CONFLICT
        )
    today = timezone.localdate()
    if quote.status in ['PENDING', 'ACCEPTED'] and quote.expires_at < today:
        quote.status = 'EXPIRED'
        quote.save(update_fields=['status', 'updated_at'])
    if quote.status not in ['PENDING', 'ACCEPTED']:
        return Response(
            {'error': f'Cannot convert a quotation with status {quote.status}'},
            status=status.HTTP_400_BAD_REQUEST
        )

    lines = resolve_item_products(quote.items, QUOTE_ITEM_REQUIRED_FIELDS)
    for item, product in lines:
        item.setdefault('description', product.name)

    with transaction.atomic():
        invoice = create_invoice(
            customer=quote.customer,
            lines=lines,
            issue_date=today,
            due_date=today + timedelta(days=int(get_setting('INVOICE_DUE_DAYS', 30))),
            tax_rate=request.data.get('tax_rate'),
            created_by=request.user,
            notes=quote.notes or f"From quotation {quote.quote_number}",
        )
        quote.invoice = invoice
        quote.status = 'ACCEPTED'
        quote.save(update_fields=['invoice', 'status', 'updated_at'])

    logger.info(f"Quotation {quote.quote_number} converted to invoice {invoice.invoice_number}")
    create_audit_log(
        request=request,
        action='quote_convert',
        model_name='Quotation',
        object_id=quote.id,
        object_name=quote.customer.name,
        object_reference=invoice.invoice_number,
        changes={'quote_number': quote.quote_number, 'invoice': invoice.invoice_number},
    )
    return Response({
        'message': 'Quotation converted to invoice',
        'invoice_id': invoice.id,
        'invoice_number': invoice.invoice_number,
        'quote': QuotationSerializer(quote).data,
    }, status=status.HTTP_201_CREATED)
