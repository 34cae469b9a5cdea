import calendar
import logging
from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal
from statistics import median
from django.conf import settings
from django.db.models import Sum, Count, Avg, Min, Max, Q, DecimalField
from django.db.models.functions import TruncMonth
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django.utils import timezone

from backend.core.utils import get_decimal_setting
from backend.invoicing.models import Invoice, InvoiceItem
from backend.jobs.models import Job
from backend.parties.models import Customer
from backend.portal.models import CustomerOrder

logger = logging.getLogger('backend.reports')

AGE_BUCKETS = ['Current', '1-30 days', '31-60 days', '61-90 days', 'Over 90 days']


def subtract_months(day, months):
    """Same day ``months`` earlier, clamped to the end of shorter months"""
    month_index = day.year * 12 + day.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def get_date_range(time_range):
    """Start and end dates for 12months (default), 24months or ytd"""
    end_date = timezone.localdate()
    if time_range == '24months':
        start_date = subtract_months(end_date, 24)
    elif time_range == 'ytd':
        start_date = date(end_date.year, 1, 1)
    else:
        start_date = subtract_months(end_date, 12)
    return start_date, end_date


def money(value):
    return float(round(value or Decimal('0.00'), 2))


def age_bucket(days_past_due):
    if days_past_due <= 0:
        return 'Current'
    if days_past_due <= 30:
        return '1-30 days'
    if days_past_due <= 60:
        return '31-60 days'
    if days_past_due <= 90:
        return '61-90 days'
    return 'Over 90 days'


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def outstanding_invoices(request):
    """Unpaid invoices grouped by how far past due they are"""
    today = timezone.localdate()
    invoices = Invoice.objects.filter(
        status__in=Invoice.OUTSTANDING_STATUSES
    ).select_related('customer').order_by('due_date')

    buckets = OrderedDict((name, {'count': 0, 'total': 0.0, 'invoices': []}) for name in AGE_BUCKETS)
    total_outstanding = Decimal('0.00')
    total_age = 0
    oldest = None

    for invoice in invoices:
        days_past_due = (today - invoice.due_date).days
        age = (today - invoice.issue_date).days
        bucket = buckets[age_bucket(days_past_due)]
        bucket['count'] += 1
        bucket['total'] = round(bucket['total'] + float(invoice.total_amount), 2)
        bucket['invoices'].append({
            'id': invoice.id,
            'invoice_number': invoice.invoice_number,
            'customer_name': invoice.customer.name,
            'issue_date': invoice.issue_date,
            'due_date': invoice.due_date,
            'total_amount': money(invoice.total_amount),
            'status': invoice.status,
            'days_past_due': max(days_past_due, 0),
        })
        total_outstanding += invoice.total_amount
        total_age += age
        if oldest is None or invoice.issue_date < oldest.issue_date:
            oldest = invoice

    invoice_count = sum(bucket['count'] for bucket in buckets.values())
    return Response({
        'buckets': buckets,
        'summary': {
            'total_outstanding': money(total_outstanding),
            'invoice_count': invoice_count,
            'average_age': round(total_age / invoice_count, 1) if invoice_count else 0,
            'oldest_invoice': {
                'id': oldest.id,
                'invoice_number': oldest.invoice_number,
                'customer_name': oldest.customer.name,
                'issue_date': oldest.issue_date,
                'age_days': (today - oldest.issue_date).days,
            } if oldest else None,
        },
    })


def calculate_dso(invoices, day_count):
    """(receivables / total sales) x days, where receivables are non-PAID totals"""
    total_sales = sum((invoice.total_amount for invoice in invoices), Decimal('0.00'))
    if not total_sales:
        return 0.0
    receivables = sum((invoice.total_amount for invoice in invoices if invoice.status != 'PAID'), Decimal('0.00'))
    return float(receivables / total_sales * day_count)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def days_sales_outstanding(request):
    """DSO overall and per month for invoices issued in the range"""
    time_range = request.query_params.get('time_range', '12months')
    start_date, end_date = get_date_range(time_range)
    invoices = list(Invoice.objects.filter(issue_date__gte=start_date, issue_date__lte=end_date).order_by('issue_date'))

    if not invoices:
        return Response({
            'time_range': time_range,
            'data': [],
            'summary': {'current_dso': 0, 'dso_trend': 'stable', 'average_dso': 0, 'best_dso': 0, 'worst_dso': 0},
        })

    day_count = (end_date - start_date).days or 1
    months = OrderedDict()
    for invoice in invoices:
        months.setdefault(invoice.issue_date.strftime('%Y-%m'), []).append(invoice)

    data = []
    for month_key, month_invoices in months.items():
        data.append({
            'month': month_key,
            'dso': round(calculate_dso(month_invoices, day_count), 1),
            'invoice_count': len(month_invoices),
            'total_amount': money(sum((inv.total_amount for inv in month_invoices), Decimal('0.00'))),
        })

    trend = 0
    if len(data) > 1 and data[0]['dso']:
        trend = (data[-1]['dso'] - data[0]['dso']) / data[0]['dso']
    if trend < -0.1:
        dso_trend = 'improving'
    elif trend > 0.1:
        dso_trend = 'worsening'
    else:
        dso_trend = 'stable'

    dso_values = [row['dso'] for row in data if row['dso'] > 0]
    return Response({
        'time_range': time_range,
        'data': data,
        'summary': {
            'current_dso': round(calculate_dso(invoices, day_count), 1),
            'dso_trend': dso_trend,
            'average_dso': round(sum(dso_values) / len(dso_values), 1) if dso_values else 0,
            'best_dso': min(dso_values) if dso_values else 0,
            'worst_dso': max(dso_values) if dso_values else 0,
        },
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def avg_invoice_value(request):
    """Monthly average invoice value"""
    time_range = request.query_params.get('time_range', '12months')
    start_date, end_date = get_date_range(time_range)
    invoices = Invoice.objects.filter(
        issue_date__gte=start_date, issue_date__lte=end_date
    ).exclude(status='CANCELLED')

    monthly = invoices.annotate(month=TruncMonth('issue_date')).values('month').annotate(
        average_value=Avg('total_amount', output_field=DecimalField()),
        total_value=Sum('total_amount', output_field=DecimalField()),
        invoice_count=Count('id'),
    ).order_by('month')

    data = [
        {
            'month': row['month'].strftime('%Y-%m'),
            'average_value': money(row['average_value']),
            'total_value': money(row['total_value']),
            'invoice_count': row['invoice_count'],
        }
        for row in monthly
    ]

    values = list(invoices.values_list('total_amount', flat=True))
    aggregates = invoices.aggregate(total=Sum('total_amount'), minimum=Min('total_amount'), maximum=Max('total_amount'))
    return Response({
        'time_range': time_range,
        'data': data,
        'summary': {
            'total_invoices': len(values),
            'total_value': money(aggregates['total']),
            'average_value': money(aggregates['total'] / len(values)) if values else 0,
            'median_value': money(median(values)) if values else 0,
            'min_value': money(aggregates['minimum']),
            'max_value': money(aggregates['maximum']),
        },
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def revenue_by_product(request):
    """Line revenue per product class"""
    time_range = request.query_params.get('time_range', '12months')
    start_date, end_date = get_date_range(time_range)
    items = InvoiceItem.objects.filter(
        invoice__issue_date__gte=start_date,
        invoice__issue_date__lte=end_date,
    ).exclude(invoice__status='CANCELLED')

    rows = items.values('product__product_class').annotate(
        total_revenue=Sum('total_price', output_field=DecimalField()),
        invoice_count=Count('invoice', distinct=True),
        job_count=Count('invoice__job', distinct=True),
    ).order_by('-total_revenue')

    total_revenue = sum((row['total_revenue'] or Decimal('0.00') for row in rows), Decimal('0.00'))
    data = [
        {
            'product_class': row['product__product_class'] or 'UNKNOWN',
            'total_revenue': money(row['total_revenue']),
            'percentage': round(float(row['total_revenue'] / total_revenue * 100), 1) if total_revenue else 0,
            'invoice_count': row['invoice_count'],
            'job_count': row['job_count'],
        }
        for row in rows
    ]
    return Response({
        'time_range': time_range,
        'data': data,
        'summary': {
            'total_revenue': money(total_revenue),
            'top_product_class': data[0]['product_class'] if data else None,
            'product_class_count': len(data),
        },
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def revenue_trends(request):
    """Daily sales for 30 days, top products for 90 days and weekly growth"""
    today = timezone.localdate()
    start_date = today - timedelta(days=29)
    invoices = Invoice.objects.exclude(status='CANCELLED')

    daily_totals = {
        row['issue_date']: row['total']
        for row in invoices.filter(issue_date__gte=start_date, issue_date__lte=today)
        .values('issue_date').annotate(total=Sum('subtotal'), count=Count('id'))
    }
    daily_counts = dict(
        invoices.filter(issue_date__gte=start_date, issue_date__lte=today)
        .values('issue_date').annotate(count=Count('id')).values_list('issue_date', 'count')
    )
    daily_sales = []
    for offset in range(30):
        day = start_date + timedelta(days=offset)
        daily_sales.append({
            'date': day,
            'total': money(daily_totals.get(day)),
            'invoice_count': daily_counts.get(day, 0),
        })

    top_products = InvoiceItem.objects.filter(
        invoice__issue_date__gte=today - timedelta(days=90),
    ).exclude(invoice__status='CANCELLED').values(
        'product__id', 'product__name', 'product__sku', 'product__product_class'
    ).annotate(
        total_revenue=Sum('total_price', output_field=DecimalField()),
        total_quantity=Sum('quantity'),
    ).order_by('-total_revenue')[:10]

    this_week = invoices.filter(issue_date__gt=today - timedelta(days=7), issue_date__lte=today) \
        .aggregate(total=Sum('subtotal'))['total'] or Decimal('0.00')
    last_week = invoices.filter(issue_date__gt=today - timedelta(days=14), issue_date__lte=today - timedelta(days=7)) \
        .aggregate(total=Sum('subtotal'))['total'] or Decimal('0.00')
    if last_week:
        growth = round(float((this_week - last_week) / last_week * 100), 1)
    else:
        growth = 100.0 if this_week else 0.0

    return Response({
        'daily_sales': daily_sales,
        'top_products': [
            {
                'product_id': row['product__id'],
                'name': row['product__name'],
                'sku': row['product__sku'],
                'product_class': row['product__product_class'],
                'total_revenue': money(row['total_revenue']),
                'total_quantity': row['total_quantity'],
            }
            for row in top_products
        ],
        'weekly_comparison': {
            'this_week': money(this_week),
            'last_week': money(last_week),
            'growth_percentage': growth,
        },
    })


def job_costs(job):
    """Revenue, cost breakdown and margin for one invoiced job"""
    ink_cost_per_ml = get_decimal_setting('INK_COST_PER_ML', settings.PRINTSHOP['INK_COST_PER_ML'])
    labour_rate = get_decimal_setting('LABOUR_RATE_PER_HOUR', settings.PRINTSHOP['LABOUR_RATE_PER_HOUR'])
    overhead_rate = get_decimal_setting('OVERHEAD_RATE', settings.PRINTSHOP['OVERHEAD_RATE'])

    material_cost = Decimal('0.00')
    ink_cost = Decimal('0.00')
    minutes = 0
    for job_product in job.job_products.all():
        product = job_product.product
        material_cost += job_product.quantity * product.base_price
        ink_cost += job_product.quantity * job_product.ink_cost_per_unit
        if product.is_wide_format:
            ink_cost += job_product.ink_usage_in_ml * ink_cost_per_ml
        minutes += job_product.time_taken

    labour_cost = Decimal(minutes) / Decimal(60) * labour_rate
    overhead = (material_cost + labour_cost) * overhead_rate
    total_cost = material_cost + ink_cost + labour_cost + overhead
    revenue = job.invoice.subtotal
    gross_profit = revenue - total_cost
    return {
        'job_id': job.id,
        'title': job.title,
        'status': job.status,
        'customer_name': job.customer.name if job.customer else None,
        'invoice_number': job.invoice.invoice_number,
        'revenue': money(revenue),
        'material_cost': money(material_cost),
        'ink_cost': money(ink_cost),
        'labour_cost': money(labour_cost),
        'overhead': money(overhead),
        'total_cost': money(total_cost),
        'gross_profit': money(gross_profit),
        'profit_margin': round(float(gross_profit / revenue * 100), 1) if revenue else 0,
        'time_taken_minutes': minutes,
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def job_metrics(request):
    """Cost and profit per invoiced job"""
    time_range = request.query_params.get('time_range', '12months')
    start_date, end_date = get_date_range(time_range)
    jobs = Job.objects.filter(
        invoice__isnull=False,
        job_products__isnull=False,
        created_at__date__gte=start_date,
        created_at__date__lte=end_date,
    ).distinct().select_related('invoice', 'customer').prefetch_related('job_products__product')

    data = [job_costs(job) for job in jobs]
    total_revenue = sum(row['revenue'] for row in data)
    total_profit = sum(row['gross_profit'] for row in data)
    logger.debug(f"Job metrics computed for {len(data)} job(s)")
    return Response({
        'time_range': time_range,
        'data': data,
        'summary': {
            'job_count': len(data),
            'total_revenue': round(total_revenue, 2),
            'total_cost': round(sum(row['total_cost'] for row in data), 2),
            'total_profit': round(total_profit, 2),
            'average_margin': round(total_profit / total_revenue * 100, 1) if total_revenue else 0,
        },
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def profit_margins(request):
    """
    Job revenue, cost and margin grouped by product class.

    A job is classed by its first job product. Cancelled jobs and jobs
    without revenue are left out.
    """
    jobs = Job.objects.filter(
        invoice__isnull=False,
        job_products__isnull=False,
    ).exclude(status='CANCELLED').distinct().select_related(
        'invoice', 'customer'
    ).prefetch_related('job_products__product')

    groups = OrderedDict()
    for job in jobs:
        costs = job_costs(job)
        if costs['revenue'] <= 0:
            continue
        first = min(job.job_products.all(), key=lambda job_product: job_product.id)
        group = groups.setdefault(first.product.product_class, {'job_count': 0, 'revenue': 0.0, 'cost': 0.0})
        group['job_count'] += 1
        group['revenue'] += costs['revenue']
        group['cost'] += costs['total_cost']

    data = []
    for product_class, group in groups.items():
        profit = group['revenue'] - group['cost']
        data.append({
            'product_class': product_class,
            'job_count': group['job_count'],
            'revenue': round(group['revenue'], 2),
            'cost': round(group['cost'], 2),
            'profit': round(profit, 2),
            'margin': round(profit / group['revenue'] * 100, 1),
        })
    data.sort(key=lambda row: row['margin'], reverse=True)

    total_revenue = round(sum(row['revenue'] for row in data), 2)
    total_profit = round(sum(row['profit'] for row in data), 2)
    return Response({
        'data': data,
        'summary': {
            'overall_margin': round(total_profit / total_revenue * 100, 1) if total_revenue else 0,
            'highest_margin_class': data[0]['product_class'] if data else None,
            'highest_margin': data[0]['margin'] if data else 0,
            'lowest_margin_class': data[-1]['product_class'] if data else None,
            'lowest_margin': data[-1]['margin'] if data else 0,
            'total_revenue': total_revenue,
            'total_profit': total_profit,
        },
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_kpis(request):
    """Headline numbers for the staff dashboard"""
    today = timezone.localdate()
    week_end = today + timedelta(days=7)
    month_start = today.replace(day=1)

    open_jobs = Job.objects.filter(status__in=Job.OPEN_STATUSES)
    outstanding = Invoice.objects.filter(status__in=Invoice.OUTSTANDING_STATUSES).aggregate(
        total=Sum('total_amount'), count=Count('id'), overdue=Count('id', filter=Q(due_date__lt=today))
    )
    revenue_this_month = Invoice.objects.filter(
        issue_date__gte=month_start, issue_date__lte=today
    ).exclude(status='CANCELLED').aggregate(total=Sum('subtotal'))['total']

    return Response({
        'open_jobs': open_jobs.count(),
        'jobs_due_this_week': open_jobs.filter(due_date__gte=today, due_date__lte=week_end).count(),
        'outstanding_amount': money(outstanding['total']),
        'outstanding_invoices': outstanding['count'],
        'overdue_invoices': outstanding['overdue'],
        'revenue_this_month': money(revenue_this_month),
        'customer_count': Customer.objects.filter(is_active=True).count(),
        'submitted_portal_orders': CustomerOrder.objects.filter(status='SUBMITTED').count(),
    })
