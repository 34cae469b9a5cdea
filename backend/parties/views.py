import logging
from decimal import Decimal
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q, Count, Sum
from django.shortcuts import get_object_or_404
from django.core.cache import cache
from backend.core.utils import create_audit_log
from .models import Customer
from .serializers import CustomerSerializer, CustomerListSerializer, CustomerDetailSerializer

logger = logging.getLogger(__name__)


def email_in_use(email, exclude_pk=None):
    queryset = Customer.objects.filter(email__iexact=email)
    if exclude_pk is not None:
        queryset = queryset.exclude(pk=exclude_pk)
    return queryset.exists()


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def customer_list_create(request):
    """List all customers or create a new customer"""
    if request.method == 'GET':
        search = request.query_params.get('search', None)

        # Try cache first
        from backend.core.model_cache import get_customer_list_cache_key, CUSTOMER_LIST_CACHE_TTL
        cache_key = get_customer_list_cache_key(search or '')
        cached_data = cache.get(cache_key)
        if cached_data is not None:
            return Response(cached_data)

        queryset = Customer.objects.annotate(
            job_count=Count('jobs', distinct=True),
            invoice_count=Count('invoices', distinct=True),
        ).order_by('name')
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(email__icontains=search) |
                Q(phone__icontains=search)
            )
        response_data = CustomerListSerializer(queryset, many=True).data

        cache.set(cache_key, response_data, CUSTOMER_LIST_CACHE_TTL)
        return Response(response_data)
    else:
        name = (request.data.get('name') or '').strip()
        email = (request.data.get('email') or '').strip()
        if not name or not email:
            return Response({'error': 'Name and email are required'}, status=status.HTTP_400_BAD_REQUEST)

        if email_in_use(email):
            return Response({'error': 'A customer with this email already exists'}, status=status.HTTP_409_CONFLICT)

        serializer = CustomerSerializer(data=request.data)
        if serializer.is_valid():
            customer = serializer.save()
            logger.info(f"Customer created: {customer.name} (ID: {customer.id})")
            create_audit_log(
                request=request,
                action='create',
                model_name='Customer',
                object_id=customer.id,
                object_name=customer.name,
                changes={'email': customer.email},
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    customer = get_object_or_404(Customer, pk=pk)

    if request.method == 'GET':
        serializer = CustomerDetailSerializer(customer)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        email = request.data.get('email')
        if email and email_in_use(email, exclude_pk=customer.pk):
            return Response({'error': 'A customer with this email already exists'}, status=status.HTTP_409_CONFLICT)

        serializer = CustomerSerializer(customer, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Customer',
                object_id=customer.id,
                object_name=customer.name,
                changes=dict(serializer.validated_data),
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        customer_id = customer.id
        customer_name = customer.name
        customer.delete()
        logger.info(f"Customer deleted: {customer_name} (ID: {customer_id})")
        create_audit_log(
            request=request,
            action='delete',
            model_name='Customer',
            object_id=customer_id,
            object_name=customer_name,
        )
        return Response({'success': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_statement(request, pk):
    """Account statement: every invoice for the customer with paid and outstanding totals"""
    customer = get_object_or_404(Customer, pk=pk)
    invoices = customer.invoices.all().order_by('-issue_date', '-id')

    total_invoiced = invoices.exclude(status='CANCELLED').aggregate(total=Sum('total_amount'))['total'] or Decimal('0.00')
    total_paid = invoices.filter(status='PAID').aggregate(total=Sum('total_amount'))['total'] or Decimal('0.00')
    total_outstanding = invoices.filter(status__in=['PENDING', 'OVERDUE']).aggregate(total=Sum('total_amount'))['total'] or Decimal('0.00')

    return Response({
        'customer': {'id': customer.id, 'name': customer.name, 'email': customer.email},
        'invoices': [
            {
                'id': inv.id,
                'invoice_number': inv.invoice_number,
                'issue_date': inv.issue_date,
                'due_date': inv.due_date,
                'status': inv.status,
                'total_amount': str(inv.total_amount),
            }
            for inv in invoices
        ],
        'total_invoiced': str(total_invoiced),
        'total_paid': str(total_paid),
        'total_outstanding': str(total_outstanding),
    })
