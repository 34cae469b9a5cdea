import logging
from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from backend.catalog.models import Product
from backend.core.models import User
from backend.core.exceptions import PricingError
from backend.core.utils import create_audit_log, quantize_money, to_decimal, to_whole_number
from backend.invoicing.models import Invoice
from backend.invoicing.pricing import parse_quantity
from .filters import JobFilter
from .models import Job, JobProduct, JobAssignment, ProgressUpdate
from .serializers import (
    JobSerializer, JobDetailSerializer, JobProductSerializer, JobAssignmentSerializer
)

logger = logging.getLogger(__name__)


def status_change_message(old_status, new_status):
    """Progress update text for a job status transition"""
    if new_status == 'COMPLETED':
        return 'Job marked as completed'
    if new_status == 'IN_PROGRESS':
        return 'Job reopened and resumed' if old_status == 'COMPLETED' else 'Job started'
    if new_status == 'PENDING' and old_status == 'COMPLETED':
        return 'Job reopened and marked as pending'
    return f"Job status changed from {old_status} to {new_status}"


def record_status_change(request, job, old_status, new_status, message=None):
    """Write the progress update and audit entry for a status change"""
    content = message or status_change_message(old_status, new_status)
    ProgressUpdate.objects.create(job=job, user=request.user, content=content)
    logger.info(f"Job {job.id} status changed: {old_status} -> {new_status}")
    create_audit_log(
        request=request,
        action='job_status',
        model_name='Job',
        object_id=job.id,
        object_name=job.title,
        changes={'job_status': {'old': old_status, 'new': new_status}},
    )


def job_detail_queryset():
    return Job.objects.select_related('customer', 'invoice', 'created_by', 'assigned_to').prefetch_related(
        'job_products__product', 'progress_updates__user', 'assignments__user'
    )


def job_products_complete(job):
    job_products = list(job.job_products.all())
    return bool(job_products) and all(jp.is_complete for jp in job_products)


def parse_non_negative(value):
    """Decimal for a non-negative number, else None"""
    number = to_decimal(value)
    if number is None or number < 0:
        return None
    return number


def create_job_product(job, item):
    product = Product.objects.filter(pk=item.get('product')).first() if str(item.get('product')).isdigit() else None
    if product is None:
        return None
    quantity = parse_quantity(item.get('quantity') or 1)
    completed = to_whole_number(item.get('completed_quantity') or 0)
    if completed is None:
        raise PricingError(f"Invalid completed quantity: {item.get('completed_quantity')}")
    unit_price = to_decimal(item.get('unit_price'), default=product.base_price)
    total_price = to_decimal(item.get('total_price'), default=unit_price * quantity)
    return JobProduct.objects.create(
        job=job,
        product=product,
        quantity=quantity,
        unit_price=quantize_money(unit_price),
        total_price=quantize_money(total_price),
        notes=item.get('notes', ''),
        completed_quantity=min(max(completed, 0), quantity),
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_list_create(request):
    """List jobs or create a new job"""
    if request.method == 'GET':
        queryset = Job.objects.select_related('customer', 'invoice', 'created_by', 'assigned_to').prefetch_related('job_products')
        queryset = JobFilter(request.query_params, queryset=queryset).qs
        queryset = queryset.order_by('-updated_at', '-id')
        serializer = JobSerializer(queryset, many=True)
        return Response(serializer.data)

    if not request.data.get('title'):
        return Response({'error': 'Title is required'}, status=status.HTTP_400_BAD_REQUEST)

    invoice_id = request.data.get('invoice')
    if invoice_id not in (None, '') and not str(invoice_id).isdigit():
        return Response({'error': f'Invalid invoice: {invoice_id}'}, status=status.HTTP_400_BAD_REQUEST)
    if invoice_id and Job.objects.filter(invoice_id=invoice_id).exists():
        return Response({'error': 'A job already exists for this invoice'}, status=status.HTTP_409_CONFLICT)

    serializer = JobSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        job = serializer.save(created_by=request.user)
        for item in request.data.get('job_products') or []:
            if create_job_product(job, item) is None:
                transaction.set_rollback(True)
                return Response({'error': f"Product {item.get('product')} not found"}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"Job created: {job.title} (ID: {job.id})")
    create_audit_log(
        request=request,
        action='job_create',
        model_name='Job',
        object_id=job.id,
        object_name=job.title,
        changes={'status': job.status, 'priority': job.priority, 'invoice': job.invoice_id},
    )
    return Response(JobDetailSerializer(job_detail_queryset().get(pk=job.pk)).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def job_detail(request, pk):
    """Retrieve, update or delete a job"""
    job = get_object_or_404(job_detail_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(JobDetailSerializer(job).data)

    if request.method == 'DELETE':
        job_id = job.id
        title = job.title
        job.delete()
        logger.info(f"Job deleted: {title} (ID: {job_id})")
        create_audit_log(request=request, action='delete', model_name='Job', object_id=job_id, object_name=title)
        return Response(status=status.HTTP_204_NO_CONTENT)

    invoice_id = request.data.get('invoice')
    if invoice_id not in (None, '') and not str(invoice_id).isdigit():
        return Response({'error': f'Invalid invoice: {invoice_id}'}, status=status.HTTP_400_BAD_REQUEST)
    if invoice_id and Job.objects.filter(invoice_id=invoice_id).exclude(pk=job.pk).exists():
        return Response({'error': 'A job already exists for this invoice'}, status=status.HTTP_409_CONFLICT)

    old_status = job.status
    serializer = JobSerializer(job, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        job = serializer.save()
        if job.status != old_status:
            record_status_change(request, job, old_status, job.status)

    create_audit_log(
        request=request,
        action='update',
        model_name='Job',
        object_id=job.id,
        object_name=job.title,
        changes={field: str(value) for field, value in serializer.validated_data.items()},
    )
    return Response(JobDetailSerializer(job_detail_queryset().get(pk=job.pk)).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def job_status(request, pk):
    """Change a job's status and log the transition on its timeline"""
    job = get_object_or_404(Job, pk=pk)
    new_status = request.data.get('status')
    if not new_status:
        return Response({'error': 'Status is required'}, status=status.HTTP_400_BAD_REQUEST)
    if new_status not in dict(Job.STATUS_CHOICES):
        return Response({'error': f'Invalid status: {new_status}'}, status=status.HTTP_400_BAD_REQUEST)

    old_status = job.status
    if new_status != old_status:
        with transaction.atomic():
            job.status = new_status
            job.save(update_fields=['status', 'updated_at'])
            record_status_change(request, job, old_status, new_status)

    return Response(JobDetailSerializer(job_detail_queryset().get(pk=job.pk)).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def job_product_update(request, pk, jp_id):
    """
    Record production progress on one job product.

    Completing every product completes the job; the first progress on a
    NEW or PENDING job moves it to IN_PROGRESS.
    """
    job = get_object_or_404(Job, pk=pk)
    job_product = get_object_or_404(JobProduct, pk=jp_id, job=job)

    fields = ['completed_quantity', 'time_taken', 'ink_usage_in_ml']
    if not any(field in request.data for field in fields):
        return Response(
            {'error': 'Provide completed_quantity, time_taken or ink_usage_in_ml'},
            status=status.HTTP_400_BAD_REQUEST
        )

    if 'completed_quantity' in request.data:
        completed = to_whole_number(request.data.get('completed_quantity'))
        if completed is None:
            return Response({'error': 'completed_quantity must be a whole number'}, status=status.HTTP_400_BAD_REQUEST)
        job_product.completed_quantity = min(max(completed, 0), job_product.quantity)

    time_taken = parse_non_negative(request.data.get('time_taken'))
    if time_taken is not None:
        job_product.time_taken = int(time_taken)

    ink_usage = parse_non_negative(request.data.get('ink_usage_in_ml'))
    if ink_usage is not None:
        job_product.ink_usage_in_ml = ink_usage

    with transaction.atomic():
        job_product.save()

        old_status = job.status
        if job_products_complete(job):
            if old_status != 'COMPLETED':
                job.status = 'COMPLETED'
                job.save(update_fields=['status', 'updated_at'])
                record_status_change(request, job, old_status, 'COMPLETED',
                                     message='All products completed, job marked as completed')
        elif old_status in ['NEW', 'PENDING'] and job.job_products.filter(completed_quantity__gt=0).exists():
            job.status = 'IN_PROGRESS'
            job.save(update_fields=['status', 'updated_at'])
            record_status_change(request, job, old_status, 'IN_PROGRESS', message='Work begun on job')
        else:
            # Touch the job so the list ordering reflects recent activity
            job.save(update_fields=['updated_at'])

    return Response({
        'job_product': JobProductSerializer(job_product).data,
        'job_status': job.status,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_progress(request, pk):
    """Bulk-update job products and optionally split work into new lines"""
    job = get_object_or_404(Job, pk=pk)
    updates = request.data.get('job_products')
    if not isinstance(updates, list) or not updates:
        return Response({'error': 'job_products is required'}, status=status.HTTP_400_BAD_REQUEST)

    existing = {jp.id: jp for jp in job.job_products.all()}

    with transaction.atomic():
        for update in updates:
            job_product = existing.get(int(update.get('id'))) if str(update.get('id')).isdigit() else None
            if job_product is None:
                transaction.set_rollback(True)
                return Response({'error': f"Job product {update.get('id')} not found"}, status=status.HTTP_404_NOT_FOUND)

            if update.get('quantity') not in (None, ''):
                quantity = to_whole_number(update['quantity'])
                if quantity is None:
                    transaction.set_rollback(True)
                    return Response({'error': f"Invalid quantity for job product {job_product.id}"}, status=status.HTTP_400_BAD_REQUEST)
                job_product.quantity = max(quantity, 0)
            if update.get('total_price') not in (None, ''):
                job_product.total_price = quantize_money(to_decimal(update['total_price'], default=job_product.total_price))
            if update.get('completed_quantity') not in (None, ''):
                completed = to_whole_number(update['completed_quantity'])
                if completed is None:
                    transaction.set_rollback(True)
                    return Response(
                        {'error': f"Invalid completed quantity for job product {job_product.id}"},
                        status=status.HTTP_400_BAD_REQUEST
                    )
                job_product.completed_quantity = min(max(completed, 0), job_product.quantity)
            else:
                job_product.completed_quantity = min(job_product.completed_quantity, job_product.quantity)
            ink_cost = parse_non_negative(update.get('ink_cost_per_unit'))
            if ink_cost is not None:
                job_product.ink_cost_per_unit = ink_cost
            ink_usage = parse_non_negative(update.get('ink_usage_in_ml'))
            if ink_usage is not None:
                job_product.ink_usage_in_ml = ink_usage
            time_taken = parse_non_negative(update.get('time_taken'))
            if time_taken is not None:
                job_product.time_taken = int(time_taken)
            job_product.save()

        for item in request.data.get('remaining_job_products') or []:
            item = dict(item, completed_quantity=0)
            if create_job_product(job, item) is None:
                transaction.set_rollback(True)
                return Response({'error': f"Product {item.get('product')} not found"}, status=status.HTTP_400_BAD_REQUEST)

        old_status = job.status
        if job_products_complete(job):
            new_status = 'COMPLETED'
        elif old_status in ['IN_PROGRESS', 'COMPLETED']:
            new_status = old_status
        else:
            new_status = 'IN_PROGRESS'

        job.status = new_status
        job.save(update_fields=['status', 'updated_at'])
        if new_status != old_status:
            record_status_change(request, job, old_status, new_status)

    job = job_detail_queryset().get(pk=job.pk)
    return Response({
        'message': 'Job progress updated successfully',
        'job': JobDetailSerializer(job).data,
        'job_products': JobProductSerializer(job.job_products.all(), many=True).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_create_from_invoice(request):
    """Create a production job mirroring an invoice's items"""
    invoice_id = request.data.get('invoice')
    if not invoice_id:
        return Response({'error': 'Invoice is required'}, status=status.HTTP_400_BAD_REQUEST)

    invoice = Invoice.objects.select_related('customer').filter(pk=invoice_id).first() if str(invoice_id).isdigit() else None
    if invoice is None:
        return Response({'error': 'Invoice not found'}, status=status.HTTP_404_NOT_FOUND)

    existing = Job.objects.filter(invoice=invoice).first()
    if existing:
        return Response(
            {'error': 'A job already exists for this invoice', 'job_id': existing.id},
            status=status.HTTP_409_CONFLICT
        )

    with transaction.atomic():
        job = Job.objects.create(
            title=f"Job for Invoice #{invoice.invoice_number}",
            description=invoice.notes or '',
            status='PENDING',
            priority='MEDIUM',
            due_date=invoice.due_date,
            customer=invoice.customer,
            invoice=invoice,
            created_by=request.user,
        )
        JobProduct.objects.bulk_create([
            JobProduct(
                job=job,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
                notes=item.description,
            )
            for item in invoice.items.all().order_by('id')
        ])

    logger.info(f"Job {job.id} created from invoice {invoice.invoice_number}")
    create_audit_log(
        request=request,
        action='job_create',
        model_name='Job',
        object_id=job.id,
        object_name=job.title,
        object_reference=invoice.invoice_number,
        changes={'source': 'invoice', 'invoice': invoice.invoice_number},
    )
    return Response(JobDetailSerializer(job_detail_queryset().get(pk=job.pk)).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_assignments(request, pk):
    """List or add the employees assigned to a job"""
    job = get_object_or_404(Job, pk=pk)

    if request.method == 'GET':
        assignments = job.assignments.select_related('user').order_by('created_at')
        return Response(JobAssignmentSerializer(assignments, many=True).data)

    user_ids = request.data.get('user_ids')
    if not isinstance(user_ids, list) or not user_ids:
        return Response({'error': 'user_ids must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)

    users = list(User.objects.filter(pk__in=[uid for uid in user_ids if str(uid).isdigit()]))
    if len(users) != len({str(uid) for uid in user_ids}):
        return Response({'error': 'One or more users not found'}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        for user in users:
            JobAssignment.objects.get_or_create(job=job, user=user)
        if job.assigned_to_id is None:
            job.assigned_to = users[0]
            job.save(update_fields=['assigned_to', 'updated_at'])

    create_audit_log(
        request=request,
        action='job_assign',
        model_name='Job',
        object_id=job.id,
        object_name=job.title,
        changes={'assigned_users': [user.username for user in users]},
    )
    assignments = job.assignments.select_related('user').order_by('created_at')
    return Response(JobAssignmentSerializer(assignments, many=True).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def job_assignment_delete(request, pk, user_id):
    """Remove an employee from a job"""
    job = get_object_or_404(Job, pk=pk)
    assignment = get_object_or_404(JobAssignment, job=job, user_id=user_id)
    assignment.delete()
    if job.assigned_to_id == int(user_id):
        next_assignment = job.assignments.order_by('created_at').first()
        job.assigned_to = next_assignment.user if next_assignment else None
        job.save(update_fields=['assigned_to', 'updated_at'])
    logger.info(f"User {user_id} unassigned from job {job.id}")
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def employee_jobs(request):
    """Jobs assigned to the requesting employee, open ones by default"""
    queryset = Job.objects.filter(
        Q(assigned_to=request.user) | Q(assignments__user=request.user)
    ).distinct().select_related('customer', 'invoice', 'created_by', 'assigned_to').prefetch_related('job_products')

    if request.query_params.get('status', '').lower() == 'completed':
        queryset = queryset.filter(status='COMPLETED')
    else:
        queryset = queryset.filter(status__in=Job.OPEN_STATUSES)

    serializer = JobSerializer(queryset.order_by('-updated_at', '-id'), many=True)
    return Response(serializer.data)
