import logging
from collections import OrderedDict
from decimal import Decimal
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from backend.core.exceptions import ConflictError
from backend.core.models import User
from backend.core.permissions import IsAdminRole, is_admin_user
from backend.core.utils import create_audit_log, quantize_money
from .filters import HourLogFilter, AttendanceFilter
from .models import HourLog, Attendance, elapsed_hours
from .serializers import HourLogSerializer, AttendanceSerializer
from .utils import labour_rate, period_range

logger = logging.getLogger(__name__)


def hour_log_queryset(user):
    """Hour logs visible to ``user``: all for admins, their own otherwise"""
    queryset = HourLog.objects.select_related('user', 'job')
    if not is_admin_user(user):
        queryset = queryset.filter(user=user)
    return queryset


def target_user(request):
    """Admins may act for another user; everyone else acts for themselves"""
    user_id = request.data.get('user')
    if user_id and str(user_id).isdigit() and is_admin_user(request.user):
        return get_object_or_404(User, pk=user_id)
    return request.user


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def hour_log_list_create(request):
    """
    List hour logs or start a new one.

    A log posted without an end time is the user's active log; each user
    may have only one. A log with an end time is recorded as finished and
    its hours are worked out unless given.
    """
    if request.method == 'GET':
        queryset = HourLogFilter(request.query_params, queryset=hour_log_queryset(request.user)).qs
        return Response(HourLogSerializer(queryset, many=True).data)

    data = request.data.copy() if hasattr(request.data, 'copy') else dict(request.data)
    data['user'] = target_user(request).id
    serializer = HourLogSerializer(data=data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    validated = serializer.validated_data
    start_time = validated.get('start_time') or timezone.now()
    end_time = validated.get('end_time')
    user = validated['user']

    with transaction.atomic():
        if end_time is None and HourLog.objects.select_for_update().filter(user=user, is_active=True).exists():
            raise ConflictError(f'{user.username} already has an active hour log')
        hours = validated.get('hours')
        if hours is None and end_time is not None:
            hours = elapsed_hours(start_time, end_time)
        log = serializer.save(
            start_time=start_time,
            date=validated.get('date') or timezone.localdate(start_time),
            is_active=end_time is None,
            hours=hours,
        )

    logger.info(f"Hour log started for {user.username} (ID: {log.id})")
    return Response(HourLogSerializer(log).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def hour_log_detail(request, pk):
    """Retrieve, correct or delete an hour log"""
    log = get_object_or_404(hour_log_queryset(request.user), pk=pk)

    if request.method == 'GET':
        return Response(HourLogSerializer(log).data)

    if request.method == 'DELETE':
        log_id = log.id
        log.delete()
        logger.info(f"Hour log deleted: {log_id}")
        create_audit_log(request=request, action='delete', model_name='HourLog', object_id=log_id,
                         object_name=str(log))
        return Response(status=status.HTTP_204_NO_CONTENT)

    data = request.data.copy() if hasattr(request.data, 'copy') else dict(request.data)
    if not is_admin_user(request.user):
        data.pop('user', None)
    serializer = HourLogSerializer(log, data=data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        log = serializer.save()
        times_changed = 'start_time' in data or 'end_time' in data
        if log.end_time and times_changed and 'hours' not in data:
            log.stop(log.end_time)
            log.save()

    create_audit_log(
        request=request,
        action='update',
        model_name='HourLog',
        object_id=log.id,
        object_name=str(log),
        changes={field: str(value) for field, value in serializer.validated_data.items()},
    )
    return Response(HourLogSerializer(log).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def hour_log_stop(request, pk):
    """Stop an active hour log now"""
    log = get_object_or_404(hour_log_queryset(request.user), pk=pk)
    if not log.is_active:
        return Response({'error': 'Hour log is not active'}, status=status.HTTP_400_BAD_REQUEST)

    log.stop()
    if request.data.get('notes'):
        log.notes = request.data['notes']
    log.save()
    logger.info(f"Hour log {log.id} stopped after {log.hours} hours")
    return Response(HourLogSerializer(log).data)


@api_view(['GET'])
@permission_classes([IsAdminRole])
def labour_costs(request):
    """Hours and wage cost per employee for a period"""
    period = request.query_params.get('period', 'month')
    start_date, end_date = period_range(period)
    logs = HourLog.objects.filter(date__gte=start_date, date__lte=end_date).select_related('user')
    user_id = request.query_params.get('user')
    if user_id:
        if not str(user_id).isdigit():
            return Response({'error': f'Invalid user: {user_id}'}, status=status.HTTP_400_BAD_REQUEST)
        logs = logs.filter(user_id=user_id)

    employees = OrderedDict()
    for log in logs:
        employee = employees.get(log.user_id)
        if employee is None:
            employee = employees[log.user_id] = {
                'id': log.user.id,
                'name': log.user.full_name,
                'email': log.user.email,
                'role': log.user.role,
                'hourly_rate': labour_rate(log.user),
                'hours': Decimal('0.00'),
                'cost': Decimal('0.00'),
            }
        hours = log.hours or Decimal('0.00')
        employee['hours'] += hours
        employee['cost'] += hours * employee['hourly_rate']

    rows = sorted(employees.values(), key=lambda row: row['cost'], reverse=True)
    total_hours = sum((row['hours'] for row in rows), Decimal('0.00'))
    total_cost = sum((row['cost'] for row in rows), Decimal('0.00'))
    average_rate = sum((row['hourly_rate'] for row in rows), Decimal('0.00')) / len(rows) if rows else Decimal('0.00')
    return Response({
        'employees': [
            dict(row, hourly_rate=float(row['hourly_rate']), hours=float(row['hours']),
                 cost=float(quantize_money(row['cost'])))
            for row in rows
        ],
        'summary': {
            'total_employees': len(rows),
            'total_hours': float(total_hours),
            'total_cost': float(quantize_money(total_cost)),
            'average_hourly_rate': float(quantize_money(average_rate)),
            'period': period,
            'date_range': {'start': start_date, 'end': end_date},
        },
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def attendance_list(request):
    """Attendance records: all for admins, the caller's own otherwise"""
    queryset = Attendance.objects.select_related('user')
    if not is_admin_user(request.user):
        queryset = queryset.filter(user=request.user)
    queryset = AttendanceFilter(request.query_params, queryset=queryset).qs
    return Response(AttendanceSerializer(queryset, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def clock_in(request):
    """
    Clock in for today.

    Clocking in again while still clocked in returns the open record.
    """
    user = target_user(request)
    today = timezone.localdate()
    attendance = Attendance.objects.filter(user=user, date=today).first()
    if attendance is not None:
        if attendance.clock_out_time is None:
            return Response(AttendanceSerializer(attendance).data)
        return Response(
            {'error': 'Already clocked in and out for today', 'attendance': AttendanceSerializer(attendance).data},
            status=status.HTTP_400_BAD_REQUEST
        )

    attendance = Attendance.objects.create(user=user, date=today, clock_in_time=timezone.now())
    logger.info(f"{user.username} clocked in")
    return Response(AttendanceSerializer(attendance).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def clock_out(request):
    """Clock out of today's attendance record and total its hours"""
    user = target_user(request)
    attendance = Attendance.objects.filter(user=user, date=timezone.localdate()).first()
    if attendance is None:
        return Response({'error': 'No clock-in record found for today'}, status=status.HTTP_404_NOT_FOUND)
    if attendance.clock_out_time is not None:
        return Response(
            {'error': 'Already clocked out for today', 'attendance': AttendanceSerializer(attendance).data},
            status=status.HTTP_400_BAD_REQUEST
        )

    attendance.clock_out_time = timezone.now()
    attendance.total_hours = elapsed_hours(attendance.clock_in_time, attendance.clock_out_time)
    attendance.save(update_fields=['clock_out_time', 'total_hours', 'updated_at'])
    logger.info(f"{user.username} clocked out after {attendance.total_hours} hours")
    return Response(AttendanceSerializer(attendance).data)
