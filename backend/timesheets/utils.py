"""Reporting periods, labour rates and the hour log auto-stop"""
import calendar
import logging
from datetime import date, timedelta
from django.conf import settings
from django.utils import timezone
from backend.core.utils import get_decimal_setting
from .models import HourLog

logger = logging.getLogger(__name__)

PERIODS = ['week', 'month', 'year', 'all', 'prev-week', 'prev-month', 'prev-year']


def period_range(period, today=None):
    """
    First and last day of a reporting period containing ``today``.

    Weeks start on Monday. ``prev-`` periods are the ones before the
    current week, month or year. Unknown periods mean the current month.
    """
    today = today or timezone.localdate()
    if period == 'week':
        start = today - timedelta(days=today.weekday())
        return start, start + timedelta(days=6)
    if period == 'year':
        return date(today.year, 1, 1), date(today.year, 12, 31)
    if period == 'all':
        return date(1970, 1, 1), today
    if period == 'prev-week':
        return period_range('week', today - timedelta(days=7))
    if period == 'prev-month':
        return period_range('month', today.replace(day=1) - timedelta(days=1))
    if period == 'prev-year':
        return period_range('year', date(today.year - 1, 1, 1))
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def labour_rate(user):
    """The user's hourly rate, or the shop labour rate when none is set"""
    if user.hourly_rate:
        return user.hourly_rate
    return get_decimal_setting('LABOUR_RATE_PER_HOUR', settings.PRINTSHOP['LABOUR_RATE_PER_HOUR'])


def auto_stop_hour_logs(max_hours, now=None, dry_run=False):
    """
    Close active hour logs that have run longer than ``max_hours``.

    A stopped log ends exactly ``max_hours`` after it started and is
    flagged as auto-stopped. Returns the logs that were (or would be) stopped.
    """
    now = now or timezone.now()
    limit = timedelta(hours=max_hours)
    overdue = HourLog.objects.filter(
        is_active=True,
        end_time__isnull=True,
        start_time__lt=now - limit,
    ).select_related('user').order_by('start_time')

    stopped = []
    for log in overdue:
        stopped.append(log)
        if dry_run:
            continue
        log.stop(log.start_time + limit)
        log.auto_stopped = True
        note = f"Auto-stopped after {max_hours} hours"
        log.notes = f"{log.notes} ({note})" if log.notes else note
        log.save()
        logger.info(f"Hour log {log.id} for {log.user.username} auto-stopped at {log.end_time}")
    return stopped
