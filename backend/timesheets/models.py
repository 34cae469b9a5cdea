from decimal import Decimal, ROUND_HALF_UP
from django.db import models
from django.utils import timezone
from backend.core.models import User
from backend.jobs.models import Job


def elapsed_hours(start, end):
    """Hours between two datetimes, rounded to 2 places"""
    seconds = Decimal((end - start).total_seconds())
    return (seconds / Decimal(3600)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


class HourLog(models.Model):
    """A block of time worked by a staff user, optionally against a job"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='hour_logs')
    job = models.ForeignKey(Job, on_delete=models.SET_NULL, null=True, blank=True, related_name='hour_logs')
    date = models.DateField(db_index=True)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField(null=True, blank=True)
    hours = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(default=False, db_index=True)
    auto_stopped = models.BooleanField(default=False)
    is_paid = models.BooleanField(default=False)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.username} - {self.date} ({self.hours or 0}h)"

    def stop(self, end_time=None):
        """Close the log at ``end_time`` (now by default) and record its hours"""
        self.end_time = end_time or timezone.now()
        self.hours = elapsed_hours(self.start_time, self.end_time)
        self.is_active = False

    class Meta:
        db_table = 'hour_logs'
        ordering = ['-date', '-start_time']


class Attendance(models.Model):
    """One clock-in/clock-out pair per user per day"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='attendances')
    date = models.DateField(db_index=True)
    clock_in_time = models.DateTimeField()
    clock_out_time = models.DateTimeField(null=True, blank=True)
    total_hours = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.username} - {self.date}"

    class Meta:
        db_table = 'attendance'
        ordering = ['-date']
        unique_together = ['user', 'date']
        verbose_name_plural = 'Attendance'
