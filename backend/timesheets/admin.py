from django.contrib import admin
from .models import HourLog, Attendance


@admin.register(HourLog)
class HourLogAdmin(admin.ModelAdmin):
    list_display = ['user', 'job', 'date', 'start_time', 'end_time', 'hours', 'is_active', 'auto_stopped', 'is_paid']
    list_filter = ['is_active', 'auto_stopped', 'is_paid', 'date']
    search_fields = ['user__username', 'user__first_name', 'user__last_name', 'notes']


@admin.register(Attendance)
class AttendanceAdmin(admin.ModelAdmin):
    list_display = ['user', 'date', 'clock_in_time', 'clock_out_time', 'total_hours']
    list_filter = ['date']
    search_fields = ['user__username']
