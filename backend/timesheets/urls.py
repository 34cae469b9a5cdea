from django.urls import path
from .views import (
    hour_log_list_create, hour_log_detail, hour_log_stop, labour_costs,
    attendance_list, clock_in, clock_out
)

urlpatterns = [
    # Hour logs
    path('hour-logs/', hour_log_list_create, name='hour-log-list-create'),
    path('hour-logs/labour-costs/', labour_costs, name='hour-log-labour-costs'),
    path('hour-logs/<int:pk>/', hour_log_detail, name='hour-log-detail'),
    path('hour-logs/<int:pk>/stop/', hour_log_stop, name='hour-log-stop'),

    # Attendance
    path('attendance/', attendance_list, name='attendance-list'),
    path('attendance/clock-in/', clock_in, name='attendance-clock-in'),
    path('attendance/clock-out/', clock_out, name='attendance-clock-out'),
]
