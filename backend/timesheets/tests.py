"""
Test suite for Timesheets module
Tests: hour logs, stopping and auto-stopping logs, labour costs and attendance
"""
import os
from datetime import date, timedelta
from decimal import Decimal
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.timesheets.models import HourLog, Attendance
from backend.timesheets.utils import auto_stop_hour_logs, period_range


class PeriodRangeTests(TestCase):

    def test_week_starts_monday(self):
        self.assertEqual(period_range('week', date(2026, 10, 15)), (date(2026, 10, 12), date(2026, 10, 18)))

    def test_month_and_previous_month(self):
        self.assertEqual(period_range('month', date(2024, 2, 10)), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(period_range('prev-month', date(2024, 1, 10)), (date(2023, 12, 1), date(2023, 12, 31)))

    def test_previous_week_and_year(self):
        self.assertEqual(period_range('prev-week', date(2026, 10, 15)), (date(2026, 10, 5), date(2026, 10, 11)))
        self.assertEqual(period_range('prev-year', date(2026, 3, 1)), (date(2025, 1, 1), date(2025, 12, 31)))

    def test_unknown_period_is_current_month(self):
        self.assertEqual(period_range('fortnight', date(2026, 4, 9)), (date(2026, 4, 1), date(2026, 4, 30)))


class HourLogAPITests(TestCase):
    """Test hour log endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/hour-logs/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_start_log_defaults_to_now_and_self(self):
        job = TestDataFactory.create_job()
        response = self.client.post('/api/v1/hour-logs/', {'job': job.id, 'notes': 'Laminating'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        log = HourLog.objects.get(pk=response.data['id'])
        self.assertEqual(log.user, self.user)
        self.assertTrue(log.is_active)
        self.assertIsNone(log.hours)
        self.assertEqual(log.date, timezone.localdate(log.start_time))
        self.assertEqual(response.data['job_title'], job.title)

    def test_one_active_log_per_user(self):
        TestDataFactory.create_hour_log(self.user)
        response = self.client.post('/api/v1/hour-logs/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('already has an active hour log', response.data['error'])

    def test_finished_log_computes_hours(self):
        payload = {'start_time': '2026-03-02T09:00:00Z', 'end_time': '2026-03-02T12:30:00Z'}
        response = self.client.post('/api/v1/hour-logs/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['is_active'])
        self.assertEqual(Decimal(response.data['hours']), Decimal('3.50'))

    def test_end_before_start_rejected(self):
        payload = {'start_time': '2026-03-02T09:00:00Z', 'end_time': '2026-03-02T08:00:00Z'}
        response = self.client.post('/api/v1/hour-logs/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_employee_cannot_log_for_someone_else(self):
        other = TestDataFactory.create_user()
        response = self.client.post('/api/v1/hour-logs/', {'user': other.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user'], self.user.id)

    def test_admin_logs_for_employee(self):
        other = TestDataFactory.create_user()
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.post('/api/v1/hour-logs/', {'user': other.id}, format='json')
        self.assertEqual(response.data['user'], other.id)

    def test_list_only_own_logs_unless_admin(self):
        TestDataFactory.create_hour_log(self.user, hours=2)
        TestDataFactory.create_hour_log(TestDataFactory.create_user(), hours=3)
        response = self.client.get('/api/v1/hour-logs/')
        self.assertEqual(len(response.data), 1)
        admin = AuthenticatedAPIClient()
        admin.authenticate_user(TestDataFactory.create_admin())
        self.assertEqual(len(admin.get('/api/v1/hour-logs/').data), 2)
        self.assertEqual(len(admin.get(f'/api/v1/hour-logs/?user={self.user.id}').data), 1)

    def test_list_filters_by_date(self):
        TestDataFactory.create_hour_log(self.user, hours=2, date=date(2026, 1, 5))
        TestDataFactory.create_hour_log(self.user, hours=2, date=date(2026, 2, 5))
        response = self.client.get('/api/v1/hour-logs/?start_date=2026-02-01&end_date=2026-02-28')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['date'], '2026-02-05')

    def test_stop_active_log(self):
        log = TestDataFactory.create_hour_log(self.user, start_time=timezone.now() - timedelta(hours=2))
        response = self.client.post(f'/api/v1/hour-logs/{log.id}/stop/', {'notes': 'Done'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log.refresh_from_db()
        self.assertFalse(log.is_active)
        self.assertEqual(log.hours, Decimal('2.00'))
        self.assertEqual(log.notes, 'Done')
        response = self.client.post(f'/api/v1/hour-logs/{log.id}/stop/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_correct_times_recomputes_hours(self):
        log = TestDataFactory.create_hour_log(self.user, hours=2)
        response = self.client.patch(
            f'/api/v1/hour-logs/{log.id}/', {'end_time': (log.start_time + timedelta(hours=5)).isoformat()},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['hours']), Decimal('5.00'))

    def test_mark_paid_keeps_hours(self):
        log = TestDataFactory.create_hour_log(self.user, hours=2)
        response = self.client.patch(f'/api/v1/hour-logs/{log.id}/', {'is_paid': True}, format='json')
        self.assertTrue(response.data['is_paid'])
        self.assertEqual(Decimal(response.data['hours']), Decimal('2.00'))

    def test_other_users_log_not_found(self):
        log = TestDataFactory.create_hour_log(TestDataFactory.create_user(), hours=1)
        response = self.client.delete(f'/api/v1/hour-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_log(self):
        log = TestDataFactory.create_hour_log(self.user, hours=1)
        response = self.client.delete(f'/api/v1/hour-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(HourLog.objects.exists())


class AutoStopTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.now = timezone.now()

    def test_stops_logs_over_the_limit(self):
        start = self.now - timedelta(hours=11)
        overdue = TestDataFactory.create_hour_log(self.user, start_time=start, notes='Guillotine')
        recent = TestDataFactory.create_hour_log(TestDataFactory.create_user(), start_time=self.now - timedelta(hours=3))

        stopped = auto_stop_hour_logs(8, now=self.now)
        self.assertEqual(stopped, [overdue])
        overdue.refresh_from_db()
        recent.refresh_from_db()
        self.assertFalse(overdue.is_active)
        self.assertTrue(overdue.auto_stopped)
        self.assertEqual(overdue.end_time, start + timedelta(hours=8))
        self.assertEqual(overdue.hours, Decimal('8.00'))
        self.assertEqual(overdue.notes, 'Guillotine (Auto-stopped after 8 hours)')
        self.assertTrue(recent.is_active)

    def test_command_uses_setting_and_dry_run(self):
        log = TestDataFactory.create_hour_log(self.user, start_time=self.now - timedelta(hours=9))
        with open(os.devnull, 'w') as devnull:
            call_command('auto_stop_hour_logs', '--dry-run', stdout=devnull)
            log.refresh_from_db()
            self.assertTrue(log.is_active)
            call_command('auto_stop_hour_logs', '--max-hours', '10', stdout=devnull)
            log.refresh_from_db()
            self.assertTrue(log.is_active)
            call_command('auto_stop_hour_logs', stdout=devnull)
        log.refresh_from_db()
        self.assertFalse(log.is_active)
        self.assertEqual(log.notes, 'Auto-stopped after 8 hours')


class LabourCostTests(TestCase):
    """Test the labour cost report"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.today = timezone.localdate()

    def test_admin_only(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/hour-logs/labour-costs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_costs_per_employee(self):
        printer = TestDataFactory.create_user(hourly_rate=Decimal('12.50'))
        finisher = TestDataFactory.create_user()
        TestDataFactory.create_hour_log(printer, hours=4, date=self.today)
        TestDataFactory.create_hour_log(printer, hours=2, date=self.today)
        TestDataFactory.create_hour_log(finisher, hours=3, date=self.today)
        TestDataFactory.create_hour_log(finisher, date=self.today)
        TestDataFactory.create_hour_log(finisher, hours=10, date=date(2000, 1, 1))

        response = self.client.get('/api/v1/hour-logs/labour-costs/?period=month')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        employees = response.data['employees']
        # No hourly rate set, so the shop labour rate of 30 applies
        self.assertEqual(employees[0]['id'], finisher.id)
        self.assertEqual(employees[0]['hours'], 3.0)
        self.assertEqual(employees[0]['cost'], 90.0)
        self.assertEqual(employees[1]['hourly_rate'], 12.5)
        self.assertEqual(employees[1]['cost'], 75.0)

        summary = response.data['summary']
        self.assertEqual(summary['total_employees'], 2)
        self.assertEqual(summary['total_hours'], 9.0)
        self.assertEqual(summary['total_cost'], 165.0)
        self.assertEqual(summary['average_hourly_rate'], 21.25)

    def test_filter_by_user(self):
        printer = TestDataFactory.create_user()
        TestDataFactory.create_hour_log(printer, hours=1, date=self.today)
        TestDataFactory.create_hour_log(TestDataFactory.create_user(), hours=1, date=self.today)
        response = self.client.get(f'/api/v1/hour-logs/labour-costs/?user={printer.id}')
        self.assertEqual(response.data['summary']['total_employees'], 1)
        response = self.client.get('/api/v1/hour-logs/labour-costs/?user=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class AttendanceTests(TestCase):
    """Test clocking in and out"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_clock_in_then_out(self):
        response = self.client.post('/api/v1/attendance/clock-in/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        attendance = Attendance.objects.get(pk=response.data['id'])
        self.assertEqual(attendance.date, timezone.localdate())

        Attendance.objects.filter(pk=attendance.pk).update(clock_in_time=timezone.now() - timedelta(hours=7, minutes=30))
        response = self.client.post('/api/v1/attendance/clock-out/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['total_hours']), Decimal('7.50'))

    def test_clock_in_twice_returns_open_record(self):
        first = self.client.post('/api/v1/attendance/clock-in/')
        second = self.client.post('/api/v1/attendance/clock-in/')
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(second.data['id'], first.data['id'])

    def test_clock_in_after_clock_out_rejected(self):
        self.client.post('/api/v1/attendance/clock-in/')
        self.client.post('/api/v1/attendance/clock-out/')
        response = self.client.post('/api/v1/attendance/clock-in/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Already clocked in and out for today')

    def test_clock_out_without_clock_in(self):
        response = self.client.post('/api/v1/attendance/clock-out/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_clock_out_twice_rejected(self):
        self.client.post('/api/v1/attendance/clock-in/')
        self.client.post('/api/v1/attendance/clock-out/')
        response = self.client.post('/api/v1/attendance/clock-out/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_own_records(self):
        self.client.post('/api/v1/attendance/clock-in/')
        other = AuthenticatedAPIClient()
        other.authenticate_user(TestDataFactory.create_user())
        other.post('/api/v1/attendance/clock-in/')
        response = self.client.get('/api/v1/attendance/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['user'], self.user.id)
