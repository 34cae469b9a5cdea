"""
Test suite for Reports module
Tests: receivables aging, DSO, invoice values, revenue by product class,
revenue trends, job profitability, profit margins and dashboard KPIs
"""
from datetime import date, timedelta
from decimal import Decimal
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.portal.models import CustomerOrder
from backend.reports.views import AGE_BUCKETS, age_bucket, get_date_range, subtract_months


def one_line(product, amount, quantity=1):
    return [{'product': product, 'quantity': quantity, 'unit_price': amount}]


class ReportHelperTests(TestCase):

    def test_subtract_months_clamps_day(self):
        self.assertEqual(subtract_months(date(2024, 3, 31), 1), date(2024, 2, 29))
        self.assertEqual(subtract_months(date(2024, 1, 15), 12), date(2023, 1, 15))

    def test_age_bucket_boundaries(self):
        self.assertEqual(age_bucket(0), 'Current')
        self.assertEqual(age_bucket(30), '1-30 days')
        self.assertEqual(age_bucket(31), '31-60 days')
        self.assertEqual(age_bucket(90), '61-90 days')
        self.assertEqual(age_bucket(91), 'Over 90 days')

    def test_ytd_range(self):
        start, end = get_date_range('ytd')
        self.assertEqual(start, date(end.year, 1, 1))


class ReportsTests(TestCase):
    """Test report endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.today = timezone.localdate()
        self.customer = TestDataFactory.create_customer()
        self.product = TestDataFactory.create_product(base_price=Decimal('2.00'))

    def invoice(self, amount, status='PENDING', issue_date=None, due_date=None, product=None):
        return TestDataFactory.create_invoice(
            customer=self.customer,
            items=one_line(product or self.product, amount),
            issue_date=issue_date,
            due_date=due_date,
            tax_rate='0',
            status=status,
        )

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/reports/dashboard-kpis/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_outstanding_invoices_buckets(self):
        self.invoice('100.00', due_date=self.today + timedelta(days=5))
        self.invoice('50.00', issue_date=self.today - timedelta(days=75), due_date=self.today - timedelta(days=45))
        self.invoice('25.00', status='OVERDUE', issue_date=self.today - timedelta(days=130), due_date=self.today - timedelta(days=100))
        self.invoice('999.00', status='PAID')

        response = self.client.get('/api/v1/reports/outstanding-invoices/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        buckets = response.data['buckets']
        self.assertEqual(list(buckets), AGE_BUCKETS)
        self.assertEqual(buckets['Current']['count'], 1)
        self.assertEqual(buckets['31-60 days']['total'], 50.0)
        self.assertEqual(buckets['31-60 days']['invoices'][0]['days_past_due'], 45)
        self.assertEqual(buckets['Over 90 days']['count'], 1)
        self.assertEqual(buckets['1-30 days']['count'], 0)

        summary = response.data['summary']
        self.assertEqual(summary['total_outstanding'], 175.0)
        self.assertEqual(summary['invoice_count'], 3)
        self.assertEqual(summary['oldest_invoice']['age_days'], 130)

    def test_outstanding_invoices_empty(self):
        response = self.client.get('/api/v1/reports/outstanding-invoices/')
        self.assertEqual(response.data['summary']['invoice_count'], 0)
        self.assertIsNone(response.data['summary']['oldest_invoice'])

    def test_dso_empty(self):
        response = self.client.get('/api/v1/reports/dso/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data'], [])
        self.assertEqual(response.data['summary']['current_dso'], 0)
        self.assertEqual(response.data['summary']['dso_trend'], 'stable')

    def test_dso_half_unpaid(self):
        self.invoice('100.00')
        self.invoice('100.00', status='PAID')
        start, end = get_date_range('12months')
        response = self.client.get('/api/v1/reports/dso/')
        self.assertEqual(len(response.data['data']), 1)
        self.assertEqual(response.data['summary']['current_dso'], round((end - start).days * 0.5, 1))

    def test_avg_invoice_value(self):
        for amount in ['100.00', '200.00', '600.00']:
            self.invoice(amount)
        self.invoice('5000.00', status='CANCELLED')

        response = self.client.get('/api/v1/reports/avg-invoice-value/')
        summary = response.data['summary']
        self.assertEqual(summary['total_invoices'], 3)
        self.assertEqual(summary['total_value'], 900.0)
        self.assertEqual(summary['average_value'], 300.0)
        self.assertEqual(summary['median_value'], 200.0)
        self.assertEqual(summary['min_value'], 100.0)
        self.assertEqual(summary['max_value'], 600.0)
        self.assertEqual(response.data['data'][0]['invoice_count'], 3)

    def test_revenue_by_product_class(self):
        leaflets = TestDataFactory.create_product(product_class='LEAFLETS')
        self.invoice('30.00', product=leaflets)
        self.invoice('10.00')

        response = self.client.get('/api/v1/reports/revenue-by-product/')
        rows = {row['product_class']: row for row in response.data['data']}
        self.assertEqual(rows['LEAFLETS']['percentage'], 75.0)
        self.assertEqual(rows['PACKAGING']['percentage'], 25.0)
        self.assertEqual(response.data['summary']['top_product_class'], 'LEAFLETS')
        self.assertEqual(response.data['summary']['total_revenue'], 40.0)

    def test_revenue_trends(self):
        self.invoice('80.00')
        self.invoice('20.00', issue_date=self.today - timedelta(days=40))

        response = self.client.get('/api/v1/reports/revenue-trends/')
        self.assertEqual(len(response.data['daily_sales']), 30)
        self.assertEqual(response.data['daily_sales'][-1]['total'], 80.0)
        self.assertEqual(response.data['top_products'][0]['total_revenue'], 100.0)
        self.assertEqual(response.data['weekly_comparison']['growth_percentage'], 100.0)

    def test_job_metrics_costs(self):
        invoice = self.invoice('100.00')
        job = TestDataFactory.create_job(invoice=invoice)
        TestDataFactory.create_job_product(
            job, product=self.product, quantity=10, time_taken=60, ink_cost_per_unit=Decimal('0.10')
        )
        banner = TestDataFactory.create_product(product_class='WIDE_FORMAT', base_price=Decimal('0.00'))
        TestDataFactory.create_job_product(job, product=banner, quantity=1, ink_usage_in_ml=Decimal('20.00'))
        TestDataFactory.create_job()

        response = self.client.get('/api/v1/reports/job-metrics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['data']), 1)
        row = response.data['data'][0]
        self.assertEqual(row['revenue'], 100.0)
        self.assertEqual(row['material_cost'], 20.0)
        self.assertEqual(row['ink_cost'], 11.0)
        self.assertEqual(row['labour_cost'], 30.0)
        self.assertEqual(row['overhead'], 7.5)
        self.assertEqual(row['total_cost'], 68.5)
        self.assertEqual(row['gross_profit'], 31.5)
        self.assertEqual(row['profit_margin'], 31.5)

    def test_profit_margins_by_product_class(self):
        packaging_job = TestDataFactory.create_job(invoice=self.invoice('100.00'))
        TestDataFactory.create_job_product(packaging_job, product=self.product, quantity=10)
        leaflets = TestDataFactory.create_product(product_class='LEAFLETS', base_price=Decimal('4.00'))
        leaflets_job = TestDataFactory.create_job(invoice=self.invoice('50.00', product=leaflets))
        TestDataFactory.create_job_product(leaflets_job, product=leaflets, quantity=5)
        TestDataFactory.create_job_product(leaflets_job, product=self.product, quantity=0)
        cancelled = TestDataFactory.create_job(invoice=self.invoice('10.00'), status='CANCELLED')
        TestDataFactory.create_job_product(cancelled, product=self.product, quantity=100)

        response = self.client.get('/api/v1/reports/profit-margins/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual([row['product_class'] for row in data], ['PACKAGING', 'LEAFLETS'])
        self.assertEqual(data[0]['revenue'], 100.0)
        self.assertEqual(data[0]['cost'], 23.0)
        self.assertEqual(data[0]['profit'], 77.0)
        self.assertEqual(data[0]['margin'], 77.0)
        self.assertEqual(data[1]['job_count'], 1)
        self.assertEqual(data[1]['margin'], 54.0)

        summary = response.data['summary']
        self.assertEqual(summary['total_revenue'], 150.0)
        self.assertEqual(summary['total_profit'], 104.0)
        self.assertEqual(summary['overall_margin'], 69.3)
        self.assertEqual(summary['lowest_margin_class'], 'LEAFLETS')

    def test_profit_margins_empty(self):
        response = self.client.get('/api/v1/reports/profit-margins/')
        self.assertEqual(response.data['data'], [])
        self.assertIsNone(response.data['summary']['highest_margin_class'])

    def test_dashboard_kpis(self):
        TestDataFactory.create_job(status='IN_PROGRESS', due_date=self.today + timedelta(days=3))
        TestDataFactory.create_job(status='NEW')
        TestDataFactory.create_job(status='COMPLETED', due_date=self.today)
        self.invoice('40.00', issue_date=self.today - timedelta(days=40), due_date=self.today - timedelta(days=10))
        self.invoice('60.00')
        portal_user = TestDataFactory.create_portal_user(customer=self.customer)
        CustomerOrder.objects.create(customer=self.customer, portal_user=portal_user)

        response = self.client.get('/api/v1/reports/dashboard-kpis/')
        self.assertEqual(response.data['open_jobs'], 2)
        self.assertEqual(response.data['jobs_due_this_week'], 1)
        self.assertEqual(response.data['outstanding_invoices'], 2)
        self.assertEqual(response.data['outstanding_amount'], 100.0)
        self.assertEqual(response.data['overdue_invoices'], 1)
        self.assertEqual(response.data['submitted_portal_orders'], 1)
