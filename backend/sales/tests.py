"""
Test suite for Sales module
Tests: sales team membership, activity tracking, follow-ups, pipeline
summary and quotations
"""
from datetime import timedelta
from decimal import Decimal
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.invoicing.models import Invoice
from backend.sales.models import SalesEmployee, SalesActivity, FollowUp, Quotation
from backend.sales.utils import generate_quote_number, price_quote_items


class SalesStatusTests(TestCase):
    """Test adding and removing users from the sales team"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.employee = TestDataFactory.create_user()

    def test_toggle_adds_then_deactivates(self):
        url = f'/api/v1/employees/{self.employee.id}/sales-status/'
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_sales_employee'])
        response = self.client.post(url)
        self.assertFalse(response.data['is_sales_employee'])
        self.assertFalse(SalesEmployee.objects.get(user=self.employee).is_active)

    def test_toggle_requires_admin(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.employee)
        response = client.post(f'/api/v1/employees/{self.employee.id}/sales-status/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_check_status(self):
        url = f'/api/v1/employees/{self.employee.id}/sales-status/check/'
        self.assertFalse(self.client.get(url).data['is_sales_employee'])
        TestDataFactory.create_sales_employee(user=self.employee)
        self.assertTrue(self.client.get(url).data['is_sales_employee'])


class SalesActivityTests(TestCase):
    """Test activity visibility and ownership"""

    def setUp(self):
        self.rep = TestDataFactory.create_sales_employee()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.rep)

    def test_non_sales_user_forbidden(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        response = client.get('/api/v1/sales/activities/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Sales access required')

    def test_inactive_sales_employee_forbidden(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_sales_employee(is_active=False))
        response = client.get('/api/v1/sales/activities/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_defaults_employee_and_date(self):
        other = TestDataFactory.create_sales_employee()
        response = self.client.post(
            '/api/v1/sales/activities/',
            {'shop_name': 'Bean There', 'status': 'SPOKE_WITH_MANAGER', 'employee': other.id},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        activity = SalesActivity.objects.get(pk=response.data['id'])
        self.assertEqual(activity.employee, self.rep)
        self.assertEqual(activity.date, timezone.localdate())

    def test_list_only_own_activities(self):
        mine = TestDataFactory.create_sales_activity(self.rep)
        TestDataFactory.create_sales_activity(TestDataFactory.create_sales_employee())
        response = self.client.get('/api/v1/sales/activities/')
        self.assertEqual([a['id'] for a in response.data], [mine.id])

    def test_admin_sees_all_and_filters_by_employee(self):
        TestDataFactory.create_sales_activity(self.rep)
        other = TestDataFactory.create_sales_employee()
        TestDataFactory.create_sales_activity(other)
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_admin())
        self.assertEqual(len(client.get('/api/v1/sales/activities/').data), 2)
        self.assertEqual(len(client.get(f'/api/v1/sales/activities/?employee={other.id}').data), 1)

    def test_list_filters_by_status_and_date(self):
        today = timezone.localdate()
        TestDataFactory.create_sales_activity(self.rep, status='CONVERTED', date=today)
        TestDataFactory.create_sales_activity(self.rep, date=today - timedelta(days=10))
        response = self.client.get('/api/v1/sales/activities/?status=converted')
        self.assertEqual(len(response.data), 1)
        since = (today - timedelta(days=3)).isoformat()
        response = self.client.get(f'/api/v1/sales/activities/?date_from={since}')
        self.assertEqual(len(response.data), 1)

    def test_other_employees_activity_not_found(self):
        activity = TestDataFactory.create_sales_activity(TestDataFactory.create_sales_employee())
        response = self.client.patch(f'/api/v1/sales/activities/{activity.id}/', {'status': 'CONVERTED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_own_activity(self):
        activity = TestDataFactory.create_sales_activity(self.rep)
        response = self.client.patch(
            f'/api/v1/sales/activities/{activity.id}/', {'status': 'SAMPLE_REQUESTED'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'SAMPLE_REQUESTED')

    def test_follow_ups(self):
        activity = TestDataFactory.create_sales_activity(self.rep)
        next_week = (timezone.localdate() + timedelta(days=7)).isoformat()
        response = self.client.post(
            f'/api/v1/sales/activities/{activity.id}/follow-ups/',
            {'date': next_week, 'notes': 'Bring samples'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        follow_up_id = response.data['id']

        response = self.client.patch(f'/api/v1/sales/follow-ups/{follow_up_id}/', {'completed': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(FollowUp.objects.get(pk=follow_up_id).completed)

    def test_follow_up_of_other_employee_not_found(self):
        activity = TestDataFactory.create_sales_activity(TestDataFactory.create_sales_employee())
        follow_up = FollowUp.objects.create(activity=activity, date=timezone.localdate())
        response = self.client.patch(f'/api/v1/sales/follow-ups/{follow_up.id}/', {'completed': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class SalesPipelineTests(TestCase):

    def setUp(self):
        self.rep = TestDataFactory.create_sales_employee()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.rep)

    def test_empty_pipeline(self):
        response = self.client.get('/api/v1/sales/pipeline/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 0)
        self.assertEqual(response.data['conversion_rate'], 0)
        self.assertEqual(set(response.data['stages']), set(SalesActivity.PIPELINE_STAGES))
        self.assertTrue(all(count == 0 for count in response.data['stages'].values()))

    def test_conversion_rate(self):
        for activity_status in ['LEAFLET_DROPPED', 'LEAFLET_DROPPED', 'ORDER_PLACED', 'CONVERTED']:
            TestDataFactory.create_sales_activity(self.rep, status=activity_status)
        activity = TestDataFactory.create_sales_activity(self.rep)
        FollowUp.objects.create(activity=activity, date=timezone.localdate())

        response = self.client.get('/api/v1/sales/pipeline/')
        self.assertEqual(response.data['total'], 5)
        self.assertEqual(response.data['stages']['LEAFLET_DROPPED'], 3)
        self.assertEqual(response.data['conversion_rate'], 20.0)
        self.assertEqual(response.data['open_follow_ups'], 1)
        self.assertEqual(response.data['by_employee'][0]['converted'], 1)


class QuotationTests(TestCase):
    """Test quotation pricing and conversion to invoices"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer()
        self.banner = TestDataFactory.create_product(name='Banner', product_class='WIDE_FORMAT')
        self.boxes = TestDataFactory.create_product(name='Boxes')

    def quote_payload(self, **extra):
        payload = {
            'customer': self.customer.id,
            'items': [
                {'product': self.banner.id, 'quantity': 1, 'unit_price': '10.00', 'length': '2', 'width': '1.5'},
                {'product': self.boxes.id, 'quantity': 4, 'unit_price': '2.50'},
            ],
        }
        payload.update(extra)
        return payload

    def test_quote_number_sequence(self):
        today = timezone.localdate()
        first = generate_quote_number(today)
        self.assertEqual(first, f"Q-{today.strftime('%Y%m%d')}-0001")
        Quotation.objects.create(quote_number=first, customer=self.customer, expires_at=today)
        self.assertEqual(generate_quote_number(today), f"Q-{today.strftime('%Y%m%d')}-0002")

    def test_price_quote_items(self):
        items, total = price_quote_items(self.quote_payload()['items'])
        self.assertEqual(items[0]['area'], '3.00')
        self.assertEqual(items[0]['total_price'], '30.00')
        self.assertEqual(items[1]['total_price'], '10.00')
        self.assertEqual(total, Decimal('40.00'))

    def test_create_quote(self):
        response = self.client.post('/api/v1/quotes/', self.quote_payload(total_amount='1.00'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('40.00'))
        self.assertEqual(response.data['status'], 'PENDING')
        quote = Quotation.objects.get(pk=response.data['id'])
        self.assertEqual(quote.expires_at, timezone.localdate() + timedelta(days=30))
        self.assertEqual(quote.created_by, self.user)

    def test_create_quote_without_items(self):
        response = self.client.post('/api/v1/quotes/', self.quote_payload(items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Quotation.objects.exists())

    def test_update_items_reprices(self):
        quote_id = self.client.post('/api/v1/quotes/', self.quote_payload(), format='json').data['id']
        items = [{'product': self.boxes.id, 'quantity': 2, 'unit_price': '2.50'}]
        response = self.client.patch(f'/api/v1/quotes/{quote_id}/', {'items': items}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('5.00'))

    def test_filter_by_status(self):
        self.client.post('/api/v1/quotes/', self.quote_payload(), format='json')
        self.assertEqual(len(self.client.get('/api/v1/quotes/?status=pending').data), 1)
        self.assertEqual(len(self.client.get('/api/v1/quotes/?status=accepted').data), 0)

    def test_convert_quote(self):
        quote_id = self.client.post('/api/v1/quotes/', self.quote_payload(), format='json').data['id']
        response = self.client.post(f'/api/v1/quotes/{quote_id}/convert/', {'tax_rate': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        invoice = Invoice.objects.get(pk=response.data['invoice_id'])
        self.assertEqual(invoice.customer, self.customer)
        self.assertEqual(invoice.items.count(), 2)
        self.assertEqual(invoice.total_amount, Decimal('40.00'))
        self.assertEqual(response.data['quote']['status'], 'ACCEPTED')

        response = self.client.post(f'/api/v1/quotes/{quote_id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_convert_expired_quote(self):
        quote_id = self.client.post('/api/v1/quotes/', self.quote_payload(), format='json').data['id']
        Quotation.objects.filter(pk=quote_id).update(expires_at=timezone.localdate() - timedelta(days=1))
        response = self.client.post(f'/api/v1/quotes/{quote_id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Quotation.objects.get(pk=quote_id).status, 'EXPIRED')
        self.assertFalse(Invoice.objects.exists())

    def test_convert_expired_accepted_quote(self):
        quote_id = self.client.post('/api/v1/quotes/', self.quote_payload(), format='json').data['id']
        Quotation.objects.filter(pk=quote_id).update(
            status='ACCEPTED', expires_at=timezone.localdate() - timedelta(days=3)
        )
        response = self.client.post(f'/api/v1/quotes/{quote_id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot convert a quotation with status EXPIRED')
        self.assertEqual(Quotation.objects.get(pk=quote_id).status, 'EXPIRED')
        self.assertFalse(Invoice.objects.exists())

    def test_convert_rejected_quote(self):
        quote_id = self.client.post('/api/v1/quotes/', self.quote_payload(), format='json').data['id']
        Quotation.objects.filter(pk=quote_id).update(status='REJECTED')
        response = self.client.post(f'/api/v1/quotes/{quote_id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
