"""
Test suite for Parties module
Tests: customer CRUD, duplicate emails, list caching, statements and CSV import
"""
import os
import tempfile
from decimal import Decimal
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.invoicing.models import Invoice
from backend.jobs.models import Job
from backend.parties.models import Customer


class CustomerAPITests(TestCase):
    """Test customer endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_customer(self):
        data = {'name': 'Print Hub Ltd', 'email': 'orders@printhub.test', 'phone': '020 7946 0000'}
        response = self.client.post('/api/v1/customers/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Print Hub Ltd')
        self.assertTrue(Customer.objects.filter(email='orders@printhub.test').exists())

    def test_create_customer_requires_name_and_email(self):
        response = self.client.post('/api/v1/customers/', {'name': 'No Email'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Name and email are required')

    def test_duplicate_email_conflict(self):
        TestDataFactory.create_customer(email='taken@test.com')
        response = self.client.post('/api/v1/customers/', {'name': 'Copycat', 'email': 'taken@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'A customer with this email already exists')

    def test_update_to_duplicate_email_conflict(self):
        TestDataFactory.create_customer(email='first@test.com')
        second = TestDataFactory.create_customer(email='second@test.com')
        response = self.client.patch(f'/api/v1/customers/{second.id}/', {'email': 'first@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_update_keeps_own_email(self):
        customer = TestDataFactory.create_customer(email='same@test.com')
        response = self.client.put(
            f'/api/v1/customers/{customer.id}/',
            {'name': 'Renamed', 'email': 'same@test.com'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Renamed')

    def test_list_includes_counts(self):
        customer = TestDataFactory.create_customer(name='Counted Co')
        TestDataFactory.create_invoice(customer=customer)
        TestDataFactory.create_job(customer=customer)
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = next(c for c in response.data if c['id'] == customer.id)
        self.assertEqual(row['job_count'], 1)
        self.assertEqual(row['invoice_count'], 1)

    def test_list_search(self):
        TestDataFactory.create_customer(name='Zebra Signs')
        TestDataFactory.create_customer(name='Other Shop')
        response = self.client.get('/api/v1/customers/?search=zebra')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['name'], 'Zebra Signs')

    def test_list_cache_invalidated_on_create(self):
        TestDataFactory.create_customer(name='Before Cache')
        first = self.client.get('/api/v1/customers/')
        self.assertEqual(len(first.data), 1)
        TestDataFactory.create_customer(name='After Cache')
        second = self.client.get('/api/v1/customers/')
        self.assertEqual(len(second.data), 2)

    def test_detail_includes_jobs_and_invoices(self):
        customer = TestDataFactory.create_customer()
        invoice = TestDataFactory.create_invoice(customer=customer)
        job = TestDataFactory.create_job(customer=customer, title='Flyers')
        response = self.client.get(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['jobs'][0]['id'], job.id)
        self.assertEqual(response.data['invoices'][0]['invoice_number'], invoice.invoice_number)

    def test_delete_cascades_to_jobs_and_invoices(self):
        customer = TestDataFactory.create_customer()
        TestDataFactory.create_invoice(customer=customer)
        TestDataFactory.create_job(customer=customer)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'success': True})
        self.assertFalse(Invoice.objects.filter(customer_id=customer.id).exists())
        self.assertFalse(Job.objects.filter(customer_id=customer.id).exists())

    def test_statement_totals(self):
        customer = TestDataFactory.create_customer()
        product = TestDataFactory.create_product()
        items = [{'product': product, 'quantity': 1, 'unit_price': '100.00'}]
        TestDataFactory.create_invoice(customer=customer, items=items, tax_rate='0')
        TestDataFactory.create_invoice(customer=customer, items=items, tax_rate='0', status='PAID')
        TestDataFactory.create_invoice(customer=customer, items=items, tax_rate='0', status='CANCELLED')
        response = self.client.get(f'/api/v1/customers/{customer.id}/statement/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['total_invoiced']), Decimal('200.00'))
        self.assertEqual(Decimal(response.data['total_paid']), Decimal('100.00'))
        self.assertEqual(Decimal(response.data['total_outstanding']), Decimal('100.00'))

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class ImportCustomersCommandTests(TestCase):
    """Test the import_customers management command"""

    def write_csv(self, content):
        handle = tempfile.NamedTemporaryFile(mode='w', suffix='.csv', delete=False)
        handle.write(content)
        handle.close()
        self.addCleanup(os.unlink, handle.name)
        return handle.name

    def test_import_creates_customers(self):
        path = self.write_csv('name,email,phone,address\nAcme,acme@test.com,0123,1 Road\nBeta,beta@test.com,,\n')
        call_command('import_customers', path, stdout=open(os.devnull, 'w'))
        self.assertEqual(Customer.objects.count(), 2)

    def test_dry_run_writes_nothing(self):
        path = self.write_csv('name,email\nAcme,acme@test.com\n')
        call_command('import_customers', path, '--dry-run', stdout=open(os.devnull, 'w'))
        self.assertEqual(Customer.objects.count(), 0)

    def test_update_existing(self):
        TestDataFactory.create_customer(name='Old Name', email='acme@test.com')
        path = self.write_csv('name,email\nNew Name,acme@test.com\n')
        call_command('import_customers', path, '--update', stdout=open(os.devnull, 'w'))
        self.assertEqual(Customer.objects.get(email='acme@test.com').name, 'New Name')
