"""
Test suite for Invoicing module
Tests: line pricing, totals, invoice numbering, create/update/sync, status changes,
pricing preview, job propagation and the overdue command
"""
import os
from datetime import date, timedelta
from decimal import Decimal
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backend.core.exceptions import PricingError
from backend.core.models import AuditLog, Setting
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.invoicing.models import Invoice, InvoiceItem
from backend.invoicing.pricing import (
    compute_totals, normalize_tax_rate, price_line, price_item_data, default_tax_rate
)
from backend.invoicing.utils import generate_invoice_number, sync_job_products
from backend.jobs.models import JobProduct


class PricingTests(TestCase):
    """Test the line and invoice pricing functions"""

    def test_standard_line(self):
        line = price_line('PACKAGING', 3, '2.50')
        self.assertEqual(line.total_price, Decimal('7.50'))
        self.assertIsNone(line.area)

    def test_wide_format_line_uses_area(self):
        line = price_line('WIDE_FORMAT', 1, '10', length='2', width='3')
        self.assertEqual(line.area, Decimal('6.00'))
        self.assertEqual(line.total_price, Decimal('60.00'))

    def test_wide_format_quantity_multiplies_area(self):
        line = price_line('WIDE_FORMAT', 4, '12.50', length='1.5', width='0.8')
        self.assertEqual(line.area, Decimal('1.20'))
        self.assertEqual(line.total_price, Decimal('60.00'))

    def test_wide_format_requires_dimensions(self):
        with self.assertRaises(PricingError):
            price_line('WIDE_FORMAT', 1, '10', length='2')

    def test_wide_format_rejects_zero_dimension(self):
        with self.assertRaises(PricingError):
            price_line('WIDE_FORMAT', 1, '10', length='0', width='2')

    def test_invalid_quantity_and_price(self):
        with self.assertRaises(PricingError):
            price_line('LEAFLETS', 0, '1.00')
        with self.assertRaises(PricingError):
            price_line('LEAFLETS', 'many', '1.00')
        with self.assertRaises(PricingError):
            price_line('LEAFLETS', 1, '-1.00')
        with self.assertRaises(PricingError):
            price_line('LEAFLETS', 2.9, '1.00')
        with self.assertRaises(PricingError):
            price_line('LEAFLETS', '2.5', '1.00')
        self.assertEqual(price_line('LEAFLETS', '3', '1.00').total_price, Decimal('3.00'))
        self.assertEqual(price_line('LEAFLETS', 4.0, '1.00').total_price, Decimal('4.00'))

    def test_rounding_half_up(self):
        line = price_line('LEAFLETS', 3, '0.335')
        self.assertEqual(line.total_price, Decimal('1.01'))

    def test_totals(self):
        totals = compute_totals([Decimal('60.00'), Decimal('40.00')], Decimal('0.20'))
        self.assertEqual(totals.subtotal, Decimal('100.00'))
        self.assertEqual(totals.tax_amount, Decimal('20.00'))
        self.assertEqual(totals.total_amount, Decimal('120.00'))

    def test_totals_empty(self):
        totals = compute_totals([], Decimal('0.20'))
        self.assertEqual(totals.total_amount, Decimal('0.00'))

    def test_tax_rate_accepts_fraction_or_percentage(self):
        self.assertEqual(normalize_tax_rate('0.2'), Decimal('0.2000'))
        self.assertEqual(normalize_tax_rate('20'), Decimal('0.2000'))
        self.assertEqual(normalize_tax_rate(0), Decimal('0.0000'))
        with self.assertRaises(PricingError):
            normalize_tax_rate('-5')
        with self.assertRaises(PricingError):
            normalize_tax_rate('150')

    def test_default_tax_rate_from_settings_table(self):
        self.assertEqual(default_tax_rate(), Decimal('0.2000'))
        Setting.objects.create(key='DEFAULT_TAX_RATE', value='5')
        self.assertEqual(default_tax_rate(), Decimal('0.0500'))
        self.assertEqual(normalize_tax_rate(None), Decimal('0.0500'))

    def test_price_item_data_for_product(self):
        product = TestDataFactory.create_product(product_class='WIDE_FORMAT')
        data = price_item_data({'quantity': 2, 'unit_price': '10', 'length': '2', 'width': '1.5'}, product)
        self.assertEqual(data['area'], Decimal('3.00'))
        self.assertEqual(data['total_price'], Decimal('60.00'))
        self.assertEqual(data['length'], Decimal('2.00'))


class InvoiceNumberTests(TestCase):

    def test_format_and_sequence(self):
        today = timezone.localdate()
        first = generate_invoice_number()
        self.assertEqual(first, f"INV-{today.strftime('%Y%m%d')}-001")
        TestDataFactory.create_invoice()
        self.assertEqual(generate_invoice_number(), f"INV-{today.strftime('%Y%m%d')}-002")

    def test_skips_taken_number(self):
        invoice = TestDataFactory.create_invoice()
        Invoice.objects.filter(pk=invoice.pk).update(invoice_number=f"INV-{timezone.localdate().strftime('%Y%m%d')}-002")
        self.assertEqual(generate_invoice_number()[-3:], '003')


class InvoiceAPITests(TestCase):
    """Test invoice endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer()
        self.banner = TestDataFactory.create_product(name='Banner', product_class='WIDE_FORMAT', base_price=Decimal('10.00'))
        self.boxes = TestDataFactory.create_product(name='Boxes', product_class='PACKAGING', base_price=Decimal('2.00'))

    def invoice_payload(self, **overrides):
        data = {
            'customer': self.customer.id,
            'issue_date': '2026-03-01',
            'due_date': '2026-03-31',
            'tax_rate': '0.2',
            'invoice_items': [
                {'product': self.banner.id, 'description': 'Shop banner', 'quantity': 1,
                 'unit_price': '10.00', 'length': '2', 'width': '3'},
                {'product': self.boxes.id, 'description': 'Mailer boxes', 'quantity': 20, 'unit_price': '2.00'},
            ],
        }
        data.update(overrides)
        return data

    def test_create_invoice_prices_lines_server_side(self):
        payload = self.invoice_payload()
        # Client totals are ignored
        payload['invoice_items'][0]['total_price'] = '1.00'
        payload['total_amount'] = '5.00'
        response = self.client.post('/api/v1/invoices/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['subtotal']), Decimal('100.00'))
        self.assertEqual(Decimal(response.data['tax_amount']), Decimal('20.00'))
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('120.00'))
        banner_line = InvoiceItem.objects.get(invoice_id=response.data['id'], product=self.banner)
        self.assertEqual(banner_line.area, Decimal('6.00'))
        self.assertEqual(banner_line.total_price, Decimal('60.00'))
        self.assertEqual(Invoice.objects.get(pk=response.data['id']).created_by, self.user)

    def test_create_with_percentage_tax(self):
        response = self.client.post('/api/v1/invoices/', self.invoice_payload(tax_rate='20'), format='json')
        self.assertEqual(Decimal(response.data['tax_rate']), Decimal('0.2000'))
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('120.00'))

    def test_create_requires_fields(self):
        response = self.client.post('/api/v1/invoices/', self.invoice_payload(invoice_items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(
            response.data['error'],
            'Customer, issue date, due date and at least one invoice item are required'
        )

    def test_create_unknown_customer(self):
        response = self.client.post('/api/v1/invoices/', self.invoice_payload(customer=999999), format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_create_unknown_product(self):
        payload = self.invoice_payload()
        payload['invoice_items'][1]['product'] = 999999
        response = self.client.post('/api/v1/invoices/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Invoice.objects.count(), 0)

    def test_create_wide_format_without_dimensions(self):
        payload = self.invoice_payload()
        del payload['invoice_items'][0]['length']
        response = self.client.post('/api/v1/invoices/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)
        self.assertEqual(Invoice.objects.count(), 0)

    def test_due_before_issue_rejected(self):
        response = self.client.post('/api/v1/invoices/', self.invoice_payload(due_date='2026-02-01'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_paginated_and_filtered(self):
        TestDataFactory.create_invoice(customer=self.customer)
        TestDataFactory.create_invoice(status='PAID')
        response = self.client.get('/api/v1/invoices/?limit=1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(len(response.data['results']), 1)
        response = self.client.get(f'/api/v1/invoices/?customer={self.customer.id}')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/invoices/?status=PAID')
        self.assertEqual(response.data['count'], 1)

    def test_create_rejects_fractional_quantity(self):
        payload = self.invoice_payload(tax_rate='0')
        payload['invoice_items'] = [{'product': self.boxes.id, 'description': 'Boxes', 'quantity': 2.9, 'unit_price': '10'}]
        response = self.client.post('/api/v1/invoices/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)
        self.assertEqual(Invoice.objects.count(), 0)

    def test_create_accepts_whole_number_string_quantity(self):
        payload = self.invoice_payload(tax_rate='0')
        payload['invoice_items'] = [{'product': self.boxes.id, 'description': 'Boxes', 'quantity': '3', 'unit_price': '10'}]
        response = self.client.post('/api/v1/invoices/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('30.00'))

    def test_list_ignores_malformed_paging(self):
        TestDataFactory.create_invoice(customer=self.customer)
        response = self.client.get('/api/v1/invoices/?page=abc&limit=0')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['page'], 1)
        self.assertEqual(response.data['page_size'], 1)
        response = self.client.get('/api/v1/invoices/?limit=lots')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['page_size'], 50)

    def test_list_overdue_filter(self):
        TestDataFactory.create_invoice(issue_date=date(2020, 1, 1), due_date=date(2020, 1, 31))
        TestDataFactory.create_invoice()
        response = self.client.get('/api/v1/invoices/?overdue=true')
        self.assertEqual(response.data['count'], 1)

    def test_update_items_recomputes_totals(self):
        invoice = TestDataFactory.create_invoice(
            customer=self.customer,
            items=[{'product': self.boxes, 'quantity': 10, 'unit_price': '2.00'}],
            tax_rate='0.2',
        )
        item = invoice.items.get()
        payload = {
            'invoice_items': [
                {'id': item.id, 'product': self.boxes.id, 'description': 'Boxes', 'quantity': 5, 'unit_price': '2.00'},
                {'product': self.banner.id, 'description': 'Banner', 'quantity': 1, 'unit_price': '10.00',
                 'length': '1', 'width': '1'},
            ],
        }
        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        invoice.refresh_from_db()
        self.assertEqual(invoice.items.count(), 2)
        self.assertEqual(invoice.subtotal, Decimal('20.00'))
        self.assertEqual(invoice.total_amount, invoice.subtotal + invoice.tax_amount)
        self.assertTrue(invoice.items.filter(pk=item.id, quantity=5).exists())

    def test_update_removes_missing_items(self):
        invoice = TestDataFactory.create_invoice(
            items=[
                {'product': self.boxes, 'quantity': 1, 'unit_price': '2.00'},
                {'product': self.boxes, 'quantity': 2, 'unit_price': '2.00'},
            ],
        )
        keep = invoice.items.order_by('id').first()
        payload = {'invoice_items': [
            {'id': keep.id, 'product': self.boxes.id, 'description': 'Boxes', 'quantity': 1, 'unit_price': '2.00'},
        ]}
        self.client.patch(f'/api/v1/invoices/{invoice.id}/', payload, format='json')
        self.assertEqual(list(invoice.items.values_list('id', flat=True)), [keep.id])

    def test_update_tax_rate_only(self):
        invoice = TestDataFactory.create_invoice(
            items=[{'product': self.boxes, 'quantity': 50, 'unit_price': '2.00'}], tax_rate='0.2'
        )
        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/', {'tax_rate': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('100.00'))

    def test_update_with_invalid_status_rolls_back(self):
        invoice = TestDataFactory.create_invoice(status='CANCELLED')
        response = self.client.patch(
            f'/api/v1/invoices/{invoice.id}/', {'notes': 'changed', 'status': 'PAID'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        invoice.refresh_from_db()
        self.assertEqual(invoice.notes, '')

    def test_delete_invoice(self):
        invoice = TestDataFactory.create_invoice()
        response = self.client.delete(f'/api/v1/invoices/{invoice.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Invoice deleted successfully')
        self.assertFalse(Invoice.objects.filter(pk=invoice.id).exists())
        self.assertFalse(InvoiceItem.objects.filter(invoice_id=invoice.id).exists())


class InvoiceStatusTests(TestCase):
    """Test invoice status transitions"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())

    def test_mark_paid_sets_paid_at(self):
        invoice = TestDataFactory.create_invoice()
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/status/', {'status': 'PAID'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, 'PAID')
        self.assertIsNotNone(invoice.paid_at)
        self.assertTrue(AuditLog.objects.filter(action='invoice_status', object_reference=invoice.invoice_number).exists())

    def test_reopen_clears_paid_at(self):
        invoice = TestDataFactory.create_invoice(status='PAID')
        self.client.post(f'/api/v1/invoices/{invoice.id}/status/', {'status': 'PENDING'}, format='json')
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, 'PENDING')
        self.assertIsNone(invoice.paid_at)

    def test_cancelled_is_final(self):
        invoice = TestDataFactory.create_invoice(status='CANCELLED')
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/status/', {'status': 'PENDING'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_and_missing_status(self):
        invoice = TestDataFactory.create_invoice()
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/status/', {'status': 'LOST'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/status/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class InvoiceCalculateTests(TestCase):
    """Test the pricing preview endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())

    def test_preview_by_product_class(self):
        payload = {
            'items': [{'product_class': 'WIDE_FORMAT', 'quantity': 10, 'unit_price': '1', 'length': '2', 'width': '3'}],
            'tax_rate': '20',
        }
        response = self.client.post('/api/v1/invoices/calculate/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['lines'][0]['area'], '6.00')
        self.assertEqual(response.data['subtotal'], '60.00')
        self.assertEqual(response.data['tax_amount'], '12.00')
        self.assertEqual(response.data['total_amount'], '72.00')
        self.assertEqual(Invoice.objects.count(), 0)

    def test_preview_uses_product_base_price(self):
        product = TestDataFactory.create_product(base_price=Decimal('4.25'))
        response = self.client.post(
            '/api/v1/invoices/calculate/',
            {'items': [{'product': product.id, 'quantity': 2}], 'tax_rate': '0'},
            format='json'
        )
        self.assertEqual(response.data['subtotal'], '8.50')

    def test_preview_requires_items(self):
        response = self.client.post('/api/v1/invoices/calculate/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class JobPropagationTests(TestCase):
    """Test that invoice edits reach the linked job"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())
        self.product_a = TestDataFactory.create_product()
        self.product_b = TestDataFactory.create_product()
        self.invoice = TestDataFactory.create_invoice(
            items=[{'product': self.product_a, 'quantity': 10, 'unit_price': '1.00'}]
        )
        self.job = TestDataFactory.create_job(invoice=self.invoice)
        self.job_product = TestDataFactory.create_job_product(
            self.job, product=self.product_a, quantity=10, completed_quantity=8
        )

    def test_matched_product_keeps_progress_clamped(self):
        item = self.invoice.items.get()
        payload = {'invoice_items': [
            {'id': item.id, 'product': self.product_a.id, 'description': 'A', 'quantity': 5, 'unit_price': '1.00'},
            {'product': self.product_b.id, 'description': 'B', 'quantity': 3, 'unit_price': '2.00'},
        ]}
        response = self.client.patch(f'/api/v1/invoices/{self.invoice.id}/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.job_product.refresh_from_db()
        self.assertEqual(self.job_product.quantity, 5)
        self.assertEqual(self.job_product.completed_quantity, 5)
        new_line = JobProduct.objects.get(job=self.job, product=self.product_b)
        self.assertEqual(new_line.completed_quantity, 0)
        self.assertEqual(new_line.total_price, Decimal('6.00'))

    def test_removed_product_deleted_from_job(self):
        self.invoice.items.all().delete()
        InvoiceItem.objects.create(
            invoice=self.invoice, product=self.product_b, description='B',
            quantity=1, unit_price=Decimal('1.00'), total_price=Decimal('1.00')
        )
        sync_job_products(self.invoice)
        self.assertEqual(list(self.job.job_products.values_list('product_id', flat=True)), [self.product_b.id])

    def split_job_product(self):
        payload = {
            'job_products': [{'id': self.job_product.id, 'quantity': 6, 'completed_quantity': 6}],
            'remaining_job_products': [{'product': self.product_a.id, 'quantity': 4, 'unit_price': '1.00'}],
        }
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/progress/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def job_lines(self):
        return list(self.job.job_products.order_by('id').values_list('quantity', 'completed_quantity'))

    def test_header_edit_leaves_split_lines(self):
        self.split_job_product()
        response = self.client.patch(f'/api/v1/invoices/{self.invoice.id}/', {'notes': 'rush please'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.job_lines(), [(6, 6), (4, 0)])

    def test_item_edit_leaves_split_lines(self):
        self.split_job_product()
        item = self.invoice.items.get()
        payload = {'invoice_items': [
            {'id': item.id, 'product': self.product_a.id, 'description': 'A', 'quantity': 12, 'unit_price': '1.00'},
        ]}
        response = self.client.patch(f'/api/v1/invoices/{self.invoice.id}/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.job_lines(), [(6, 6), (4, 0)])

    def test_removing_product_drops_all_its_lines(self):
        self.split_job_product()
        payload = {'invoice_items': [
            {'product': self.product_b.id, 'description': 'B', 'quantity': 2, 'unit_price': '1.00'},
        ]}
        response = self.client.patch(f'/api/v1/invoices/{self.invoice.id}/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(list(self.job.job_products.values_list('product_id', 'quantity')), [(self.product_b.id, 2)])

    def test_invoice_without_job_is_ignored(self):
        invoice = TestDataFactory.create_invoice()
        sync_job_products(invoice)
        self.assertEqual(JobProduct.objects.exclude(job=self.job).count(), 0)


class MarkOverdueCommandTests(TestCase):

    def test_marks_only_past_due_pending(self):
        past = TestDataFactory.create_invoice(issue_date=date(2020, 1, 1), due_date=date(2020, 1, 31))
        paid_past = TestDataFactory.create_invoice(issue_date=date(2020, 1, 1), due_date=date(2020, 1, 31), status='PAID')
        current = TestDataFactory.create_invoice(due_date=timezone.localdate() + timedelta(days=5))
        with open(os.devnull, 'w') as devnull:
            call_command('mark_overdue_invoices', stdout=devnull)
        past.refresh_from_db()
        paid_past.refresh_from_db()
        current.refresh_from_db()
        self.assertEqual(past.status, 'OVERDUE')
        self.assertEqual(paid_past.status, 'PAID')
        self.assertEqual(current.status, 'PENDING')

    def test_dry_run_changes_nothing(self):
        invoice = TestDataFactory.create_invoice(issue_date=date(2020, 1, 1), due_date=date(2020, 1, 31))
        with open(os.devnull, 'w') as devnull:
            call_command('mark_overdue_invoices', '--dry-run', stdout=devnull)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, 'PENDING')
