"""
Test suite for Jobs module
Tests: job CRUD, status transitions and timeline, production progress,
create-from-invoice, assignments and the employee job list
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.jobs.models import Job, JobProduct, JobAssignment, ProgressUpdate


def latest_update(job):
    return ProgressUpdate.objects.filter(job=job).order_by('-id').first()


class JobAPITests(TestCase):
    """Test job endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer()

    def test_create_job_defaults(self):
        response = self.client.post('/api/v1/jobs/', {'title': 'Shop signage', 'customer': self.customer.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        job = Job.objects.get(pk=response.data['id'])
        self.assertEqual(job.status, 'NEW')
        self.assertEqual(job.priority, 'MEDIUM')
        self.assertEqual(job.created_by, self.user)

    def test_create_job_requires_title(self):
        response = self.client.post('/api/v1/jobs/', {'customer': self.customer.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_job_with_products(self):
        product = TestDataFactory.create_product(base_price=Decimal('3.00'))
        payload = {
            'title': 'Boxes',
            'job_products': [{'product': product.id, 'quantity': 4}],
        }
        response = self.client.post('/api/v1/jobs/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        job_product = JobProduct.objects.get(job_id=response.data['id'])
        self.assertEqual(job_product.unit_price, Decimal('3.00'))
        self.assertEqual(job_product.total_price, Decimal('12.00'))

    def test_create_job_for_invoice_with_job_conflicts(self):
        invoice = TestDataFactory.create_invoice(customer=self.customer)
        TestDataFactory.create_job(invoice=invoice)
        response = self.client.post('/api/v1/jobs/', {'title': 'Second', 'invoice': invoice.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_create_job_with_malformed_invoice(self):
        response = self.client.post('/api/v1/jobs/', {'title': 'Signs', 'invoice': 'abc'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid invoice: abc')
        job = TestDataFactory.create_job()
        response = self.client.patch(f'/api/v1/jobs/{job.id}/', {'invoice': 'abc'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_job_with_bad_product_quantity(self):
        product = TestDataFactory.create_product()
        for quantity in ['two', 1.5]:
            payload = {'title': 'Boxes', 'job_products': [{'product': product.id, 'quantity': quantity}]}
            response = self.client.post('/api/v1/jobs/', payload, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertIn('error', response.data)
        self.assertFalse(Job.objects.filter(title='Boxes').exists())

    def test_list_filters(self):
        other = TestDataFactory.create_customer()
        TestDataFactory.create_job(customer=self.customer, status='IN_PROGRESS')
        TestDataFactory.create_job(customer=other)
        response = self.client.get('/api/v1/jobs/?status=IN_PROGRESS')
        self.assertEqual(len(response.data), 1)
        response = self.client.get(f'/api/v1/jobs/?customer={other.id}')
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/jobs/?days=7')
        self.assertEqual(len(response.data), 2)

    def test_detail_includes_related(self):
        invoice = TestDataFactory.create_invoice(customer=self.customer)
        job = TestDataFactory.create_job(invoice=invoice, user=self.user)
        TestDataFactory.create_job_product(job)
        response = self.client.get(f'/api/v1/jobs/{job.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customer']['id'], self.customer.id)
        self.assertEqual(response.data['invoice']['invoice_number'], invoice.invoice_number)
        self.assertEqual(len(response.data['job_products']), 1)
        self.assertEqual(response.data['created_by']['id'], self.user.id)

    def test_update_status_logs_progress(self):
        job = TestDataFactory.create_job(customer=self.customer)
        response = self.client.patch(f'/api/v1/jobs/{job.id}/', {'status': 'IN_PROGRESS'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(latest_update(job).content, 'Job started')

    def test_delete_job_removes_children(self):
        job = TestDataFactory.create_job()
        TestDataFactory.create_job_product(job)
        ProgressUpdate.objects.create(job=job, user=self.user, content='note')
        JobAssignment.objects.create(job=job, user=self.user)
        response = self.client.delete(f'/api/v1/jobs/{job.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(JobProduct.objects.filter(job_id=job.id).exists())
        self.assertFalse(ProgressUpdate.objects.filter(job_id=job.id).exists())
        self.assertFalse(JobAssignment.objects.filter(job_id=job.id).exists())


class JobStatusTests(TestCase):
    """Test the status endpoint and its timeline messages"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def change(self, job, new_status):
        return self.client.patch(f'/api/v1/jobs/{job.id}/status/', {'status': new_status}, format='json')

    def test_status_required(self):
        job = TestDataFactory.create_job()
        response = self.client.patch(f'/api/v1/jobs/{job.id}/status/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_transition_messages(self):
        job = TestDataFactory.create_job(status='NEW')
        self.change(job, 'IN_PROGRESS')
        self.assertEqual(latest_update(job).content, 'Job started')
        self.change(job, 'COMPLETED')
        self.assertEqual(latest_update(job).content, 'Job marked as completed')
        self.change(job, 'IN_PROGRESS')
        self.assertEqual(latest_update(job).content, 'Job reopened and resumed')
        self.change(job, 'COMPLETED')
        self.change(job, 'PENDING')
        self.assertEqual(latest_update(job).content, 'Job reopened and marked as pending')
        self.assertEqual(latest_update(job).user, self.user)

    def test_status_change_is_audited(self):
        job = TestDataFactory.create_job()
        self.change(job, 'PENDING')
        self.assertTrue(AuditLog.objects.filter(action='job_status', object_id=str(job.id)).exists())

    def test_same_status_writes_nothing(self):
        job = TestDataFactory.create_job(status='PENDING')
        self.change(job, 'PENDING')
        self.assertFalse(ProgressUpdate.objects.filter(job=job).exists())


class JobProductProgressTests(TestCase):
    """Test per-product production progress"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())
        self.job = TestDataFactory.create_job(status='PENDING')
        self.first = TestDataFactory.create_job_product(self.job, quantity=10)
        self.second = TestDataFactory.create_job_product(self.job, quantity=5)

    def url(self, job_product):
        return f'/api/v1/jobs/{self.job.id}/products/{job_product.id}/'

    def test_requires_a_field(self):
        response = self.client.patch(self.url(self.first), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_completed_quantity_clamped(self):
        self.client.patch(self.url(self.first), {'completed_quantity': 50}, format='json')
        self.first.refresh_from_db()
        self.assertEqual(self.first.completed_quantity, 10)
        self.client.patch(self.url(self.first), {'completed_quantity': -3}, format='json')
        self.first.refresh_from_db()
        self.assertEqual(self.first.completed_quantity, 0)

    def test_negative_time_and_ink_ignored(self):
        self.client.patch(self.url(self.first), {'time_taken': 30, 'ink_usage_in_ml': '12.5'}, format='json')
        self.client.patch(self.url(self.first), {'time_taken': -5, 'ink_usage_in_ml': '-1'}, format='json')
        self.first.refresh_from_db()
        self.assertEqual(self.first.time_taken, 30)
        self.assertEqual(self.first.ink_usage_in_ml, Decimal('12.50'))

    def test_first_progress_starts_job(self):
        response = self.client.patch(self.url(self.first), {'completed_quantity': 2}, format='json')
        self.assertEqual(response.data['job_status'], 'IN_PROGRESS')
        self.assertEqual(latest_update(self.job).content, 'Work begun on job')

    def test_all_complete_completes_job(self):
        self.client.patch(self.url(self.first), {'completed_quantity': 10}, format='json')
        response = self.client.patch(self.url(self.second), {'completed_quantity': 5}, format='json')
        self.assertEqual(response.data['job_status'], 'COMPLETED')
        self.assertEqual(latest_update(self.job).content, 'All products completed, job marked as completed')

    def test_fractional_completed_quantity_rejected(self):
        response = self.client.patch(self.url(self.first), {'completed_quantity': 2.5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.first.refresh_from_db()
        self.assertEqual(self.first.completed_quantity, 0)

    def test_job_product_of_other_job_not_found(self):
        other = TestDataFactory.create_job_product(TestDataFactory.create_job())
        response = self.client.patch(self.url(other), {'completed_quantity': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class JobBulkProgressTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())
        self.job = TestDataFactory.create_job(status='NEW')
        self.job_product = TestDataFactory.create_job_product(self.job, quantity=10)

    def test_requires_job_products(self):
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/progress/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_partial_progress_moves_to_in_progress(self):
        payload = {'job_products': [{'id': self.job_product.id, 'completed_quantity': 4, 'time_taken': 20}]}
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/progress/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('message', response.data)
        self.assertEqual(response.data['job']['status'], 'IN_PROGRESS')
        self.assertEqual(response.data['job_products'][0]['completed_quantity'], 4)

    def test_split_remaining_work(self):
        payload = {
            'job_products': [{'id': self.job_product.id, 'quantity': 6, 'completed_quantity': 6}],
            'remaining_job_products': [{'product': self.job_product.product_id, 'quantity': 4, 'unit_price': '5.00'}],
        }
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/progress/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.job.job_products.count(), 2)
        remaining = self.job.job_products.order_by('-id').first()
        self.assertEqual(remaining.quantity, 4)
        self.assertEqual(remaining.completed_quantity, 0)
        self.assertEqual(response.data['job']['status'], 'IN_PROGRESS')

    def test_malformed_quantities_rejected(self):
        for field, value in [('quantity', 'two'), ('completed_quantity', 'some'), ('quantity', 4.5)]:
            payload = {'job_products': [{'id': self.job_product.id, field: value}]}
            response = self.client.post(f'/api/v1/jobs/{self.job.id}/progress/', payload, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertIn('error', response.data)
        self.job_product.refresh_from_db()
        self.assertEqual(self.job_product.quantity, 10)

    def test_malformed_remaining_quantity_rolls_back(self):
        payload = {
            'job_products': [{'id': self.job_product.id, 'quantity': 6, 'completed_quantity': 6}],
            'remaining_job_products': [{'product': self.job_product.product_id, 'quantity': 'four'}],
        }
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/progress/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.job_product.refresh_from_db()
        self.assertEqual(self.job_product.quantity, 10)
        self.assertEqual(self.job.job_products.count(), 1)

    def test_all_complete_completes_job(self):
        payload = {'job_products': [{'id': self.job_product.id, 'completed_quantity': 10}]}
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/progress/', payload, format='json')
        self.assertEqual(response.data['job']['status'], 'COMPLETED')


class CreateFromInvoiceTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())
        self.product = TestDataFactory.create_product()
        self.invoice = TestDataFactory.create_invoice(
            items=[{'product': self.product, 'quantity': 25, 'unit_price': '0.40', 'description': 'Leaflets'}]
        )

    def test_requires_invoice(self):
        response = self.client.post('/api/v1/jobs/create-from-invoice/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_invoice(self):
        response = self.client.post('/api/v1/jobs/create-from-invoice/', {'invoice': 999999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_creates_job_copying_items(self):
        response = self.client.post('/api/v1/jobs/create-from-invoice/', {'invoice': self.invoice.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        job = Job.objects.get(pk=response.data['id'])
        self.assertEqual(job.title, f'Job for Invoice #{self.invoice.invoice_number}')
        self.assertEqual(job.status, 'PENDING')
        self.assertEqual(job.priority, 'MEDIUM')
        self.assertEqual(job.customer, self.invoice.customer)
        job_product = job.job_products.get()
        self.assertEqual(job_product.quantity, 25)
        self.assertEqual(job_product.total_price, Decimal('10.00'))
        self.assertEqual(job_product.notes, 'Leaflets')

    def test_second_job_conflicts(self):
        first = self.client.post('/api/v1/jobs/create-from-invoice/', {'invoice': self.invoice.id}, format='json')
        response = self.client.post('/api/v1/jobs/create-from-invoice/', {'invoice': self.invoice.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['job_id'], first.data['id'])


class JobAssignmentTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.job = TestDataFactory.create_job()
        self.printer = TestDataFactory.create_user()
        self.finisher = TestDataFactory.create_user()

    def test_assign_sets_assigned_to(self):
        response = self.client.post(
            f'/api/v1/jobs/{self.job.id}/assignments/', {'user_ids': [self.printer.id, self.finisher.id]}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data), 2)
        self.job.refresh_from_db()
        self.assertIsNotNone(self.job.assigned_to)

    def test_assign_is_idempotent(self):
        url = f'/api/v1/jobs/{self.job.id}/assignments/'
        self.client.post(url, {'user_ids': [self.printer.id]}, format='json')
        self.client.post(url, {'user_ids': [self.printer.id]}, format='json')
        self.assertEqual(JobAssignment.objects.filter(job=self.job).count(), 1)

    def test_assign_requires_users(self):
        response = self.client.post(f'/api/v1/jobs/{self.job.id}/assignments/', {'user_ids': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_remove_assignment(self):
        JobAssignment.objects.create(job=self.job, user=self.printer)
        response = self.client.delete(f'/api/v1/jobs/{self.job.id}/assignments/{self.printer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(JobAssignment.objects.filter(job=self.job).exists())

    def test_employee_jobs(self):
        open_job = TestDataFactory.create_job(assigned_to=self.user, status='IN_PROGRESS')
        assigned = TestDataFactory.create_job(status='PENDING')
        JobAssignment.objects.create(job=assigned, user=self.user)
        done = TestDataFactory.create_job(assigned_to=self.user, status='COMPLETED')
        TestDataFactory.create_job(status='NEW')

        response = self.client.get('/api/v1/employee/jobs/')
        self.assertEqual({job['id'] for job in response.data}, {open_job.id, assigned.id})
        response = self.client.get('/api/v1/employee/jobs/?status=completed')
        self.assertEqual([job['id'] for job in response.data], [done.id])
