"""
Test suite for Core module
Tests: staff auth, users, settings, audit logs, global search and the exception handler
"""
from decimal import Decimal
from io import StringIO
from django.contrib.auth.models import Group
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient
from backend.core.models import AuditLog, Setting
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import create_audit_log, get_setting, quantize_money, to_decimal, to_whole_number
from backend.core import model_cache
from backend.core.permissions import is_admin_user


class AuthTests(TestCase):
    """Test staff JWT login and the current-user endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='printer', password='testpass123')
        self.client = APIClient()

    def test_login_returns_tokens(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'printer', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'printer', 'password': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_token(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'printer', 'password': 'testpass123'}, format='json')
        refresh = self.client.post('/api/v1/auth/refresh/', {'refresh': response.data['refresh']}, format='json')
        self.assertEqual(refresh.status_code, status.HTTP_200_OK)
        self.assertIn('access', refresh.data)

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_flags_for_employee(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user)
        response = client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'printer')
        self.assertFalse(response.data['is_admin'])
        self.assertFalse(response.data['can_access_reports'])
        self.assertFalse(response.data['is_sales_employee'])

    def test_me_flags_for_admin_sales_employee(self):
        admin = TestDataFactory.create_admin()
        TestDataFactory.create_sales_employee(user=admin)
        client = AuthenticatedAPIClient()
        client.authenticate_user(admin)
        response = client.get('/api/v1/auth/me/')
        self.assertTrue(response.data['is_admin'])
        self.assertTrue(response.data['can_access_portal_admin'])
        self.assertTrue(response.data['is_sales_employee'])


class UserManagementTests(TestCase):
    """Test admin-only user management"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_employee_cannot_list_users(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        response = client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', response.data)

    def test_create_user(self):
        data = {
            'username': 'newstaff',
            'email': 'newstaff@test.com',
            'password': 'Str0ngPass!word',
            'password_confirm': 'Str0ngPass!word',
            'role': 'EMPLOYEE',
            'hourly_rate': '12.50',
        }
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['username'], 'newstaff')
        self.assertNotIn('password', response.data)

    def test_create_user_password_mismatch(self):
        data = {
            'username': 'mismatch',
            'email': 'mismatch@test.com',
            'password': 'Str0ngPass!word',
            'password_confirm': 'different',
        }
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_other_user(self):
        other = TestDataFactory.create_user()
        response = self.client.delete(f'/api/v1/users/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class SettingTests(TestCase):
    """Test runtime settings and the PRINTSHOP fallback"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_get_setting_falls_back_to_defaults(self):
        self.assertEqual(get_setting('DEFAULT_TAX_RATE'), Decimal('0.20'))
        self.assertEqual(get_setting('MISSING_KEY', 'fallback'), 'fallback')

    def test_stored_setting_overrides_default(self):
        response = self.client.post('/api/v1/settings/', {'key': 'INVOICE_DUE_DAYS', 'value': '14'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(get_setting('INVOICE_DUE_DAYS'), '14')
        self.assertTrue(Setting.objects.filter(key='INVOICE_DUE_DAYS').exists())


class AuditLogTests(TestCase):
    """Test audit log creation and listing"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_audit_log_without_request(self):
        log = create_audit_log(action='create', model_name='Customer', object_id=1, object_name='Acme')
        self.assertIsNotNone(log)
        self.assertIsNone(log.user)
        self.assertEqual(log.object_id, '1')

    def test_audit_log_list_filters_by_action(self):
        create_audit_log(user=self.admin, action='create', model_name='Customer', object_id=1)
        create_audit_log(user=self.admin, action='delete', model_name='Customer', object_id=2)
        response = self.client.get('/api/v1/audit-logs/?action=delete')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['action'], 'delete')

    def test_customer_create_is_audited(self):
        cache.clear()
        self.client.post('/api/v1/customers/', {'name': 'Audited Ltd', 'email': 'audit@test.com'}, format='json')
        self.assertTrue(AuditLog.objects.filter(model_name='Customer', action='create', object_name='Audited Ltd').exists())


class GlobalSearchTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_short_query_returns_empty_lists(self):
        TestDataFactory.create_customer(name='Alpha Prints')
        response = self.client.get('/api/v1/search/?q=a')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'customers': [], 'products': [], 'invoices': [], 'jobs': []})

    def test_search_across_models(self):
        customer = TestDataFactory.create_customer(name='Banner Barn')
        TestDataFactory.create_product(name='Banner Vinyl', product_class='WIDE_FORMAT')
        TestDataFactory.create_job(title='Banner run', customer=customer)
        response = self.client.get('/api/v1/search/?q=banner')
        self.assertEqual(len(response.data['customers']), 1)
        self.assertEqual(len(response.data['products']), 1)
        self.assertEqual(len(response.data['jobs']), 1)


class UtilityTests(TestCase):

    def test_quantize_money_rounds_half_up(self):
        self.assertEqual(quantize_money(Decimal('2.345')), Decimal('2.35'))
        self.assertEqual(quantize_money('1.005'), Decimal('1.01'))

    def test_to_decimal_defaults(self):
        self.assertEqual(to_decimal('3.5'), Decimal('3.5'))
        self.assertIsNone(to_decimal(''))
        self.assertEqual(to_decimal('abc', Decimal('0')), Decimal('0'))

    def test_to_whole_number_rejects_fractions(self):
        self.assertEqual(to_whole_number('3'), 3)
        self.assertEqual(to_whole_number(4.0), 4)
        self.assertIsNone(to_whole_number(2.9))
        self.assertIsNone(to_whole_number('Infinity'))
        self.assertEqual(to_whole_number('abc', default=1), 1)
        self.assertEqual(to_whole_number(None, default=50), 50)

    def test_exception_handler_wraps_not_found(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        response = client.get('/api/v1/customers/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIn('error', response.data)


class ModelCacheTests(TestCase):
    """Test list cache invalidation on model changes"""

    def setUp(self):
        cache.clear()

    def test_customer_save_bumps_namespace(self):
        key_before = model_cache.get_customer_list_cache_key('')
        TestDataFactory.create_customer()
        key_after = model_cache.get_customer_list_cache_key('')
        self.assertNotEqual(key_before, key_after)

    def test_product_save_bumps_class_namespace(self):
        key_before = model_cache.get_product_class_cache_key('PACKAGING')
        TestDataFactory.create_product()
        self.assertNotEqual(key_before, model_cache.get_product_class_cache_key('PACKAGING'))


class CreateUserGroupsCommandTests(TestCase):

    def test_creates_groups_and_grants_admin(self):
        call_command('create_user_groups', stdout=StringIO())
        self.assertEqual(set(Group.objects.values_list('name', flat=True)), {'Admin', 'Production', 'Sales'})
        user = TestDataFactory.create_user()
        self.assertFalse(is_admin_user(user))
        user.groups.add(Group.objects.get(name='Admin'))
        self.assertTrue(is_admin_user(user))
        production = Group.objects.get(name='Production')
        self.assertTrue(production.permissions.filter(codename='add_hourlog').exists())

    def test_dry_run_creates_nothing(self):
        call_command('create_user_groups', '--dry-run', stdout=StringIO())
        self.assertFalse(Group.objects.exists())
