"""
Test suite for Portal module
Tests: portal login and tokens, customer catalog, portal products, invoices,
orders and conversion of orders to invoices
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.invoicing.models import Invoice
from backend.portal.models import PortalUser, CustomerOrder, CustomerProductCatalog


class PortalLoginTests(TestCase):
    """Test portal authentication"""

    def setUp(self):
        self.client = APIClient()
        self.customer = TestDataFactory.create_customer(name='Corner Cafe')
        self.portal_user = TestDataFactory.create_portal_user(customer=self.customer, email='buyer@cafe.test')

    def login(self, email='buyer@cafe.test', password='portalpass123'):
        return self.client.post('/api/v1/portal/auth/login/', {'email': email, 'password': password}, format='json')

    def test_login_requires_credentials(self):
        response = self.client.post('/api/v1/portal/auth/login/', {'email': 'buyer@cafe.test'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_wrong_password(self):
        response = self.login(password='wrong')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'Invalid email or password')

    def test_login_unknown_email(self):
        response = self.login(email='nobody@cafe.test')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_inactive_account(self):
        TestDataFactory.create_portal_user(email='gone@cafe.test', status='SUSPENDED')
        response = self.login(email='gone@cafe.test')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_login_success(self):
        response = self.login(email='BUYER@cafe.test')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('token', response.data)
        self.assertEqual(response.data['user']['customer_id'], self.customer.id)
        self.assertEqual(response.data['user']['company_name'], 'Corner Cafe')
        self.portal_user.refresh_from_db()
        self.assertIsNotNone(self.portal_user.last_login)
        self.assertTrue(AuditLog.objects.filter(action='portal_login').exists())

    def test_verify_with_login_token(self):
        token = self.login().data['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = self.client.get('/api/v1/portal/auth/verify/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['valid'])
        self.assertEqual(response.data['user']['email'], 'buyer@cafe.test')

    def test_verify_without_token(self):
        response = self.client.get('/api/v1/portal/auth/verify/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_rejected_after_suspension(self):
        client = AuthenticatedAPIClient()
        client.authenticate_portal_user(self.portal_user)
        self.portal_user.status = 'SUSPENDED'
        self.portal_user.save()
        response = client.get('/api/v1/portal/products/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_token_rejected_by_portal(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        response = client.get('/api/v1/portal/products/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_portal_token_rejected_by_staff_api(self):
        client = AuthenticatedAPIClient()
        client.authenticate_portal_user(self.portal_user)
        response = client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class PortalUserManagementTests(TestCase):
    """Test staff management of portal users"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.customer = TestDataFactory.create_customer()

    def test_create_portal_user_hides_password(self):
        data = {'email': 'new@portal.test', 'password': 'secret123', 'customer': self.customer.id, 'first_name': 'Sam'}
        response = self.client.post('/api/v1/portal/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('password', response.data)
        portal_user = PortalUser.objects.get(email='new@portal.test')
        self.assertNotEqual(portal_user.password, 'secret123')
        self.assertTrue(portal_user.check_password('secret123'))

    def test_create_requires_fields(self):
        response = self.client.post('/api/v1/portal/users/', {'email': 'x@portal.test'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_email(self):
        TestDataFactory.create_portal_user(email='dup@portal.test')
        data = {'email': 'dup@portal.test', 'password': 'secret123', 'customer': self.customer.id}
        response = self.client.post('/api/v1/portal/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_customer(self):
        data = {'email': 'lost@portal.test', 'password': 'secret123', 'customer': 999999}
        response = self.client.post('/api/v1/portal/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Customer not found')

    def test_suspend_portal_user(self):
        portal_user = TestDataFactory.create_portal_user(customer=self.customer)
        response = self.client.patch(f'/api/v1/portal/users/{portal_user.id}/', {'status': 'SUSPENDED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        portal_user.refresh_from_db()
        self.assertEqual(portal_user.status, 'SUSPENDED')


class CustomerCatalogTests(TestCase):
    """Test staff maintenance of a customer's portal catalog"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())
        self.customer = TestDataFactory.create_customer()
        self.product = TestDataFactory.create_product(base_price=Decimal('10.00'))

    def test_stats_for_empty_catalog(self):
        response = self.client.get(f'/api/v1/portal/catalog/stats/?customer={self.customer.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_products'], 0)
        self.assertFalse(response.data['has_custom_pricing'])
        self.assertEqual(response.data['last_updated'], 'Never')

    def test_upsert_reports_failures(self):
        payload = {
            'customer': self.customer.id,
            'products': [
                {'product': self.product.id, 'custom_price': '8.00'},
                {'product': 999999},
            ],
        }
        response = self.client.post('/api/v1/portal/catalog/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Processed 1 products successfully, 1 failed')
        entry = CustomerProductCatalog.objects.get(customer=self.customer, product=self.product)
        self.assertEqual(entry.custom_price, Decimal('8.00'))

    def test_upsert_updates_existing_entry(self):
        TestDataFactory.add_to_catalog(self.customer, self.product, custom_price=Decimal('9.00'))
        payload = {'customer': self.customer.id, 'products': [{'product': self.product.id, 'is_visible': False}]}
        self.client.post('/api/v1/portal/catalog/', payload, format='json')
        entry = CustomerProductCatalog.objects.get(customer=self.customer, product=self.product)
        self.assertFalse(entry.is_visible)
        self.assertEqual(CustomerProductCatalog.objects.filter(customer=self.customer).count(), 1)

    def test_list_catalog(self):
        TestDataFactory.add_to_catalog(self.customer, self.product)
        response = self.client.get(f'/api/v1/portal/catalog/?customer={self.customer.id}')
        self.assertEqual(len(response.data['catalog']), 1)
        self.assertEqual(Decimal(response.data['catalog'][0]['effective_price']), Decimal('10.00'))

    def test_catalog_requires_customer(self):
        response = self.client.get('/api/v1/portal/catalog/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class PortalCatalogBrowsingTests(TestCase):
    """Test what a portal user sees of their catalog"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()
        self.portal_user = TestDataFactory.create_portal_user(customer=self.customer)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_portal_user(self.portal_user)
        self.box = TestDataFactory.create_product(name='Mailer Box', sku='BOX-1', base_price=Decimal('2.00'))
        self.flyer = TestDataFactory.create_product(name='A5 Flyer', product_class='LEAFLETS', base_price=Decimal('0.30'))
        self.hidden = TestDataFactory.create_product(name='Hidden')

    def test_products_show_overrides_and_prices(self):
        TestDataFactory.add_to_catalog(
            self.customer, self.box, custom_price=Decimal('1.75'),
            customer_product_name='Cafe Takeaway Box', customer_product_code='CAFE-BOX'
        )
        TestDataFactory.add_to_catalog(self.customer, self.flyer)
        TestDataFactory.add_to_catalog(self.customer, self.hidden, is_visible=False)

        response = self.client.get('/api/v1/portal/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        products = {p['id']: p for p in response.data['products']}
        self.assertEqual(set(products), {self.box.id, self.flyer.id})
        self.assertEqual(products[self.box.id]['name'], 'Cafe Takeaway Box')
        self.assertEqual(products[self.box.id]['sku'], 'CAFE-BOX')
        self.assertEqual(products[self.box.id]['price'], '1.75')
        self.assertTrue(products[self.box.id]['is_custom_priced'])
        self.assertEqual(products[self.flyer.id]['price'], '0.30')
        self.assertFalse(products[self.flyer.id]['is_custom_priced'])

    def test_other_customers_catalog_not_visible(self):
        TestDataFactory.add_to_catalog(TestDataFactory.create_customer(), self.box)
        response = self.client.get('/api/v1/portal/products/')
        self.assertEqual(response.data['products'], [])

    def test_product_detail_includes_variants(self):
        TestDataFactory.add_to_catalog(self.customer, self.box)
        TestDataFactory.create_variant(self.box, name='Kraft')
        response = self.client.get(f'/api/v1/portal/products/{self.box.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['variants'][0]['name'], 'Kraft')

    def test_product_detail_not_in_catalog(self):
        response = self.client.get(f'/api/v1/portal/products/{self.hidden.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Product not found')


class PortalInvoiceTests(TestCase):

    def setUp(self):
        self.customer = TestDataFactory.create_customer()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_portal_user(TestDataFactory.create_portal_user(customer=self.customer))

    def test_lists_own_invoices_only(self):
        own = TestDataFactory.create_invoice(customer=self.customer)
        TestDataFactory.create_invoice()
        response = self.client.get('/api/v1/portal/invoices/')
        self.assertEqual([i['id'] for i in response.data['invoices']], [own.id])

    def test_invoice_detail(self):
        invoice = TestDataFactory.create_invoice(customer=self.customer)
        response = self.client.get(f'/api/v1/portal/invoices/{invoice.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 1)
        self.assertEqual(response.data['total_amount'], str(invoice.total_amount))

    def test_other_customers_invoice_forbidden(self):
        invoice = TestDataFactory.create_invoice()
        response = self.client.get(f'/api/v1/portal/invoices/{invoice.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', response.data)


class PortalOrderTests(TestCase):
    """Test order placement and conversion to invoices"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()
        self.portal_user = TestDataFactory.create_portal_user(customer=self.customer)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_portal_user(self.portal_user)
        self.staff = AuthenticatedAPIClient()
        self.staff.authenticate_user(TestDataFactory.create_user())
        self.product = TestDataFactory.create_product(base_price=Decimal('10.00'))
        TestDataFactory.add_to_catalog(self.customer, self.product, custom_price=Decimal('7.50'))

    def place_order(self, **extra):
        payload = {'items': [{'product': self.product.id, 'quantity': 3, 'unit_price': '0.01'}]}
        payload.update(extra)
        return self.client.post('/api/v1/portal/orders/', payload, format='json')

    def test_order_priced_from_catalog(self):
        response = self.place_order(specialInstructions='Deliver to rear door')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['order']['total_amount'], '22.50')
        self.assertEqual(response.data['order']['status'], 'SUBMITTED')
        order = CustomerOrder.objects.get(pk=response.data['order']['id'])
        self.assertTrue(order.order_number.startswith('ORD-'))
        self.assertEqual(order.notes, 'Deliver to rear door')
        self.assertEqual(order.items.get().unit_price, Decimal('7.50'))

    def test_order_product_not_in_catalog(self):
        other = TestDataFactory.create_product()
        response = self.client.post(
            '/api/v1/portal/orders/', {'items': [{'product': other.id, 'quantity': 1}]}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], f'Product {other.id} is not available')
        self.assertFalse(CustomerOrder.objects.exists())

    def test_order_rejects_fractional_quantity(self):
        for quantity in [1.5, '2.9', 'a few', 0]:
            payload = {'items': [{'product': self.product.id, 'quantity': quantity}]}
            response = self.client.post('/api/v1/portal/orders/', payload, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data['error'], f'Invalid quantity for product {self.product.id}')
        self.assertFalse(CustomerOrder.objects.exists())

    def test_order_requires_items(self):
        response = self.client.post('/api/v1/portal/orders/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_own_orders(self):
        self.place_order()
        response = self.client.get('/api/v1/portal/orders/')
        self.assertEqual(len(response.data['orders']), 1)
        self.assertEqual(len(response.data['orders'][0]['items']), 1)

    def test_admin_list_and_status(self):
        order_id = self.place_order().data['order']['id']
        response = self.staff.get('/api/v1/portal/orders/admin/?status=submitted')
        self.assertEqual(len(response.data), 1)
        response = self.staff.post(f'/api/v1/portal/orders/{order_id}/status/', {'status': 'PROCESSING'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'PROCESSING')

    def test_convert_order_to_invoice(self):
        order_id = self.place_order().data['order']['id']
        response = self.staff.post(f'/api/v1/portal/orders/{order_id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        invoice = Invoice.objects.get(pk=response.data['invoice_id'])
        self.assertEqual(invoice.customer, self.customer)
        self.assertEqual(invoice.subtotal, Decimal('22.50'))
        self.assertEqual(invoice.total_amount, Decimal('27.00'))
        order = CustomerOrder.objects.get(pk=order_id)
        self.assertEqual(order.status, 'PROCESSING')
        self.assertEqual(order.invoice, invoice)

        response = self.staff.post(f'/api/v1/portal/orders/{order_id}/convert/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['invoice_id'], invoice.id)
