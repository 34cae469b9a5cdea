"""
Test suite for Catalog module
Tests: product CRUD, wide-format defaults, filtering, product classes and variants
"""
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from backend.catalog.models import Product, ProductVariant
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class ProductModelTests(TestCase):

    def test_effective_price_with_variant(self):
        product = TestDataFactory.create_product(base_price=Decimal('10.00'))
        variant = TestDataFactory.create_variant(product, price_adjustment=Decimal('2.50'))
        self.assertEqual(product.effective_price(), Decimal('10.00'))
        self.assertEqual(product.effective_price(variant), Decimal('12.50'))

    def test_is_wide_format(self):
        self.assertTrue(TestDataFactory.create_product(product_class='WIDE_FORMAT').is_wide_format)
        self.assertFalse(TestDataFactory.create_product(product_class='LEAFLETS').is_wide_format)


class ProductAPITests(TestCase):
    """Test product endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def product_data(self, **overrides):
        data = {
            'name': 'Mailer Box',
            'sku': 'BOX-001',
            'product_class': 'PACKAGING',
            'base_price': '1.20',
            'unit': 'each',
            'packaging_type': 'Mailer',
        }
        data.update(overrides)
        return data

    def test_create_product(self):
        response = self.client.post('/api/v1/products/', self.product_data(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['sku'], 'BOX-001')
        self.assertEqual(Product.objects.get(sku='BOX-001').created_by, self.user)

    def test_create_missing_fields(self):
        response = self.client.post('/api/v1/products/', {'name': 'Incomplete'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Missing required fields')
        self.assertIn('sku', response.data['fields'])

    def test_duplicate_sku_conflict(self):
        TestDataFactory.create_product(sku='DUP-1')
        response = self.client.post('/api/v1/products/', self.product_data(sku='DUP-1'), format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_wide_format_gets_default_dimensions(self):
        data = self.product_data(sku='WF-1', product_class='WIDE_FORMAT', unit='sq m')
        response = self.client.post('/api/v1/products/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        product = Product.objects.get(sku='WF-1')
        self.assertEqual(product.default_length, Decimal('1.00'))
        self.assertEqual(product.default_width, Decimal('1.00'))

    def test_negative_price_rejected(self):
        response = self.client.post('/api/v1/products/', self.product_data(base_price='-1'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_hides_inactive_by_default(self):
        TestDataFactory.create_product(name='Live')
        TestDataFactory.create_product(name='Retired', is_active=False)
        response = self.client.get('/api/v1/products/')
        self.assertEqual([p['name'] for p in response.data], ['Live'])
        response = self.client.get('/api/v1/products/?active=all')
        self.assertEqual(len(response.data), 2)

    def test_list_filters_by_class_and_search(self):
        TestDataFactory.create_product(name='A5 Flyer', product_class='LEAFLETS')
        TestDataFactory.create_product(name='Roller Banner', product_class='WIDE_FORMAT')
        response = self.client.get('/api/v1/products/?product_class=LEAFLETS')
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/products/?search=roller')
        self.assertEqual(response.data[0]['name'], 'Roller Banner')

    def test_products_by_class(self):
        TestDataFactory.create_product(product_class='FINISHED')
        response = self.client.get('/api/v1/products/class/finished/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_products_by_invalid_class(self):
        response = self.client.get('/api/v1/products/class/posters/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid product class: POSTERS')

    def test_products_by_class_cache_invalidated(self):
        TestDataFactory.create_product(product_class='LEAFLETS')
        self.assertEqual(len(self.client.get('/api/v1/products/class/LEAFLETS/').data), 1)
        TestDataFactory.create_product(product_class='LEAFLETS')
        self.assertEqual(len(self.client.get('/api/v1/products/class/LEAFLETS/').data), 2)

    def test_update_product(self):
        product = TestDataFactory.create_product(base_price=Decimal('5.00'))
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'base_price': '6.50'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.base_price, Decimal('6.50'))

    def test_delete_unused_product(self):
        product = TestDataFactory.create_product()
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=product.id).exists())

    def test_delete_product_in_use_conflict(self):
        product = TestDataFactory.create_product()
        TestDataFactory.create_invoice(items=[{'product': product, 'quantity': 1, 'unit_price': '5.00'}])
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['invoice_count'], 1)
        self.assertEqual(response.data['job_count'], 0)

    def test_detail_counts(self):
        product = TestDataFactory.create_product()
        job = TestDataFactory.create_job()
        TestDataFactory.create_job_product(job, product=product)
        response = self.client.get(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.data['job_count'], 1)
        self.assertEqual(response.data['invoice_count'], 0)


class ProductVariantTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())
        self.product = TestDataFactory.create_product()

    def test_create_variant(self):
        response = self.client.post(
            f'/api/v1/products/{self.product.id}/variants/',
            {'name': 'Matt laminate', 'price_adjustment': '0.75'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.product.variants.count(), 1)

    def test_create_variant_requires_fields(self):
        response = self.client.post(f'/api/v1/products/{self.product.id}/variants/', {'name': 'No price'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_and_delete_variant(self):
        variant = TestDataFactory.create_variant(self.product)
        response = self.client.patch(f'/api/v1/products/variants/{variant.id}/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])
        response = self.client.delete(f'/api/v1/products/variants/{variant.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(ProductVariant.objects.filter(pk=variant.id).exists())
