"""
Test utilities and factories for creating test data
"""
from datetime import timedelta
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.catalog.models import Product, ProductVariant
from backend.parties.models import Customer
from backend.invoicing.utils import create_invoice
from backend.jobs.models import Job, JobProduct
from backend.portal.authentication import issue_portal_token
from backend.portal.models import PortalUser, CustomerProductCatalog
from backend.sales.models import SalesEmployee, SalesActivity
from backend.timesheets.models import HourLog
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role='EMPLOYEE',
                    is_staff=False, is_superuser=False, **kwargs):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            is_staff=is_staff,
            is_superuser=is_superuser,
            **kwargs
        )

    @staticmethod
    def create_admin(username=None, **kwargs):
        """Create an admin user (ADMIN role)"""
        return TestDataFactory.create_user(username=username, role='ADMIN', **kwargs)

    @staticmethod
    def create_customer(name=None, email=None, phone=None, **kwargs):
        """Create a test customer"""
        if not name:
            name = f'Customer_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{TestDataFactory.random_string(8).lower()}@customer.test'
        return Customer.objects.create(
            name=name,
            email=email,
            phone=phone or '01234 567890',
            address=kwargs.pop('address', '1 High Street'),
            **kwargs
        )

    @staticmethod
    def create_product(name=None, sku=None, product_class='PACKAGING', base_price=Decimal('10.00'), **kwargs):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU-{TestDataFactory.random_string(8).upper()}'
        if product_class == Product.WIDE_FORMAT:
            kwargs.setdefault('default_length', Decimal('1.00'))
            kwargs.setdefault('default_width', Decimal('1.00'))
        return Product.objects.create(
            name=name,
            sku=sku,
            product_class=product_class,
            base_price=base_price,
            unit=kwargs.pop('unit', 'each'),
            **kwargs
        )

    @staticmethod
    def create_variant(product, name=None, price_adjustment=Decimal('2.50'), **kwargs):
        return ProductVariant.objects.create(
            product=product,
            name=name or f'Variant_{TestDataFactory.random_string(4)}',
            price_adjustment=price_adjustment,
            **kwargs
        )

    @staticmethod
    def create_invoice(customer=None, items=None, issue_date=None, due_date=None, tax_rate=None,
                       status='PENDING', user=None, notes=''):
        """
        Create an invoice priced through the invoicing layer.

        ``items`` is a list of dicts with product, quantity, unit_price and
        optionally description, length and width. Defaults to one line of a
        new packaging product: 2 x 10.00.
        """
        customer = customer or TestDataFactory.create_customer()
        if items is None:
            items = [{'product': TestDataFactory.create_product(), 'quantity': 2, 'unit_price': '10.00'}]
        issue_date = issue_date or timezone.localdate()
        due_date = due_date or issue_date + timedelta(days=30)

        lines = []
        for item in items:
            product = item['product']
            line = dict(item, product=product.id)
            line.setdefault('description', product.name)
            lines.append((line, product))

        invoice = create_invoice(
            customer=customer,
            lines=lines,
            issue_date=issue_date,
            due_date=due_date,
            tax_rate=tax_rate,
            created_by=user,
            notes=notes,
        )
        if status != 'PENDING':
            invoice.status = status
            if status == 'PAID':
                invoice.paid_at = timezone.now()
            invoice.save()
        return invoice

    @staticmethod
    def create_job(title=None, customer=None, invoice=None, status='NEW', user=None, **kwargs):
        """Create a test job"""
        return Job.objects.create(
            title=title or f'Job_{TestDataFactory.random_string(6)}',
            customer=customer or (invoice.customer if invoice else None),
            invoice=invoice,
            status=status,
            created_by=user,
            **kwargs
        )

    @staticmethod
    def create_job_product(job, product=None, quantity=10, unit_price=Decimal('5.00'), **kwargs):
        product = product or TestDataFactory.create_product()
        return JobProduct.objects.create(
            job=job,
            product=product,
            quantity=quantity,
            unit_price=unit_price,
            total_price=unit_price * quantity,
            **kwargs
        )

    @staticmethod
    def create_portal_user(customer=None, email=None, password='portalpass123', status='ACTIVE', role='STANDARD'):
        """Create a portal user with a hashed password"""
        customer = customer or TestDataFactory.create_customer()
        portal_user = PortalUser(
            customer=customer,
            email=email or f'{TestDataFactory.random_string(8).lower()}@portal.test',
            first_name='Pat',
            last_name='Buyer',
            status=status,
            role=role,
        )
        portal_user.set_password(password)
        portal_user.save()
        return portal_user

    @staticmethod
    def add_to_catalog(customer, product, custom_price=None, is_visible=True, **kwargs):
        return CustomerProductCatalog.objects.create(
            customer=customer,
            product=product,
            custom_price=custom_price,
            is_visible=is_visible,
            **kwargs
        )

    @staticmethod
    def create_sales_employee(user=None, is_active=True):
        user = user or TestDataFactory.create_user()
        SalesEmployee.objects.create(user=user, is_active=is_active)
        return user

    @staticmethod
    def create_sales_activity(employee, status='LEAFLET_DROPPED', shop_name=None, **kwargs):
        return SalesActivity.objects.create(
            employee=employee,
            shop_name=shop_name or f'Shop_{TestDataFactory.random_string(6)}',
            status=status,
            date=kwargs.pop('date', timezone.localdate()),
            **kwargs
        )

    @staticmethod
    def create_hour_log(user, hours=None, start_time=None, **kwargs):
        """Create a finished hour log of ``hours``, or an active one when hours is None"""
        start_time = start_time or timezone.now() - timedelta(hours=hours or 1)
        end_time = start_time + timedelta(hours=hours) if hours is not None else None
        return HourLog.objects.create(
            user=user,
            date=kwargs.pop('date', timezone.localdate(start_time)),
            start_time=start_time,
            end_time=end_time,
            hours=Decimal(str(hours)) if hours is not None else None,
            is_active=hours is None,
            **kwargs
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helpers for staff and portal users"""

    def authenticate_user(self, user):
        """Authenticate the client with a staff user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def authenticate_portal_user(self, portal_user):
        """Authenticate the client with a portal token"""
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {issue_portal_token(portal_user)}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
