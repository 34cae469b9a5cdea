import random
from django.contrib.auth.hashers import make_password, check_password
from django.db import models
from django.utils import timezone
from backend.catalog.models import Product
from backend.invoicing.models import Invoice
from backend.parties.models import Customer


class PortalUser(models.Model):
    """Customer-side login for the B2B portal, separate from staff accounts"""
    ROLE_CHOICES = [
        ('ADMIN', 'Admin'),
        ('STANDARD', 'Standard'),
    ]
    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('INACTIVE', 'Inactive'),
        ('SUSPENDED', 'Suspended'),
    ]

    email = models.EmailField(unique=True)
    password = models.CharField(max_length=128)
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='STANDARD')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ACTIVE', db_index=True)
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='portal_users')
    last_login = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.email} ({self.customer.name})"

    # Lets DRF's IsAuthenticated accept a portal user on request.user
    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def is_active(self):
        return self.status == 'ACTIVE'

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.email

    def set_password(self, raw_password):
        self.password = make_password(raw_password)

    def check_password(self, raw_password):
        return check_password(raw_password, self.password)

    class Meta:
        db_table = 'portal_users'
        ordering = ['email']


class CustomerProductCatalog(models.Model):
    """Products a customer can see in the portal, with optional custom pricing"""
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='product_catalog')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='customer_catalogs')
    custom_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    is_visible = models.BooleanField(default=True)
    customer_product_code = models.CharField(max_length=100, blank=True)
    customer_product_name = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.customer.name} - {self.product.name}"

    @property
    def effective_price(self):
        return self.custom_price if self.custom_price is not None else self.product.base_price

    class Meta:
        db_table = 'customer_product_catalog'
        unique_together = [['customer', 'product']]
        ordering = ['product__name']


def generate_order_number():
    """ORD-YYYYMMDDHHMMSS-NNN with a random 3-digit suffix"""
    while True:
        order_number = f"ORD-{timezone.localtime().strftime('%Y%m%d%H%M%S')}-{random.randint(0, 999):03d}"
        if not CustomerOrder.objects.filter(order_number=order_number).exists():
            return order_number


class CustomerOrder(models.Model):
    """Orders placed by customers through the portal"""
    STATUS_CHOICES = [
        ('SUBMITTED', 'Submitted'),
        ('PROCESSING', 'Processing'),
        ('COMPLETED', 'Completed'),
        ('CANCELLED', 'Cancelled'),
    ]

    order_number = models.CharField(max_length=50, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='portal_orders')
    portal_user = models.ForeignKey(PortalUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='SUBMITTED', db_index=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    notes = models.TextField(blank=True)
    invoice = models.OneToOneField(Invoice, on_delete=models.SET_NULL, null=True, blank=True, related_name='portal_order')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.order_number

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = generate_order_number()
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'customer_orders'
        ordering = ['-created_at']


class CustomerOrderItem(models.Model):
    order = models.ForeignKey(CustomerOrder, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='order_items')
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    notes = models.TextField(blank=True)

    def __str__(self):
        return f"{self.order.order_number} - {self.product.name} x {self.quantity}"

    class Meta:
        db_table = 'customer_order_items'
        ordering = ['id']
