from decimal import Decimal
from django.db import models
from backend.core.models import User


class Product(models.Model):
    """Print products: packaging, wide-format, leaflets and finished goods"""
    PRODUCT_CLASS_CHOICES = [
        ('PACKAGING', 'Packaging'),
        ('WIDE_FORMAT', 'Wide Format'),
        ('LEAFLETS', 'Leaflets'),
        ('FINISHED', 'Finished Products'),
    ]
    WIDE_FORMAT = 'WIDE_FORMAT'

    name = models.CharField(max_length=200, db_index=True)
    sku = models.CharField(max_length=100, unique=True, db_index=True)
    description = models.TextField(blank=True)
    product_class = models.CharField(max_length=20, choices=PRODUCT_CLASS_CHOICES, db_index=True)
    base_price = models.DecimalField(max_digits=10, decimal_places=2)
    unit = models.CharField(max_length=50)  # e.g. "each", "sq m", "box of 100"
    dimensions = models.CharField(max_length=100, blank=True)
    weight = models.CharField(max_length=50, blank=True)
    material = models.CharField(max_length=100, blank=True)
    finish_options = models.JSONField(default=list, blank=True)
    min_order_quantity = models.PositiveIntegerField(default=1)
    lead_time = models.CharField(max_length=50, blank=True)  # e.g. "3-5 working days"
    is_active = models.BooleanField(default=True, db_index=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')

    # Packaging
    packaging_type = models.CharField(max_length=100, blank=True)
    # Wide format
    print_resolution = models.CharField(max_length=50, blank=True)
    default_length = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    default_width = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    cost_per_sq_meter = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    # Leaflets and finished products
    paper_weight = models.CharField(max_length=50, blank=True)
    fold_type = models.CharField(max_length=50, blank=True)
    binding_type = models.CharField(max_length=50, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.sku})"

    @property
    def is_wide_format(self):
        return self.product_class == self.WIDE_FORMAT

    def effective_price(self, variant=None):
        """Base price plus the variant's adjustment, if any"""
        if variant is None:
            return self.base_price
        return self.base_price + (variant.price_adjustment or Decimal('0.00'))

    class Meta:
        db_table = 'products'
        ordering = ['name']


class ProductVariant(models.Model):
    """Product variants (finish, size, stock) priced relative to the base product"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variants')
    name = models.CharField(max_length=200)  # e.g., "Gloss laminate"
    description = models.TextField(blank=True)
    price_adjustment = models.DecimalField(max_digits=10, decimal_places=2)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.name} - {self.name}"

    class Meta:
        db_table = 'product_variants'
        ordering = ['name']
