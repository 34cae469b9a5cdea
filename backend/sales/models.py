from decimal import Decimal
from django.db import models
from backend.core.models import User
from backend.invoicing.models import Invoice
from backend.parties.models import Customer


class SalesEmployee(models.Model):
    """Marks a staff user as part of the sales team"""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='sales_profile')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.username} ({'active' if self.is_active else 'inactive'})"

    class Meta:
        db_table = 'sales_employees'


class SalesActivity(models.Model):
    """A prospect visit or contact, tracked through the sales pipeline"""
    STATUS_CHOICES = [
        ('LEAFLET_DROPPED', 'Leaflet Dropped'),
        ('SPOKE_WITH_MANAGER', 'Spoke With Manager'),
        ('SAMPLE_REQUESTED', 'Sample Requested'),
        ('ORDER_PLACED', 'Order Placed'),
        ('CONVERTED', 'Converted'),
    ]
    PIPELINE_STAGES = [choice[0] for choice in STATUS_CHOICES]

    employee = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sales_activities')
    shop_name = models.CharField(max_length=200)
    contact_name = models.CharField(max_length=200, blank=True)
    contact_email = models.EmailField(blank=True)
    contact_phone = models.CharField(max_length=20, blank=True)
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default='LEAFLET_DROPPED', db_index=True)
    notes = models.TextField(blank=True)
    date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.shop_name} - {self.get_status_display()}"

    class Meta:
        db_table = 'sales_activities'
        ordering = ['-date', '-created_at']
        verbose_name_plural = 'Sales activities'


class FollowUp(models.Model):
    activity = models.ForeignKey(SalesActivity, on_delete=models.CASCADE, related_name='follow_ups')
    date = models.DateField()
    notes = models.TextField(blank=True)
    completed = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Follow-up for {self.activity.shop_name} on {self.date}"

    class Meta:
        db_table = 'sales_follow_ups'
        ordering = ['-date', '-created_at']


class Quotation(models.Model):
    """Priced quote for a customer; tax is applied only once invoiced"""
    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('ACCEPTED', 'Accepted'),
        ('REJECTED', 'Rejected'),
        ('EXPIRED', 'Expired'),
    ]

    quote_number = models.CharField(max_length=50, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='quotations')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='PENDING', db_index=True)
    expires_at = models.DateField()
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    items = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True)
    invoice = models.OneToOneField(Invoice, on_delete=models.SET_NULL, null=True, blank=True, related_name='quotation')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='quotations')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.quote_number

    class Meta:
        db_table = 'quotations'
        ordering = ['-created_at']
