from decimal import Decimal
from django.db import models
from backend.core.models import User
from backend.parties.models import Customer
from backend.catalog.models import Product
from backend.invoicing.models import Invoice


class Job(models.Model):
    """Production jobs"""
    STATUS_CHOICES = [
        ('NEW', 'New'),
        ('PENDING', 'Pending'),
        ('IN_PROGRESS', 'In Progress'),
        ('COMPLETED', 'Completed'),
        ('CANCELLED', 'Cancelled'),
    ]
    PRIORITY_CHOICES = [
        ('LOW', 'Low'),
        ('MEDIUM', 'Medium'),
        ('HIGH', 'High'),
        ('URGENT', 'Urgent'),
    ]
    OPEN_STATUSES = ['NEW', 'PENDING', 'IN_PROGRESS']

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='NEW', db_index=True)
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default='MEDIUM')
    due_date = models.DateField(null=True, blank=True)
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, null=True, blank=True, related_name='jobs')
    invoice = models.OneToOneField(Invoice, on_delete=models.SET_NULL, null=True, blank=True, related_name='job')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_jobs')
    assigned_to = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_jobs')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'jobs'
        ordering = ['-updated_at']


class JobProduct(models.Model):
    """Products to be produced for a job, with production progress"""
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='job_products')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='job_products')
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True)
    completed_quantity = models.PositiveIntegerField(default=0)
    ink_cost_per_unit = models.DecimalField(max_digits=10, decimal_places=4, default=Decimal('0.0000'))
    ink_usage_in_ml = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    time_taken = models.PositiveIntegerField(default=0, help_text="Production time in minutes")

    def __str__(self):
        return f"{self.job.title} - {self.product.name} x {self.quantity}"

    @property
    def is_complete(self):
        return self.quantity > 0 and self.completed_quantity >= self.quantity

    class Meta:
        db_table = 'job_products'
        ordering = ['id']


class JobAssignment(models.Model):
    """Employees assigned to a job"""
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='assignments')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='job_assignments')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.job.title} -> {self.user.username}"

    class Meta:
        db_table = 'job_assignments'
        unique_together = [['job', 'user']]


class ProgressUpdate(models.Model):
    """Timeline of progress notes on a job"""
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='progress_updates')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='progress_updates')
    content = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.job.title}: {self.content[:50]}"

    class Meta:
        db_table = 'progress_updates'
        ordering = ['-created_at']
