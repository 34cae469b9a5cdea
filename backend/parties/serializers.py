from rest_framework import serializers
from .models import Customer


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ['id', 'name', 'email', 'phone', 'address', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        # Duplicate emails are reported as 409 by the views
        extra_kwargs = {'email': {'validators': []}}


class CustomerListSerializer(serializers.ModelSerializer):
    job_count = serializers.IntegerField(read_only=True)
    invoice_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Customer
        fields = ['id', 'name', 'email', 'phone', 'address', 'is_active', 'job_count', 'invoice_count', 'created_at', 'updated_at']


class CustomerDetailSerializer(serializers.ModelSerializer):
    jobs = serializers.SerializerMethodField()
    invoices = serializers.SerializerMethodField()

    class Meta:
        model = Customer
        fields = ['id', 'name', 'email', 'phone', 'address', 'is_active', 'jobs', 'invoices', 'created_at', 'updated_at']

    def get_jobs(self, obj):
        return [
            {'id': job.id, 'title': job.title, 'status': job.status, 'due_date': job.due_date}
            for job in obj.jobs.all().order_by('-updated_at')
        ]

    def get_invoices(self, obj):
        return [
            {
                'id': invoice.id,
                'invoice_number': invoice.invoice_number,
                'status': invoice.status,
                'total_amount': str(invoice.total_amount),
                'due_date': invoice.due_date,
            }
            for invoice in obj.invoices.all().order_by('-created_at')
        ]
