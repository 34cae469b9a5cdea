from rest_framework import serializers
from backend.core.serializers import UserSummarySerializer
from .models import Job, JobProduct, JobAssignment, ProgressUpdate


class JobProductSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    product_class = serializers.CharField(source='product.product_class', read_only=True)
    is_complete = serializers.BooleanField(read_only=True)

    class Meta:
        model = JobProduct
        fields = ['id', 'job', 'product', 'product_name', 'product_sku', 'product_class', 'quantity',
                  'unit_price', 'total_price', 'notes', 'completed_quantity', 'ink_cost_per_unit',
                  'ink_usage_in_ml', 'time_taken', 'is_complete']
        read_only_fields = ['job', 'total_price']


class ProgressUpdateSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.full_name', read_only=True)

    class Meta:
        model = ProgressUpdate
        fields = ['id', 'job', 'user', 'user_name', 'content', 'created_at']
        read_only_fields = ['job', 'user', 'created_at']


class JobAssignmentSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = JobAssignment
        fields = ['id', 'job', 'user', 'created_at']


class JobSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    invoice_number = serializers.CharField(source='invoice.invoice_number', read_only=True)
    created_by_name = serializers.CharField(source='created_by.full_name', read_only=True)
    assigned_to_name = serializers.CharField(source='assigned_to.full_name', read_only=True)
    progress = serializers.SerializerMethodField()

    class Meta:
        model = Job
        fields = ['id', 'title', 'description', 'status', 'priority', 'due_date', 'customer', 'customer_name',
                  'invoice', 'invoice_number', 'created_by', 'created_by_name', 'assigned_to', 'assigned_to_name',
                  'progress', 'created_at', 'updated_at']
        read_only_fields = ['created_by', 'created_at', 'updated_at']
        # One job per invoice is reported as 409 by the views
        extra_kwargs = {'invoice': {'validators': []}}

    def get_progress(self, obj):
        """Completed units over ordered units across all job products"""
        total = 0
        completed = 0
        for job_product in obj.job_products.all():
            total += job_product.quantity
            completed += min(job_product.completed_quantity, job_product.quantity)
        return {
            'completed_quantity': completed,
            'total_quantity': total,
            'percentage': round(completed / total * 100, 1) if total else 0,
        }


class JobDetailSerializer(JobSerializer):
    customer = serializers.SerializerMethodField()
    created_by = UserSummarySerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)
    invoice = serializers.SerializerMethodField()
    job_products = JobProductSerializer(many=True, read_only=True)
    progress_updates = ProgressUpdateSerializer(many=True, read_only=True)
    assignments = JobAssignmentSerializer(many=True, read_only=True)

    class Meta(JobSerializer.Meta):
        fields = JobSerializer.Meta.fields + ['job_products', 'progress_updates', 'assignments']

    def get_customer(self, obj):
        if not obj.customer:
            return None
        return {'id': obj.customer.id, 'name': obj.customer.name, 'email': obj.customer.email, 'phone': obj.customer.phone}

    def get_invoice(self, obj):
        if not obj.invoice:
            return None
        return {
            'id': obj.invoice.id,
            'invoice_number': obj.invoice.invoice_number,
            'status': obj.invoice.status,
            'total_amount': str(obj.invoice.total_amount),
            'due_date': obj.invoice.due_date,
        }
