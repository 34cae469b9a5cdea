from rest_framework import serializers
from .models import Invoice, InvoiceItem


class InvoiceItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    product_class = serializers.CharField(source='product.product_class', read_only=True)

    class Meta:
        model = InvoiceItem
        fields = ['id', 'product', 'product_name', 'product_sku', 'product_class', 'description',
                  'quantity', 'unit_price', 'length', 'width', 'area', 'total_price']
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    items = InvoiceItemSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = ['id', 'invoice_number', 'customer', 'customer_name', 'issue_date', 'due_date', 'status',
                  'subtotal', 'tax_rate', 'tax_amount', 'total_amount', 'notes', 'paid_at',
                  'items', 'created_by', 'created_at', 'updated_at']
        read_only_fields = fields


class InvoiceDetailSerializer(InvoiceSerializer):
    customer = serializers.SerializerMethodField()
    job_id = serializers.SerializerMethodField()

    class Meta(InvoiceSerializer.Meta):
        fields = InvoiceSerializer.Meta.fields + ['job_id']
        read_only_fields = fields

    def get_customer(self, obj):
        return {
            'id': obj.customer.id,
            'name': obj.customer.name,
            'email': obj.customer.email,
            'phone': obj.customer.phone,
        }

    def get_job_id(self, obj):
        job = getattr(obj, 'job', None)
        return job.id if job else None


class InvoiceHeaderSerializer(serializers.ModelSerializer):
    """Writable header fields for invoice updates"""
    class Meta:
        model = Invoice
        fields = ['customer', 'issue_date', 'due_date', 'notes']

    def validate(self, attrs):
        issue_date = attrs.get('issue_date', getattr(self.instance, 'issue_date', None))
        due_date = attrs.get('due_date', getattr(self.instance, 'due_date', None))
        if issue_date and due_date and due_date < issue_date:
            raise serializers.ValidationError({'due_date': 'Due date cannot be before the issue date.'})
        return attrs
