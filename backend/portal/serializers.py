from rest_framework import serializers
from backend.catalog.models import ProductVariant
from .models import PortalUser, CustomerProductCatalog, CustomerOrder, CustomerOrderItem


class PortalUserSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    password = serializers.CharField(write_only=True, required=False, min_length=6)

    class Meta:
        model = PortalUser
        fields = ['id', 'email', 'password', 'first_name', 'last_name', 'role', 'status',
                  'customer', 'customer_name', 'last_login', 'created_at', 'updated_at']
        read_only_fields = ['last_login', 'created_at', 'updated_at']
        # Duplicate emails are reported by the views with a plain message
        extra_kwargs = {'email': {'validators': []}}

    def create(self, validated_data):
        password = validated_data.pop('password', None)
        portal_user = PortalUser(**validated_data)
        portal_user.set_password(password)
        portal_user.save()
        return portal_user

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance


def portal_user_payload(portal_user):
    """User block returned by portal login and verify"""
    return {
        'id': portal_user.id,
        'name': portal_user.full_name,
        'email': portal_user.email,
        'role': portal_user.role,
        'customer_id': portal_user.customer_id,
        'company_name': portal_user.customer.name,
    }


class CustomerProductCatalogSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    product_class = serializers.CharField(source='product.product_class', read_only=True)
    base_price = serializers.DecimalField(source='product.base_price', max_digits=10, decimal_places=2, read_only=True)
    effective_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = CustomerProductCatalog
        fields = ['id', 'customer', 'product', 'product_name', 'product_sku', 'product_class', 'base_price',
                  'custom_price', 'effective_price', 'is_visible', 'customer_product_code',
                  'customer_product_name', 'created_at', 'updated_at']
        read_only_fields = ['customer', 'created_at', 'updated_at']


class PortalProductSerializer(serializers.Serializer):
    """A catalog entry as the customer sees it: their names, their price"""

    def to_representation(self, entry):
        product = entry.product
        return {
            'id': product.id,
            'catalog_id': entry.id,
            'name': entry.customer_product_name or product.name,
            'sku': entry.customer_product_code or product.sku,
            'description': product.description,
            'product_class': product.product_class,
            'unit': product.unit,
            'dimensions': product.dimensions,
            'material': product.material,
            'finish_options': product.finish_options,
            'min_order_quantity': product.min_order_quantity,
            'lead_time': product.lead_time,
            'default_length': str(product.default_length) if product.default_length is not None else None,
            'default_width': str(product.default_width) if product.default_width is not None else None,
            'price': str(entry.effective_price),
            'is_custom_priced': entry.custom_price is not None,
        }


class PortalProductVariantSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductVariant
        fields = ['id', 'name', 'description', 'price_adjustment']


class CustomerOrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_sku = serializers.CharField(source='product.sku', read_only=True)

    class Meta:
        model = CustomerOrderItem
        fields = ['id', 'product', 'product_name', 'product_sku', 'quantity', 'unit_price', 'total_price', 'notes']


class CustomerOrderSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    portal_user_email = serializers.CharField(source='portal_user.email', read_only=True)
    invoice_number = serializers.CharField(source='invoice.invoice_number', read_only=True)
    items = CustomerOrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = CustomerOrder
        fields = ['id', 'order_number', 'customer', 'customer_name', 'portal_user', 'portal_user_email',
                  'status', 'total_amount', 'notes', 'invoice', 'invoice_number', 'items',
                  'created_at', 'updated_at']
        read_only_fields = fields


class PortalInvoiceSerializer(serializers.Serializer):
    """Invoice summary for the customer's own view"""

    def to_representation(self, invoice):
        return {
            'id': invoice.id,
            'invoice_number': invoice.invoice_number,
            'issue_date': invoice.issue_date,
            'due_date': invoice.due_date,
            'status': invoice.status,
            'subtotal': str(invoice.subtotal),
            'tax_rate': str(invoice.tax_rate),
            'tax_amount': str(invoice.tax_amount),
            'total_amount': str(invoice.total_amount),
            'paid_at': invoice.paid_at,
        }


class PortalInvoiceDetailSerializer(PortalInvoiceSerializer):

    def to_representation(self, invoice):
        data = super().to_representation(invoice)
        data['notes'] = invoice.notes
        data['items'] = [
            {
                'id': item.id,
                'product': item.product_id,
                'product_name': item.product.name,
                'description': item.description,
                'quantity': item.quantity,
                'unit_price': str(item.unit_price),
                'length': str(item.length) if item.length is not None else None,
                'width': str(item.width) if item.width is not None else None,
                'area': str(item.area) if item.area is not None else None,
                'total_price': str(item.total_price),
            }
            for item in invoice.items.all()
        ]
        return data
