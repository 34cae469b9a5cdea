from django.conf import settings
from rest_framework import serializers
from .models import Product, ProductVariant


def apply_wide_format_defaults(data):
    """Wide-format products always expose a default length and width"""
    if data.get('product_class') == Product.WIDE_FORMAT:
        if data.get('default_length') in (None, ''):
            data['default_length'] = str(settings.PRINTSHOP['DEFAULT_WIDE_FORMAT_LENGTH'])
        if data.get('default_width') in (None, ''):
            data['default_width'] = str(settings.PRINTSHOP['DEFAULT_WIDE_FORMAT_WIDTH'])
    return data


class ProductVariantSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductVariant
        fields = ['id', 'product', 'name', 'description', 'price_adjustment', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['product', 'created_at', 'updated_at']


class ProductSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source='created_by.username', read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'sku', 'description', 'product_class', 'base_price', 'unit',
            'dimensions', 'weight', 'material', 'finish_options', 'min_order_quantity', 'lead_time',
            'is_active', 'packaging_type', 'print_resolution', 'paper_weight', 'fold_type',
            'binding_type', 'default_length', 'default_width', 'cost_per_sq_meter',
            'created_by', 'created_by_username', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_by', 'created_at', 'updated_at']
        # Duplicate SKUs are reported as 409 by the views
        extra_kwargs = {'sku': {'validators': []}}

    def validate_base_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Base price cannot be negative.')
        return value

    def validate_finish_options(self, value):
        if value in (None, ''):
            return []
        if not isinstance(value, list):
            raise serializers.ValidationError('Finish options must be a list.')
        return value

    def to_representation(self, instance):
        return apply_wide_format_defaults(super().to_representation(instance))


class ProductDetailSerializer(ProductSerializer):
    variants = ProductVariantSerializer(many=True, read_only=True)
    job_count = serializers.SerializerMethodField()
    invoice_count = serializers.SerializerMethodField()

    class Meta(ProductSerializer.Meta):
        fields = ProductSerializer.Meta.fields + ['variants', 'job_count', 'invoice_count']

    def get_job_count(self, obj):
        return obj.job_products.values('job').distinct().count()

    def get_invoice_count(self, obj):
        return obj.invoice_items.values('invoice').distinct().count()


class ProductVariantDetailSerializer(ProductVariantSerializer):
    product = ProductSerializer(read_only=True)
