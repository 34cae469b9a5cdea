from rest_framework import serializers
from .models import SalesActivity, FollowUp, Quotation


class FollowUpSerializer(serializers.ModelSerializer):
    class Meta:
        model = FollowUp
        fields = ['id', 'activity', 'date', 'notes', 'completed', 'created_at']
        read_only_fields = ['activity', 'created_at']


class SalesActivitySerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source='employee.full_name', read_only=True)
    follow_ups = FollowUpSerializer(many=True, read_only=True)

    class Meta:
        model = SalesActivity
        fields = ['id', 'employee', 'employee_name', 'shop_name', 'contact_name', 'contact_email',
                  'contact_phone', 'status', 'notes', 'date', 'follow_ups', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {'employee': {'required': False}}


class QuotationSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.full_name', read_only=True)
    invoice_number = serializers.CharField(source='invoice.invoice_number', read_only=True)

    class Meta:
        model = Quotation
        fields = ['id', 'quote_number', 'customer', 'customer_name', 'status', 'expires_at', 'total_amount',
                  'items', 'notes', 'invoice', 'invoice_number', 'created_by', 'created_by_name',
                  'created_at', 'updated_at']
        read_only_fields = ['quote_number', 'total_amount', 'items', 'invoice', 'created_by',
                            'created_at', 'updated_at']
        extra_kwargs = {'expires_at': {'required': False}}
