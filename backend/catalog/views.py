import logging
from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from backend.core.utils import create_audit_log
from .filters import ProductFilter
from .models import Product, ProductVariant
from .serializers import (
    ProductSerializer, ProductDetailSerializer,
    ProductVariantSerializer, ProductVariantDetailSerializer
)

logger = logging.getLogger(__name__)

PRODUCT_REQUIRED_FIELDS = ['name', 'sku', 'product_class', 'base_price', 'unit']
VALID_PRODUCT_CLASSES = [choice[0] for choice in Product.PRODUCT_CLASS_CHOICES]


def sku_in_use(sku, exclude_pk=None):
    queryset = Product.objects.filter(sku__iexact=sku)
    if exclude_pk is not None:
        queryset = queryset.exclude(pk=exclude_pk)
    return queryset.exists()


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_list_create(request):
    """List products or create a new product"""
    if request.method == 'GET':
        queryset = Product.objects.select_related('created_by').order_by('name')
        filterset = ProductFilter(request.query_params, queryset=queryset)
        queryset = filterset.qs
        serializer = ProductSerializer(queryset, many=True)
        return Response(serializer.data)

    missing = [field for field in PRODUCT_REQUIRED_FIELDS if request.data.get(field) in (None, '')]
    if missing:
        return Response(
            {'error': 'Missing required fields', 'fields': missing},
            status=status.HTTP_400_BAD_REQUEST
        )

    if sku_in_use(request.data.get('sku')):
        return Response({'error': 'A product with this SKU already exists'}, status=status.HTTP_409_CONFLICT)

    serializer = ProductSerializer(data=request.data)
    if serializer.is_valid():
        extra = {'created_by': request.user}
        if serializer.validated_data.get('product_class') == Product.WIDE_FORMAT:
            extra['default_length'] = serializer.validated_data.get('default_length') or settings.PRINTSHOP['DEFAULT_WIDE_FORMAT_LENGTH']
            extra['default_width'] = serializer.validated_data.get('default_width') or settings.PRINTSHOP['DEFAULT_WIDE_FORMAT_WIDTH']
        product = serializer.save(**extra)
        logger.info(f"Product created: {product.name} ({product.sku}) by {request.user.username}")
        create_audit_log(
            request=request,
            action='create',
            model_name='Product',
            object_id=product.id,
            object_name=product.name,
            object_reference=product.sku,
            changes={'base_price': str(product.base_price), 'product_class': product.product_class},
        )
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(Product, pk=pk)

    if request.method == 'GET':
        serializer = ProductDetailSerializer(product)
        return Response(serializer.data)

    elif request.method in ('PUT', 'PATCH'):
        sku = request.data.get('sku')
        if sku and sku_in_use(sku, exclude_pk=product.pk):
            return Response({'error': 'A product with this SKU already exists'}, status=status.HTTP_409_CONFLICT)

        old_price = product.base_price
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            product = serializer.save()
            changes = {}
            if product.base_price != old_price:
                changes['base_price'] = {'old': str(old_price), 'new': str(product.base_price)}
            create_audit_log(
                request=request,
                action='update',
                model_name='Product',
                object_id=product.id,
                object_name=product.name,
                object_reference=product.sku,
                changes=changes,
            )
            return Response(ProductSerializer(product).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    else:  # DELETE
        job_count = product.job_products.values('job').distinct().count()
        invoice_count = product.invoice_items.values('invoice').distinct().count()
        order_count = product.order_items.values('order').distinct().count()
        if job_count or invoice_count or order_count:
            return Response({
                'error': 'Cannot delete product that is used in jobs, invoices or orders',
                'job_count': job_count,
                'invoice_count': invoice_count,
                'order_count': order_count,
            }, status=status.HTTP_409_CONFLICT)

        product_id = product.id
        product_name = product.name
        with transaction.atomic():
            product.variants.all().delete()
            product.delete()
        logger.info(f"Product deleted: {product_name} (ID: {product_id})")
        create_audit_log(
            request=request,
            action='delete',
            model_name='Product',
            object_id=product_id,
            object_name=product_name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def product_by_class(request, product_class):
    """Active products of a single product class"""
    product_class = product_class.upper()
    if product_class not in VALID_PRODUCT_CLASSES:
        return Response({'error': f'Invalid product class: {product_class}'}, status=status.HTTP_400_BAD_REQUEST)

    from backend.core.model_cache import get_product_class_cache_key, PRODUCT_LIST_CACHE_TTL
    cache_key = get_product_class_cache_key(product_class)
    cached_data = cache.get(cache_key)
    if cached_data is not None:
        return Response(cached_data)

    products = Product.objects.filter(product_class=product_class, is_active=True).order_by('name')
    response_data = ProductSerializer(products, many=True).data
    cache.set(cache_key, response_data, PRODUCT_LIST_CACHE_TTL)
    return Response(response_data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_variants(request, pk):
    """List variants of a product or add a new variant"""
    product = get_object_or_404(Product, pk=pk)

    if request.method == 'GET':
        variants = product.variants.all().order_by('name')
        serializer = ProductVariantSerializer(variants, many=True)
        return Response(serializer.data)

    if not request.data.get('name') or request.data.get('price_adjustment') in (None, ''):
        return Response({'error': 'Name and price adjustment are required'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = ProductVariantSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save(product=product)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def product_variant_detail(request, pk):
    """Retrieve, update or delete a product variant"""
    variant = get_object_or_404(ProductVariant.objects.select_related('product'), pk=pk)

    if request.method == 'GET':
        serializer = ProductVariantDetailSerializer(variant)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductVariantSerializer(variant, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        variant.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
