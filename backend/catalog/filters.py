import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Filter for Product model using django-filter"""

    # Basic search - searches across name, SKU and description
    search = django_filters.CharFilter(method='filter_search', label='Search')
    product_class = django_filters.ChoiceFilter(field_name='product_class', choices=Product.PRODUCT_CLASS_CHOICES)
    active = django_filters.CharFilter(method='filter_active', label='Active')

    class Meta:
        model = Product
        fields = ['search', 'product_class', 'active']

    @property
    def qs(self):
        queryset = super().qs
        # Active products only unless the caller asked otherwise
        if 'active' not in self.data or self.data.get('active') in (None, ''):
            queryset = queryset.filter(is_active=True)
        return queryset

    def filter_search(self, queryset, name, value):
        """Case-insensitive match on name, SKU or description"""
        search = (value or '').strip()
        if not search:
            return queryset
        return queryset.filter(
            Q(name__icontains=search) |
            Q(sku__icontains=search) |
            Q(description__icontains=search)
        )

    def filter_active(self, queryset, name, value):
        """
        'true' (default) returns active products, 'false' returns every
        product including inactive ones, and 'all' is accepted as an alias.
        """
        value = (value or '').strip().lower()
        if value in ('false', '0', 'no', 'all'):
            return queryset
        return queryset.filter(is_active=True)
