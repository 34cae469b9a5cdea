"""
Caching for frequently read lists: the customer list and products by class.

List keys carry a namespace version. Saving or deleting a model bumps the
version of every list it appears in, so stale entries are never read again
and simply expire. On Redis the old keys are also removed by pattern.
"""
import hashlib
import logging
from django.core.cache import cache
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

logger = logging.getLogger(__name__)

# Cache key prefixes
CUSTOMER_LIST_KEY_PREFIX = 'customer_list'
PRODUCT_CLASS_LIST_KEY_PREFIX = 'product_class_list'
VERSION_KEY_PREFIX = 'cache_version:'

# Cache TTL (Time To Live) in seconds
CUSTOMER_LIST_CACHE_TTL = 300  # 5 minutes
PRODUCT_LIST_CACHE_TTL = 180  # 3 minutes
VERSION_KEY_TTL = None  # never expires

# Models whose changes make each cached list stale
CUSTOMER_LIST_DEPENDENCIES = ['Customer', 'Job', 'Invoice']
PRODUCT_LIST_DEPENDENCIES = ['Product']


def make_cache_key(prefix, *parts):
    """Build a cache key from a prefix and a hash of the remaining parts"""
    key_data = ':'.join(str(part) for part in parts)
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def get_namespace_version(namespace: str) -> int:
    version = cache.get(f"{VERSION_KEY_PREFIX}{namespace}")
    if version is None:
        version = 1
        cache.set(f"{VERSION_KEY_PREFIX}{namespace}", version, VERSION_KEY_TTL)
    return version


def bump_namespace_version(namespace: str):
    version_key = f"{VERSION_KEY_PREFIX}{namespace}"
    try:
        cache.incr(version_key)
    except ValueError:
        # Key missing or evicted
        cache.set(version_key, 2, VERSION_KEY_TTL)

    # django-redis exposes pattern deletion; other backends rely on the version bump
    delete_pattern = getattr(cache, 'delete_pattern', None)
    if delete_pattern is not None:
        try:
            deleted = delete_pattern(f"{namespace}:*")
            logger.debug(f"Deleted {deleted} cache keys for namespace {namespace}")
        except Exception as e:
            logger.warning(f"Could not invalidate cache pattern {namespace}: {str(e)}")


# ==================== CUSTOMER LIST ====================

def get_customer_list_cache_key(search_query: str = '') -> str:
    """Get cache key for customer list"""
    version = get_namespace_version(CUSTOMER_LIST_KEY_PREFIX)
    return make_cache_key(CUSTOMER_LIST_KEY_PREFIX, version, search_query or 'all')


def invalidate_customer_list_cache():
    bump_namespace_version(CUSTOMER_LIST_KEY_PREFIX)
    logger.debug("Invalidated customer list cache")


# ==================== PRODUCTS BY CLASS ====================

def get_product_class_cache_key(product_class: str) -> str:
    """Get cache key for the active product list of one product class"""
    version = get_namespace_version(PRODUCT_CLASS_LIST_KEY_PREFIX)
    return make_cache_key(PRODUCT_CLASS_LIST_KEY_PREFIX, version, product_class)


def invalidate_product_list_cache():
    bump_namespace_version(PRODUCT_CLASS_LIST_KEY_PREFIX)
    logger.debug("Invalidated product list cache")


# ==================== DJANGO SIGNALS ====================

@receiver([post_save, post_delete])
def invalidate_model_list_caches(sender, instance, **kwargs):
    """Invalidate cached lists when a model they depend on changes"""
    model_name = sender.__name__

    if model_name in CUSTOMER_LIST_DEPENDENCIES and sender._meta.app_label in ('parties', 'jobs', 'invoicing'):
        invalidate_customer_list_cache()

    if model_name in PRODUCT_LIST_DEPENDENCIES and sender._meta.app_label == 'catalog':
        invalidate_product_list_cache()
