"""Utility functions for audit logging, runtime settings and money rounding"""
import logging
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from django.conf import settings
from .models import AuditLog, Setting, User

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')


def quantize_money(value):
    """Round a Decimal-compatible value to 2 decimal places, half-up"""
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(value, default=None):
    """Convert request input to Decimal, returning default on blank or invalid input"""
    if value is None or value == '':
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def to_whole_number(value, default=None):
    """
    Convert request input to an int, returning default when the value is
    blank, invalid or has a fractional part (2.9 is rejected, "3" and 3.0 are not)
    """
    number = to_decimal(value)
    if number is None or not number.is_finite() or number != number.to_integral_value():
        return default
    return int(number)


def get_setting(key, default=None):
    """
    Read a runtime setting.

    Falls back to settings.PRINTSHOP[key] and then to ``default`` when the
    key has not been stored in the settings table.
    """
    setting = Setting.objects.filter(key=key).first()
    if setting is not None:
        return setting.value
    return settings.PRINTSHOP.get(key, default)


def get_decimal_setting(key, default=None):
    return to_decimal(get_setting(key, default), default)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, invoice_status, job_status, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., customer name, job title)
        object_reference: Reference identifier (e.g., invoice number, order number)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        # Portal users are not staff accounts and are recorded in changes instead
        if audit_user is not None and not isinstance(audit_user, User):
            audit_user = None

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None
