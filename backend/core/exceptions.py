"""Domain exceptions and the API exception handler"""
import logging
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class PricingError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid pricing input.'
    default_code = 'pricing_error'


class ConflictError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Conflict with existing data.'
    default_code = 'conflict'


class PortalAccessDenied(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Access denied.'
    default_code = 'portal_access_denied'


def api_exception_handler(exc, context):
    """
    Wrap DRF's handler so every error body carries an ``error`` key.

    Serializer field errors (dicts without ``detail``) are passed through
    unchanged. Exceptions DRF does not handle are logged and turned into a
    500 response instead of an HTML error page.
    """
    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        view_name = view.__class__.__name__ if view else 'unknown'
        logger.error(f"Unhandled exception in {view_name}: {str(exc)}", exc_info=True)
        return Response({'error': 'Internal server error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if isinstance(response.data, dict) and set(response.data.keys()) == {'detail'}:
        response.data = {'error': str(response.data['detail'])}
    elif isinstance(response.data, list):
        response.data = {'error': ' '.join(str(item) for item in response.data)}

    return response
