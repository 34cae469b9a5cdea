"""
JWT authentication for portal users.

Portal tokens are simplejwt access tokens carrying ``portal_user_id`` and
``customer_id`` instead of the staff ``user_id`` claim, so each token type
is rejected by the other authenticator.
"""
import logging
from django.conf import settings
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken
from rest_framework_simplejwt.tokens import AccessToken
from backend.core.exceptions import PortalAccessDenied
from .models import PortalUser

logger = logging.getLogger(__name__)

PORTAL_USER_CLAIM = 'portal_user_id'
CUSTOMER_CLAIM = 'customer_id'


def issue_portal_token(portal_user):
    """Create an access token for a portal user"""
    token = AccessToken()
    token.set_exp(lifetime=settings.PORTAL_TOKEN_LIFETIME)
    token[PORTAL_USER_CLAIM] = portal_user.id
    token[CUSTOMER_CLAIM] = portal_user.customer_id
    token['email'] = portal_user.email
    token['role'] = portal_user.role
    return str(token)


class PortalJWTAuthentication(JWTAuthentication):
    """Authenticate requests made with a portal token"""

    def get_user(self, validated_token):
        try:
            portal_user_id = validated_token[PORTAL_USER_CLAIM]
        except KeyError:
            raise InvalidToken('Token is not a portal token')

        portal_user = PortalUser.objects.select_related('customer').filter(pk=portal_user_id).first()
        if portal_user is None:
            raise AuthenticationFailed('Portal user not found', code='user_not_found')
        if portal_user.customer_id != validated_token.get(CUSTOMER_CLAIM):
            raise AuthenticationFailed('Token customer does not match', code='customer_mismatch')
        if portal_user.status != 'ACTIVE':
            logger.warning(f"Rejected token for {portal_user.status.lower()} portal user {portal_user.email}")
            raise PortalAccessDenied('Portal account is not active')
        return portal_user
