from rest_framework.permissions import BasePermission
from .models import PortalUser


class IsPortalUser(BasePermission):
    """Allow only requests authenticated as a portal user"""
    message = 'Portal access required.'

    def has_permission(self, request, view):
        return isinstance(request.user, PortalUser)
