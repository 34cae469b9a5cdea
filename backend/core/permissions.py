from rest_framework.permissions import BasePermission


def is_admin_user(user):
    """
    Check if a staff user has admin rights.
    Returns True if:
    - User is superuser or staff, OR
    - User is in the 'Admin' group, OR
    - User has the ADMIN role
    """
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser or user.is_staff:
        return True
    if getattr(user, 'role', None) == 'ADMIN':
        return True
    return user.groups.filter(name='Admin').exists()


class IsAdminRole(BasePermission):
    """Allow access only to admin staff users"""
    message = 'Admin access required.'

    def has_permission(self, request, view):
        return is_admin_user(request.user)
