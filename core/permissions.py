"""
Authorization guard for ThePrintFarm.

``require_role`` and ``require_ownership_or_admin`` are plain checks used by
the lifecycle engine and views; the permission classes wrap them for DRF's
``permission_classes``.
"""

from rest_framework import permissions
from rest_framework.exceptions import PermissionDenied

from .models import Role


def require_role(user, allowed_roles, message=None):
    """
    Ensure ``user`` has one of ``allowed_roles``.

    Args:
        user: Authenticated account
        allowed_roles: Iterable of Role members
        message: Optional error message for the 403 response

    Raises:
        PermissionDenied: If the user's role is not allowed
    """
    allowed = {Role(role) for role in allowed_roles}
    if Role(user.role) not in allowed:
        raise PermissionDenied(message or 'Insufficient permissions')


def require_ownership_or_admin(user, owner_id, message=None):
    """
    Ensure ``user`` owns the resource (``owner_id``) or is an admin.

    Raises:
        PermissionDenied: If the user is neither the owner nor an admin
    """
    if user.is_admin():
        return
    if user.pk != owner_id:
        raise PermissionDenied(message or 'Access denied')


class RolePermission(permissions.BasePermission):
    """
    Base class for role-gated endpoints.

    Subclasses set ``allowed_roles``. Unauthenticated requests are refused
    so DRF answers 401 rather than 403.
    """

    allowed_roles = ()
    message = 'Insufficient permissions'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        require_role(request.user, self.allowed_roles, self.message)
        return True


class IsAdmin(RolePermission):
    allowed_roles = (Role.ADMIN,)
    message = 'Admin access required'


class IsMaker(RolePermission):
    allowed_roles = (Role.MAKER,)
    message = 'Only makers can access this endpoint'


class IsCustomer(RolePermission):
    allowed_roles = (Role.CUSTOMER,)
    message = 'Only customers can create print requests'
