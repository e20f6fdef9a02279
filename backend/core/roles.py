"""
Role names (Django groups) used by the parts-issue workflow and helpers to check them.
"""
from rest_framework.permissions import BasePermission

TECHNICIAN = 'Technician'
SC_MANAGER = 'ServiceCenterManager'
CENTRAL_ADMIN = 'CentralAdmin'
INVENTORY_MANAGER = 'InventoryManager'

ALL_ROLES = [TECHNICIAN, SC_MANAGER, CENTRAL_ADMIN, INVENTORY_MANAGER]

ROLE_DESCRIPTIONS = {
    TECHNICIAN: 'Workshop technician - raises parts requests against job cards',
    SC_MANAGER: 'Service center manager - first approval of parts requests, receives dispatched parts',
    CENTRAL_ADMIN: 'Central admin - final approval of parts requests and purchase orders',
    INVENTORY_MANAGER: 'Central inventory manager - dispatches approved parts',
}


def get_user_roles(user):
    if not user or not user.is_authenticated:
        return set()
    return set(user.groups.values_list('name', flat=True))


def user_has_role(user, *roles):
    """True when the user is a superuser or belongs to any of the given groups"""
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    return bool(get_user_roles(user) & set(roles))


class HasRole(BasePermission):
    """
    DRF permission granting access to members of ``allowed_roles``.

    Use :func:`role_permission` to build one for a view:

        @permission_classes([IsAuthenticated, role_permission(CENTRAL_ADMIN)])
    """
    allowed_roles = ()
    message = 'You do not have the role required for this action.'

    def has_permission(self, request, view):
        return user_has_role(request.user, *self.allowed_roles)


def role_permission(*roles):
    return type('HasRole_' + '_'.join(roles), (HasRole,), {'allowed_roles': roles})
