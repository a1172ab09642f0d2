from __future__ import annotations

from rest_framework.permissions import BasePermission

from apps.core.errors import AuthorizationError


class IsTenantMember(BasePermission):
    """
    Authenticated user bound to an active tenant.
    """

    message = 'A user bound to an active tenant is required.'

    def has_permission(self, request, view):
        user = getattr(request, 'user', None)
        if not user or not getattr(user, 'is_authenticated', False):
            return False
        tenant = getattr(user, 'tenant', None)
        return tenant is not None and tenant.is_active


class IsPlatformAdmin(BasePermission):
    def has_permission(self, request, view):
        user = getattr(request, 'user', None)
        if not user or not getattr(user, 'is_authenticated', False):
            return False
        role = getattr(user, 'role', None)
        return role == 'platform_admin' or getattr(user, 'is_superuser', False)


def tenant_id_for(request) -> int:
    """The only place a request is turned into a tenant id."""
    tenant_id = getattr(request.user, 'tenant_id', None)
    if not tenant_id:
        raise AuthorizationError('Request is not bound to a tenant')
    return tenant_id
