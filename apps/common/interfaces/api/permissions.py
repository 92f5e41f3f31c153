from __future__ import annotations

from rest_framework.permissions import BasePermission

from apps.accounts.services.identity_service import IdentityService


class HasRole(BasePermission):
    """Allow authenticated users whose marketplace role is in ``allowed_roles``."""

    allowed_roles: tuple[str, ...] = ()

    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return IdentityService.role_of(user) in self.allowed_roles


class IsMarketplaceAdmin(HasRole):
    allowed_roles = ("ADMIN",)
