from __future__ import annotations

from dataclasses import dataclass

from apps.accounts.domain.roles import Role
from apps.accounts.models import AccountProfile
from apps.common.domain.errors import UnauthorizedError


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str


class IdentityService:
    @staticmethod
    def role_of(user) -> str:
        if getattr(user, "is_superuser", False):
            return Role.ADMIN.value
        profile = AccountProfile.objects.filter(user_id=user.id).only("role").first()
        if profile is None:
            return Role.BUYER.value
        return profile.role

    @staticmethod
    def resolve(request) -> Identity:
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            raise UnauthorizedError()
        return Identity(user_id=user.id, role=IdentityService.role_of(user))

    @staticmethod
    def has_role(user, *roles: str) -> bool:
        return IdentityService.role_of(user) in roles
