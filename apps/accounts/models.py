from __future__ import annotations

from django.conf import settings
from django.db import models

from apps.accounts.domain.roles import Role


class AccountProfile(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="account_profile",
    )
    role = models.CharField(max_length=20, choices=Role.choices(), default=Role.BUYER.value)
    full_name = models.CharField(max_length=200, blank=True, default="")
    phone = models.CharField(max_length=32, unique=True, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["role"], name="account_profile_role_idx"),
        ]

    def __str__(self) -> str:
        return f"AccountProfile(user_id={self.user_id}, role={self.role})"
