from __future__ import annotations

from django.apps import apps
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ImproperlyConfigured
from django.test import RequestFactory, TestCase, override_settings
from rest_framework.test import APIClient

from apps.accounts.models import AccountProfile
from apps.accounts.services.identity_service import IdentityService
from apps.common.domain.errors import UnauthorizedError
from apps.common.testing import make_user


class IdentityServiceTests(TestCase):
    def test_role_resolution(self):
        User = get_user_model()
        supplier = make_user("supplier", role="SUPPLIER")
        bare = User.objects.create_user(username="bare", password="pass12345")
        root = User.objects.create_superuser(username="root", email="root@example.com", password="pass12345")

        self.assertEqual(IdentityService.role_of(supplier), "SUPPLIER")
        self.assertEqual(IdentityService.role_of(bare), "BUYER")
        self.assertEqual(IdentityService.role_of(root), "ADMIN")
        self.assertTrue(IdentityService.has_role(supplier, "SUPPLIER", "ADMIN"))
        self.assertFalse(IdentityService.has_role(bare, "ADMIN"))

    def test_resolve_requires_authenticated_user(self):
        request = RequestFactory().get("/")
        request.user = AnonymousUser()
        with self.assertRaises(UnauthorizedError):
            IdentityService.resolve(request)

        user = make_user("mechanic", role="MECHANIC")
        request.user = user
        identity = IdentityService.resolve(request)
        self.assertEqual((identity.user_id, identity.role), (user.id, "MECHANIC"))


class TokenAuthTests(TestCase):
    def test_jwt_token_grants_api_access(self):
        user = make_user("jwt-user")
        client = APIClient()
        token = client.post(
            "/api/auth/token/", data={"username": "jwt-user", "password": "pass12345"}, format="json"
        )
        self.assertEqual(token.status_code, 200)
        access = token.json()["access"]

        client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
        response = client.get("/api/notifications/")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(AccountProfile.objects.filter(user=user).exists())

    def test_bad_token_is_unauthorized(self):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION="Bearer not-a-token")
        response = client.get("/api/wallet/")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["kind"], "unauthorized")


class ProductionChecksTests(TestCase):
    @override_settings(ENVIRONMENT="production", DEBUG=True)
    def test_debug_rejected_in_production(self):
        with self.assertRaises(ImproperlyConfigured):
            apps.get_app_config("accounts").ready()

    @override_settings(ENVIRONMENT="production", DEBUG=False, SECRET_KEY="django-insecure-x")
    def test_insecure_secret_rejected_in_production(self):
        with self.assertRaises(ImproperlyConfigured):
            apps.get_app_config("accounts").ready()

    @override_settings(ENVIRONMENT="production", DEBUG=False, SECRET_KEY="a-real-secret-value")
    def test_test_gateways_rejected_in_production(self):
        for provider in ("dummy", "sandbox", " Sandbox "):
            with self.subTest(provider=provider), self.settings(PAYMENT_GATEWAY_PROVIDER=provider):
                with self.assertRaises(ImproperlyConfigured):
                    apps.get_app_config("accounts").ready()

    @override_settings(
        ENVIRONMENT="production",
        DEBUG=False,
        SECRET_KEY="a-real-secret-value",
        PAYMENT_GATEWAY_PROVIDER="paystack",
        PAYSTACK_SECRET_KEY="",
    )
    def test_paystack_needs_secret_in_production(self):
        with self.assertRaises(ImproperlyConfigured):
            apps.get_app_config("accounts").ready()

    @override_settings(
        ENVIRONMENT="production",
        DEBUG=False,
        SECRET_KEY="a-real-secret-value",
        PAYMENT_GATEWAY_PROVIDER="paystack",
        PAYSTACK_SECRET_KEY="sk_live_x",
    )
    def test_hardened_production_settings_pass(self):
        apps.get_app_config("accounts").ready()
