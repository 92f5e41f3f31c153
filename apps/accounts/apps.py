from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


class AccountsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.accounts"
    verbose_name = "Accounts"

    def ready(self) -> None:
        from apps.common.runtime import is_production
        from apps.payments.application.facade import PaymentGatewayFacade

        if is_production():
            if getattr(settings, "DEBUG", False):
                raise ImproperlyConfigured("DEBUG must be False in production.")
            if settings.SECRET_KEY.startswith("django-insecure"):
                raise ImproperlyConfigured("DJANGO_SECRET_KEY must be set in production.")
            provider = (getattr(settings, "PAYMENT_GATEWAY_PROVIDER", "") or "").strip().lower()
            if provider in PaymentGatewayFacade.test_only_codes():
                raise ImproperlyConfigured(
                    f"PAYMENT_GATEWAY_PROVIDER={provider!r} is a test gateway. Configure a live provider."
                )
            if provider == "paystack" and not getattr(settings, "PAYSTACK_SECRET_KEY", ""):
                raise ImproperlyConfigured("PAYSTACK_SECRET_KEY must be set in production.")
