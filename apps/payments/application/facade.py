from __future__ import annotations

import logging

from apps.common.domain.errors import InvalidArgumentError
from apps.common.runtime import is_production
from apps.payments.domain.ports import PaymentGatewayPort
from apps.payments.infrastructure.gateways.dummy_gateway import DummyGateway, SandboxStubGateway
from apps.payments.infrastructure.gateways.paystack_gateway import PaystackGateway

logger = logging.getLogger("partsmarket.payments")


class PaymentGatewayFacade:
    _registry: dict[str, type] = {
        DummyGateway.code: DummyGateway,
        SandboxStubGateway.code: SandboxStubGateway,
        PaystackGateway.code: PaystackGateway,
    }

    @classmethod
    def get(cls, provider_code: str) -> PaymentGatewayPort:
        key = (provider_code or "").strip().lower()
        adapter = cls._registry.get(key)
        if adapter is None:
            raise InvalidArgumentError(f"Unknown payment provider: {provider_code}")
        # Shared-secret gateways would let anyone settle payments.
        if adapter.test_only and is_production():
            logger.warning("test_gateway_refused", extra={"provider_code": key})
            raise InvalidArgumentError(f"Unknown payment provider: {provider_code}")
        return adapter()

    @classmethod
    def test_only_codes(cls) -> set[str]:
        return {code for code, adapter in cls._registry.items() if adapter.test_only}
