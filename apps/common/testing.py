"""Fixtures shared by the app test suites."""

from __future__ import annotations

from decimal import Decimal
from itertools import count

from django.contrib.auth import get_user_model

from apps.accounts.models import AccountProfile
from apps.catalog.models import Product
from apps.customers.models import Address
from apps.orders.application.use_cases.create_order import CreateOrderCommand, CreateOrderUseCase, OrderLineInput

_sequence = count(1)


def make_user(username: str, role: str = "BUYER", **extra):
    user = get_user_model().objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="pass12345",
        **extra,
    )
    AccountProfile.objects.create(user=user, role=role, full_name=username.title())
    return user


def make_product(supplier, *, price="1000.00", stock=10, name: str | None = None, **extra) -> Product:
    n = next(_sequence)
    return Product.objects.create(
        supplier=supplier,
        sku=f"SKU-{n}",
        name=name or f"Part {n}",
        price=Decimal(price),
        stock=stock,
        **extra,
    )


def make_address(user, **extra) -> Address:
    defaults = {
        "recipient_name": "Ada Obi",
        "phone": "08030000000",
        "line1": "12 Allen Avenue",
        "city": "Ikeja",
        "state": "Lagos",
        "country": "Nigeria",
    }
    defaults.update(extra)
    return Address.objects.create(user=user, **defaults)


def place_order(buyer, lines, *, address=None, generator=None):
    """``lines`` is a list of ``(product, quantity)``."""
    return CreateOrderUseCase.execute(
        CreateOrderCommand(
            user=buyer,
            address_id=(address or make_address(buyer)).id,
            items=[OrderLineInput(product_id=product.id, quantity=quantity) for product, quantity in lines],
            tracking_code_generator=generator,
        )
    )
