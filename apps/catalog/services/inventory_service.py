from __future__ import annotations

from django.db.models import F

from apps.catalog.domain.errors import InsufficientStockError

from ..models import Product


class InventoryService:
    @staticmethod
    def reserve(product: Product, quantity: int) -> None:
        updated = Product.objects.filter(pk=product.pk, stock__gte=quantity).update(
            stock=F("stock") - quantity
        )
        if not updated:
            raise InsufficientStockError(product.name)

    @staticmethod
    def release(product_id: int, quantity: int) -> None:
        Product.objects.filter(pk=product_id).update(stock=F("stock") + quantity)
