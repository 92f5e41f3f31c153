from __future__ import annotations

from apps.common.domain.errors import InvalidArgumentError


class InsufficientStockError(InvalidArgumentError):
    def __init__(self, product_name: str):
        super().__init__(f"Insufficient stock for {product_name}.", field="items")
        self.product_name = product_name
