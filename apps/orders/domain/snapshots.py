from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class LineItemSnapshot:
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class AddressSnapshot:
    """Destination only; the recipient and street stay behind authentication."""

    city: str
    state: str
    country: str


@dataclass(frozen=True)
class TrackingEventSnapshot:
    status: str
    location: str
    message: str
    timestamp: datetime


@dataclass(frozen=True)
class OrderSnapshot:
    """Public view of an order, safe for unauthenticated tracking pages."""

    tracking_code: str
    status: str
    currency: str
    total_amount: Decimal
    items: tuple[LineItemSnapshot, ...]
    shipping_address: AddressSnapshot | None
    events: tuple[TrackingEventSnapshot, ...]
    created_at: datetime

    def as_dict(self) -> dict:
        data = asdict(self)
        data["total_amount"] = str(self.total_amount)
        data["created_at"] = self.created_at.isoformat()
        data["items"] = [
            {
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": str(item.unit_price),
                "line_total": str(item.line_total),
            }
            for item in self.items
        ]
        data["events"] = [
            {
                "status": event.status,
                "location": event.location,
                "message": event.message,
                "timestamp": event.timestamp.isoformat(),
            }
            for event in self.events
        ]
        return data
