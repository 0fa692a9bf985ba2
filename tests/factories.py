"""Shared builders for order tests."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from modules.orders.dtos import CreateOrderDTO, CustomerSnapshotDTO, OrderItemDTO

CUSTOMER_PHONE = "0812-3456-7890"


class FixedClock:
    """Clock that returns a fixed instant until moved."""

    def __init__(self, now: datetime) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    def advance(self, **delta) -> None:
        self._now += timedelta(**delta)


def build_order_dto(**overrides) -> CreateOrderDTO:
    """Two nasi goreng + one es teh: subtotal 50000, delivery 10000."""
    data = {
        "customer": CustomerSnapshotDTO(
            customer_name="Budi Santoso",
            customer_phone=CUSTOMER_PHONE,
            customer_address="Jl. Merdeka No. 10, Bandung",
            notes="Tidak pedas",
        ),
        "items": [
            OrderItemDTO(product_name="Nasi Goreng", unit_price=Decimal("20000"), quantity=2),
            OrderItemDTO(product_name="Es Teh Manis", unit_price=Decimal("10000"), quantity=1),
        ],
        "subtotal": Decimal("50000"),
        "delivery_fee": Decimal("10000"),
    }
    data.update(overrides)
    return CreateOrderDTO(**data)
