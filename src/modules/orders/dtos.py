"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CustomerSnapshotDTO``: who ordered and where to deliver.
- ``OrderItemDTO``: a priced cart line captured at checkout.
- ``CreateOrderDTO``: input for order creation (nested items).
- ``UpdateOrderDetailsDTO``: the patchable customer snapshot fields.
  It has no status, timestamp or reason fields, so a generic update
  cannot express a status change.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

_MONEY_QUANTUM = Decimal("0.01")


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CustomerSnapshotDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    customer_name: str
    customer_phone: str
    customer_address: Optional[str] = None
    notes: str = ""

    @field_validator("customer_name", "customer_phone")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("This field may not be blank.")
        return v


class OrderItemDTO(BaseModel):
    """Immutable DTO for a single cart line.

    ``product_name`` and ``unit_price`` are snapshots taken from the
    catalog by the checkout flow; the order never re-reads the product.
    """

    model_config = ConfigDict(frozen=True)

    product_id: Optional[UUID] = None
    product_name: str
    unit_price: Decimal
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @field_validator("unit_price")
    @classmethod
    def price_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Unit price cannot be negative.")
        return v.quantize(_MONEY_QUANTUM)

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    Validates:
    - ``items`` must contain at least one item.
    - money amounts are non-negative.
    - ``subtotal`` matches the sum of the item subtotals.
    """

    model_config = ConfigDict(frozen=True)

    customer: CustomerSnapshotDTO
    items: List[OrderItemDTO]
    subtotal: Decimal
    delivery_fee: Decimal = Decimal("0.00")
    user_id: Optional[int] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(cls, v: List[OrderItemDTO]) -> List[OrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @field_validator("subtotal", "delivery_fee")
    @classmethod
    def money_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Amount cannot be negative.")
        return v.quantize(_MONEY_QUANTUM)

    @model_validator(mode="after")
    def subtotal_matches_items(self):
        expected = sum((item.subtotal for item in self.items), Decimal("0.00"))
        if expected != self.subtotal:
            raise ValueError(
                f"Subtotal {self.subtotal} does not match the items total {expected}."
            )
        return self

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.delivery_fee


class UpdateOrderDetailsDTO(BaseModel):
    """Partial update of the customer snapshot.

    Unknown keys (``status``, ``confirmed_at``, ``cancellation_reason``…)
    are dropped on parse.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    notes: Optional[str] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
