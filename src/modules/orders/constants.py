"""Order domain constants.

Defines status choices, the transition graph of the order state machine
and the field sets that decide what generic updates may touch.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Menunggu Konfirmasi"
    CONFIRMED = "confirmed", "Dikonfirmasi"
    PREPARING = "preparing", "Sedang Diproses"
    READY = "ready", "Siap"
    DELIVERED = "delivered", "Selesai"
    CANCELLED = "cancelled", "Dibatalkan"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

# Status reached -> timestamp stamped by that transition.
STATUS_TIMESTAMP_FIELDS: dict[str, str] = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.PREPARING: "preparing_at",
    OrderStatus.READY: "ready_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

# Customer snapshot fields: the only ones a generic update may write.
PATCHABLE_FIELDS: tuple[str, ...] = (
    "customer_name",
    "customer_phone",
    "customer_address",
    "notes",
)

# Written exclusively by the named transitions on ``Order``.
GUARDED_FIELDS: frozenset[str] = frozenset(
    {"status", "cancellation_reason", *STATUS_TIMESTAMP_FIELDS.values()}
)

# Generated once on insert, never rewritten.
IMMUTABLE_FIELDS: frozenset[str] = frozenset({"order_number", "access_token"})

ORDER_NUMBER_MAX_RETRIES = 5
ACCESS_TOKEN_MAX_RETRIES = 5
ACCESS_TOKEN_LENGTH = 26

CANCELLATION_REASON_MAX_LENGTH = 1000

AUTO_CANCEL_REASON_TEMPLATE = "Auto-cancelled: not confirmed within {minutes} minutes"

PENDING_ALERT_LIMIT = 5
