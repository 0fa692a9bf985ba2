"""Order and OrderItem models.

Business rules implemented here:
- Status moves only through the named transitions (``confirm``,
  ``start_preparing``, ``mark_ready``, ``mark_delivered``, ``cancel``).
  Each one is a single compare-and-swap ``UPDATE`` keyed on the expected
  current status, and stamps the matching ``*_at`` column exactly once.
- ``status``, the ``*_at`` stamps and ``cancellation_reason`` are guarded:
  inserts, ``save()`` on an existing row, ``fill()`` and ``QuerySet.update``
  never write them.
- ``order_number`` (``ORD-YYYYMMDD-XXXXX``) and ``access_token`` (ULID) are
  generated on insert and never rewritten.
- ``total = subtotal + delivery_fee`` is fixed at creation.
- OrderItem rows are price/name snapshots and are immutable.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime
from typing import Any, Mapping, Optional

import structlog
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import OperationalError, models
from django.utils import timezone

from modules.core.models import TimeStampedModel
from modules.orders.constants import (
    ACCESS_TOKEN_LENGTH,
    ACCESS_TOKEN_MAX_RETRIES,
    GUARDED_FIELDS,
    IMMUTABLE_FIELDS,
    ORDER_NUMBER_MAX_RETRIES,
    PATCHABLE_FIELDS,
    STATUS_TIMESTAMP_FIELDS,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
)
from modules.orders.events import OrderCancelled, OrderStatusChanged
from modules.orders.exceptions import (
    IllegalTransition,
    OrderValidationError,
    TransientStorageError,
)
from modules.orders.tokens import issue_access_token
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

_PROTECTED_FIELDS = GUARDED_FIELDS | IMMUTABLE_FIELDS
_ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


class OrderQuerySet(models.QuerySet):
    def pending(self) -> OrderQuerySet:
        return self.filter(status=OrderStatus.PENDING)

    def expired_pending(self, cutoff: datetime) -> OrderQuerySet:
        """Pending orders created strictly before *cutoff*."""
        return self.pending().filter(created_at__lt=cutoff)

    def visible_to(self, user) -> OrderQuerySet:
        """Staff see everything, customers only their own orders."""
        if getattr(user, "is_staff", False):
            return self
        if not getattr(user, "is_authenticated", False):
            return self.none()
        return self.filter(user_id=user.pk)

    def update(self, **kwargs: Any) -> int:
        """Bulk update that silently drops guarded and immutable fields."""
        blocked = sorted(_PROTECTED_FIELDS.intersection(kwargs))
        if blocked:
            logger.warning("order.guarded_fields_ignored", fields=blocked, path="update")
            kwargs = {k: v for k, v in kwargs.items() if k not in _PROTECTED_FIELDS}
        if not kwargs:
            return 0
        return super().update(**kwargs)

    def bulk_create(self, objs, *args: Any, **kwargs: Any):
        """Insert in bulk; every order starts pending with fresh identifiers."""
        objs = list(objs)
        for order in objs:
            order._reset_protected_fields_for_insert()
        created = super().bulk_create(objs, *args, **kwargs)
        for order in created:
            order._remember_protected_values()
        return created

    def _transition_update(self, **values: Any) -> int:
        # Only Order._transition may write guarded columns.
        return super().update(**values)


OrderManager = models.Manager.from_queryset(OrderQuerySet)


class Order(DomainEventMixin, TimeStampedModel):
    """Order aggregate root.

    The integer ``id`` is internal to the back office.  Customers reach
    their order through ``access_token`` links, which are neither
    sequential nor guessable.
    """

    order_number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    access_token: models.CharField = models.CharField(
        max_length=ACCESS_TOKEN_LENGTH, unique=True, editable=False
    )
    user: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )

    # Customer snapshot, captured at checkout
    customer_name: models.CharField = models.CharField(max_length=255)
    customer_phone: models.CharField = models.CharField(max_length=20, db_index=True)
    customer_address: models.TextField = models.TextField(  # noqa: DJ01
        null=True, blank=True
    )
    notes: models.TextField = models.TextField(blank=True, default="")

    subtotal: models.DecimalField = models.DecimalField(max_digits=12, decimal_places=2)
    delivery_fee: models.DecimalField = models.DecimalField(
        max_digits=12, decimal_places=2, default=0
    )
    total: models.DecimalField = models.DecimalField(max_digits=12, decimal_places=2)

    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        editable=False,
    )
    confirmed_at = models.DateTimeField(null=True, blank=True, editable=False)
    preparing_at = models.DateTimeField(null=True, blank=True, editable=False)
    ready_at = models.DateTimeField(null=True, blank=True, editable=False)
    delivered_at = models.DateTimeField(null=True, blank=True, editable=False)
    cancelled_at = models.DateTimeField(null=True, blank=True, editable=False)
    cancellation_reason: models.TextField = models.TextField(  # noqa: DJ01
        null=True, blank=True, editable=False
    )

    objects = OrderManager()

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["status", "created_at"], name="orders_status_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(subtotal__gte=0), name="orders_subtotal_non_negative"
            ),
            models.CheckConstraint(
                condition=models.Q(delivery_fee__gte=0),
                name="orders_delivery_fee_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(total=models.F("subtotal") + models.F("delivery_fee")),
                name="orders_total_consistent",
            ),
        ]

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._remember_protected_values()
        return instance

    def refresh_from_db(self, *args: Any, **kwargs: Any) -> None:
        super().refresh_from_db(*args, **kwargs)
        self._remember_protected_values()

    def _remember_protected_values(self) -> None:
        self._persisted_protected = {
            name: self.__dict__[name] for name in _PROTECTED_FIELDS if name in self.__dict__
        }

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` if the order is in a terminal state."""
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        """Check whether transitioning to *new_status* is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def confirm(self, now: Optional[datetime] = None) -> None:
        self._transition(OrderStatus.CONFIRMED, now=now)

    def start_preparing(self, now: Optional[datetime] = None) -> None:
        self._transition(OrderStatus.PREPARING, now=now)

    def mark_ready(self, now: Optional[datetime] = None) -> None:
        self._transition(OrderStatus.READY, now=now)

    def mark_delivered(self, now: Optional[datetime] = None) -> None:
        self._transition(OrderStatus.DELIVERED, now=now)

    def cancel(self, reason: Optional[str] = None, now: Optional[datetime] = None) -> None:
        self._transition(OrderStatus.CANCELLED, now=now, reason=reason)

    def _transition(
        self,
        target: str,
        *,
        now: Optional[datetime] = None,
        reason: Optional[str] = None,
    ) -> None:
        if self.pk is None:
            raise IllegalTransition("Order must be saved before changing its status.")
        if not self.can_transition_to(target):
            raise IllegalTransition(
                f"Cannot transition order {self.order_number} "
                f"from {self.status} to {target}."
            )

        stamp = self._not_before_previous_stamps(now or timezone.now())
        values: dict[str, Any] = {
            "status": target,
            STATUS_TIMESTAMP_FIELDS[target]: stamp,
            "updated_at": timezone.now(),
        }
        if target == OrderStatus.CANCELLED:
            values["cancellation_reason"] = reason or None

        previous = self.status
        try:
            updated = Order.objects.filter(
                pk=self.pk, status=previous
            )._transition_update(**values)
        except OperationalError as exc:
            raise TransientStorageError(
                f"Could not persist status change of order {self.order_number}."
            ) from exc
        if updated != 1:
            raise IllegalTransition(
                f"Order {self.order_number} is no longer {previous}; "
                "it was changed concurrently."
            )

        for name, value in values.items():
            setattr(self, name, value)
        self._remember_protected_values()

        if target == OrderStatus.CANCELLED:
            self.add_domain_event(
                OrderCancelled(
                    aggregate_id=self.pk,
                    order_number=self.order_number,
                    old_status=previous,
                    reason=self.cancellation_reason,
                )
            )
        else:
            self.add_domain_event(
                OrderStatusChanged(
                    aggregate_id=self.pk,
                    order_number=self.order_number,
                    old_status=previous,
                    new_status=target,
                )
            )

    def _not_before_previous_stamps(self, now: datetime) -> datetime:
        stamps = [
            value
            for value in (getattr(self, name) for name in STATUS_TIMESTAMP_FIELDS.values())
            if value is not None
        ]
        if stamps and max(stamps) > now:
            return max(stamps)
        return now

    # ------------------------------------------------------------------
    # Generic (non-status) updates
    # ------------------------------------------------------------------

    def fill(self, data: Mapping[str, Any]) -> list[str]:
        """Copy customer snapshot fields from *data*; everything else is ignored.

        Returns the names of the fields that actually changed.
        """
        changed = []
        for name in PATCHABLE_FIELDS:
            if name in data and getattr(self, name) != data[name]:
                setattr(self, name, data[name])
                changed.append(name)
        ignored = sorted(set(data) - set(PATCHABLE_FIELDS))
        if ignored:
            logger.warning("order.fill_ignored_fields", order_id=self.pk, fields=ignored)
        return changed

    # ------------------------------------------------------------------
    # Identifier generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXX``."""
        suffix = "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(5))
        return f"ORD-{timezone.localdate():%Y%m%d}-{suffix}"

    def _assign_order_number(self) -> None:
        for _ in range(ORDER_NUMBER_MAX_RETRIES):
            candidate = self.generate_order_number()
            if not Order.objects.filter(order_number=candidate).exists():
                self.order_number = candidate
                return
        raise RuntimeError(
            f"Failed to generate unique order_number after "
            f"{ORDER_NUMBER_MAX_RETRIES} attempts"
        )

    def _assign_access_token(self) -> None:
        for _ in range(ACCESS_TOKEN_MAX_RETRIES):
            candidate = issue_access_token()
            if not Order.objects.filter(access_token=candidate).exists():
                self.access_token = candidate
                return
        raise RuntimeError(
            f"Failed to generate unique access_token after "
            f"{ACCESS_TOKEN_MAX_RETRIES} attempts"
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if self._state.adding:
            self._reset_protected_fields_for_insert()
            super().save(*args, **kwargs)
            self._remember_protected_values()
            return

        self._restore_protected_values()
        update_fields = kwargs.get("update_fields")
        if update_fields is None:
            update_fields = [
                field.name
                for field in self._meta.concrete_fields
                if not field.primary_key
            ]
        kwargs["update_fields"] = [
            name for name in update_fields if name not in _PROTECTED_FIELDS
        ]
        super().save(*args, **kwargs)

    def _reset_protected_fields_for_insert(self) -> None:
        forged = [
            name
            for name in sorted(GUARDED_FIELDS)
            if getattr(self, name) not in (None, OrderStatus.PENDING)
        ]
        forged.extend(name for name in sorted(IMMUTABLE_FIELDS) if getattr(self, name))
        if forged:
            logger.warning("order.guarded_fields_ignored", fields=forged, path="insert")

        self.status = OrderStatus.PENDING
        for name in STATUS_TIMESTAMP_FIELDS.values():
            setattr(self, name, None)
        self.cancellation_reason = None
        self._assign_order_number()
        self._assign_access_token()

    def _restore_protected_values(self) -> None:
        persisted = getattr(self, "_persisted_protected", {})
        forged = [
            name for name, value in persisted.items() if getattr(self, name) != value
        ]
        if forged:
            logger.warning(
                "order.guarded_fields_ignored",
                order_id=self.pk,
                fields=sorted(forged),
                path="save",
            )
            for name in forged:
                setattr(self, name, persisted[name])

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    @property
    def item_count(self) -> int:
        return self.items.count()

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItemQuerySet(models.QuerySet):
    def update(self, **kwargs: Any) -> int:
        raise OrderValidationError("Order items are immutable once created.")


class OrderItem(TimeStampedModel):
    """Line item snapshot of a cart line at checkout time.

    ``product_name`` and ``unit_price`` are copied from the catalog and
    never follow later catalog changes; ``product_id`` is a plain reference
    that may outlive the product.  ``subtotal`` is ``quantity * unit_price``.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product_id: models.UUIDField = models.UUIDField(null=True, blank=True)
    product_name: models.CharField = models.CharField(max_length=255)
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(0)],
    )
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        editable=False,
    )

    objects = models.Manager.from_queryset(OrderItemQuerySet)()

    class Meta:
        db_table = "order_items"
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(unit_price__gte=0),
                name="order_items_unit_price_non_negative",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise OrderValidationError("Order items are immutable once created.")
        if self.quantity is None or self.quantity < 1:
            raise OrderValidationError("Quantity must be at least 1.")
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_name} x{self.quantity} ({self.subtotal})"
