"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
Creation is wrapped in ``transaction.atomic()`` so the Order aggregate
(Order + OrderItems) is persisted atomically.

Staff status changes read the row with ``select_for_update()``; the
transition itself is a compare-and-swap on ``status`` (see ``Order``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import IntegrityError, OperationalError, transaction

from modules.orders.constants import ACCESS_TOKEN_MAX_RETRIES
from modules.orders.dtos import CreateOrderDTO
from modules.orders.exceptions import TransientStorageError
from modules.orders.models import Order, OrderItem
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

_IDENTIFIER_COLUMNS = ("access_token", "order_number")


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, dto: CreateOrderDTO) -> Order:
        """Create a pending order with its items atomically.

        Identifier collisions that slip past the pre-insert check (two
        checkouts racing for the same token) are retried with fresh values.
        """
        order = Order(
            user_id=dto.user_id,
            customer_name=dto.customer.customer_name,
            customer_phone=dto.customer.customer_phone,
            customer_address=dto.customer.customer_address,
            notes=dto.customer.notes,
            subtotal=dto.subtotal,
            delivery_fee=dto.delivery_fee,
            total=dto.total,
        )
        self._insert_with_retry(order)

        OrderItem.objects.bulk_create(
            [
                OrderItem(
                    order=order,
                    product_id=item.product_id,
                    product_name=item.product_name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    subtotal=item.subtotal,
                )
                for item in dto.items
            ]
        )

        log = logger.bind(
            order_id=order.pk,
            order_number=order.order_number,
            item_count=len(dto.items),
        )
        log.info("order.created", total=str(order.total))
        return order

    def _insert_with_retry(self, order: Order) -> None:
        for attempt in range(1, ACCESS_TOKEN_MAX_RETRIES + 1):
            try:
                with transaction.atomic():
                    order.save()
                return
            except IntegrityError as exc:
                message = str(exc)
                if not any(column in message for column in _IDENTIFIER_COLUMNS):
                    raise
                if attempt == ACCESS_TOKEN_MAX_RETRIES:
                    raise
                logger.warning("order.identifier_collision", attempt=attempt)
                order.order_number = ""
                order.access_token = ""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: int) -> Optional[Order]:
        """Retrieve an order with its items, or ``None`` for unknown/invalid IDs."""
        try:
            return Order.objects.prefetch_related("items").filter(id=id).first()
        except (ValueError, TypeError, ValidationError):
            return None
        except OperationalError as exc:
            raise TransientStorageError(f"Could not read order {id}.") from exc

    def get_for_update(self, id: int) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Must be called inside ``transaction.atomic()``.
        """
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, TypeError, ValidationError):
            return None
        except OperationalError as exc:
            raise TransientStorageError(f"Could not lock order {id}.") from exc

    def get_by_access_token(self, token: str) -> Optional[Order]:
        try:
            return (
                Order.objects.prefetch_related("items")
                .filter(access_token=token)
                .first()
            )
        except OperationalError as exc:
            raise TransientStorageError("Could not read order by access token.") from exc

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters (e.g. ``status``, ``user_id``)."""
        queryset = Order.objects.prefetch_related("items")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_expired_pending(self, cutoff: datetime) -> List[Order]:
        try:
            return list(Order.objects.expired_pending(cutoff).order_by("created_at"))
        except OperationalError as exc:
            raise TransientStorageError("Could not scan pending orders.") from exc

    def pending_summary(self, limit: int) -> tuple[List[Order], int]:
        pending = Order.objects.pending()
        return list(pending.order_by("-created_at")[:limit]), pending.count()

    # ------------------------------------------------------------------
    # Save (IRepository contract)
    # ------------------------------------------------------------------

    def save(self, entity: Order) -> Order:
        """Persist the patchable fields of an order.

        Status and identifiers are ignored here; they only change through
        the transition methods.
        """
        try:
            entity.save()
        except OperationalError as exc:
            raise TransientStorageError(f"Could not save order {entity.pk}.") from exc
        logger.info("order.saved", order_id=entity.pk)
        return entity
