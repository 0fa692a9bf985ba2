"""Order service layer (Use Cases).

Orchestrates order creation, staff status changes, customer detail
edits and the public token + phone flow.  Write operations are atomic;
the service defines the unit-of-work boundary and publishes the
aggregate's domain events once that unit of work has committed.

Business rules enforced:
- Orders start ``pending`` with a fresh order number and access token.
- Status changes only through the named transitions, under a row lock.
- Operator cancellations must carry a reason.
- Public links require the phone gate and stop working once the order
  is delivered or cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.db import transaction

from modules.orders import phone
from modules.orders.constants import PENDING_ALERT_LIMIT, OrderStatus
from modules.orders.events import OrderCreated
from modules.orders.exceptions import (
    AccessDenied,
    AccessExpired,
    IllegalTransition,
    OrderNotFound,
    OrderValidationError,
)
from modules.orders.policies import ANONYMOUS, evaluate, is_access_expired
from modules.orders.tokens import is_well_formed
from shared.infrastructure.bus import event_bus as default_event_bus
from shared.infrastructure.clock import system_clock

if TYPE_CHECKING:
    from modules.orders.dtos import CreateOrderDTO, UpdateOrderDetailsDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from shared.domain.bus import IEventBus
    from shared.domain.clock import Clock
    from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)

_TRANSITION_METHODS = {
    OrderStatus.CONFIRMED: "confirm",
    OrderStatus.PREPARING: "start_preparing",
    OrderStatus.READY: "mark_ready",
    OrderStatus.DELIVERED: "mark_delivered",
}


@dataclass(frozen=True)
class PendingAlerts:
    orders: List[Order]
    total_pending: int
    generated_at: datetime


class OrderService:
    """Application service for Order use-cases.

    Receives the repository, clock and event bus via constructor injection.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        clock: Optional[Clock] = None,
        event_bus: Optional[IEventBus] = None,
    ) -> None:
        self._order_repo = order_repository
        self._clock = clock or system_clock
        self._event_bus = event_bus or default_event_bus

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Persist a new pending order with its item snapshots."""
        order = self._order_repo.create(dto)
        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.pk,
                order_number=order.order_number,
                customer_phone=order.customer_phone,
            )
        )
        self._publish_after_commit(order)
        return self._order_repo.get_by_id(order.pk) or order

    def confirm(self, order_id: int) -> Order:
        return self._transition(order_id, OrderStatus.CONFIRMED)

    def start_preparing(self, order_id: int) -> Order:
        return self._transition(order_id, OrderStatus.PREPARING)

    def mark_ready(self, order_id: int) -> Order:
        return self._transition(order_id, OrderStatus.READY)

    def mark_delivered(self, order_id: int) -> Order:
        return self._transition(order_id, OrderStatus.DELIVERED)

    def cancel_order(self, order_id: int, reason: Optional[str] = None) -> Order:
        return self._transition(order_id, OrderStatus.CANCELLED, reason=reason)

    def update_status(
        self,
        order_id: int,
        new_status: str,
        cancellation_reason: Optional[str] = None,
    ) -> Order:
        """Staff entry point: move an order to *new_status*.

        Raises:
            OrderValidationError: unknown status, or a cancellation without reason.
            OrderNotFound: order does not exist.
            IllegalTransition: the lifecycle does not allow the move.
        """
        if new_status not in OrderStatus.values:
            raise OrderValidationError(f"Unknown status {new_status!r}.")
        if new_status == OrderStatus.CANCELLED:
            reason = (cancellation_reason or "").strip()
            if not reason:
                raise OrderValidationError("A cancellation reason is required.")
            return self.cancel_order(order_id, reason=reason)
        return self._transition(order_id, new_status)

    @transaction.atomic
    def _transition(
        self, order_id: int, target: str, reason: Optional[str] = None
    ) -> Order:
        order = self._order_repo.get_for_update(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(
            order_id=order.pk,
            current_status=order.status,
            new_status=target,
        )
        now = self._clock.now()
        try:
            if target == OrderStatus.CANCELLED:
                order.cancel(reason=reason, now=now)
            elif target in _TRANSITION_METHODS:
                getattr(order, _TRANSITION_METHODS[target])(now=now)
            else:
                raise IllegalTransition(f"No transition leads to {target}.")
        except IllegalTransition:
            log.warning("order.invalid_transition")
            raise

        log.info(f"order.{target}")
        self._publish_after_commit(order)
        return self._order_repo.get_by_id(order.pk) or order

    @transaction.atomic
    def update_details(self, order_id: int, dto: UpdateOrderDetailsDTO) -> Order:
        """Patch the customer snapshot; never touches status or identifiers."""
        order = self._order_repo.get_for_update(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        changed = order.fill(dto.changes())
        if changed:
            self._order_repo.save(order)
            logger.info("order.details_updated", order_id=order.pk, fields=changed)
        return self._order_repo.get_by_id(order.pk) or order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: int) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def get_by_access_token(self, token: str) -> Optional[Order]:
        if not is_well_formed(token):
            return None
        return self._order_repo.get_by_access_token(token)

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Return a list of orders, optionally filtered."""
        return self._order_repo.list(filters)

    def pending_alerts(self, limit: int = PENDING_ALERT_LIMIT) -> PendingAlerts:
        orders, total = self._order_repo.pending_summary(limit)
        return PendingAlerts(
            orders=orders, total_pending=total, generated_at=self._clock.now()
        )

    def open_public_order(self, token: str, submitted_phone: str) -> Order:
        """Resolve a public link after the phone gate.

        Raises:
            AccessExpired: the order is delivered or cancelled.
            AccessDenied: unknown token or phone mismatch (indistinguishable).
        """
        order = self.get_by_access_token(token)
        if order is None:
            logger.info("order.public_access_denied", reason="unknown_token")
            raise AccessDenied()
        if is_access_expired(order):
            raise AccessExpired(order.order_number)

        verified = phone.verify(order, submitted_phone)
        if not evaluate(ANONYMOUS, order, token, phone_verified=verified).view:
            logger.info(
                "order.public_access_denied", order_id=order.pk, reason="phone_mismatch"
            )
            raise AccessDenied()

        logger.info("order.public_access_granted", order_id=order.pk)
        return order

    # ------------------------------------------------------------------
    # Domain events
    # ------------------------------------------------------------------

    def _publish_after_commit(self, order: Order) -> None:
        events = order.pull_domain_events()
        if events:
            transaction.on_commit(lambda: publish_events(self._event_bus, events))


def publish_events(bus: IEventBus, events: List[DomainEvent]) -> None:
    """Deliver *events*; a failing handler is logged and never propagates."""
    for event in events:
        try:
            bus.publish(event)
        except Exception:
            logger.exception(
                "order.event.handler_failed",
                event_name=event.event_name,
                order_id=event.aggregate_id,
            )
