"""Event handlers for Orders domain events.

Customer messaging (WhatsApp templates) lives outside this service; the
handlers here record the notification intent so the outbound integration
can pick it up from the log stream.
"""

from __future__ import annotations

import structlog

from modules.orders.events import OrderCancelled, OrderCreated, OrderStatusChanged
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        logger.info(
            "order.notification.created",
            order_id=str(event.aggregate_id),
            order_number=event.order_number,
            customer_phone=event.customer_phone,
        )


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        logger.info(
            "order.notification.status_changed",
            order_id=str(event.aggregate_id),
            order_number=event.order_number,
            old_status=event.old_status,
            new_status=event.new_status,
        )


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        logger.info(
            "order.notification.cancelled",
            order_id=str(event.aggregate_id),
            order_number=event.order_number,
            old_status=event.old_status,
            reason=event.reason,
        )


order_created_handler = OrderCreatedHandler()
order_status_changed_handler = OrderStatusChangedHandler()
order_cancelled_handler = OrderCancelledHandler()
