"""Unit tests for Orders event handlers and their bus wiring."""

from __future__ import annotations

import logging

import pytest

from modules.orders.events import OrderCancelled, OrderCreated, OrderStatusChanged
from modules.orders.handlers import (
    OrderCancelledHandler,
    OrderCreatedHandler,
    OrderStatusChangedHandler,
    order_cancelled_handler,
    order_created_handler,
    order_status_changed_handler,
)
from shared.infrastructure.bus import event_bus

pytestmark = pytest.mark.unit


def test_order_created_handler_logs(caplog):
    event = OrderCreated(aggregate_id=1, order_number="ORD-20250101-AAAAA", customer_phone="x")

    with caplog.at_level(logging.INFO, logger="modules.orders.handlers"):
        OrderCreatedHandler().handle(event)

    assert any("order.notification.created" in r.getMessage() for r in caplog.records)


def test_status_changed_handler_logs_transition(caplog):
    event = OrderStatusChanged(
        aggregate_id=1,
        order_number="ORD-20250101-AAAAA",
        old_status="pending",
        new_status="confirmed",
    )

    with caplog.at_level(logging.INFO, logger="modules.orders.handlers"):
        OrderStatusChangedHandler().handle(event)

    messages = [r.getMessage() for r in caplog.records]
    assert any("order.notification.status_changed" in m and "confirmed" in m for m in messages)


def test_cancelled_handler_logs_reason(caplog):
    event = OrderCancelled(
        aggregate_id=1,
        order_number="ORD-20250101-AAAAA",
        old_status="pending",
        reason="Stok habis",
    )

    with caplog.at_level(logging.INFO, logger="modules.orders.handlers"):
        OrderCancelledHandler().handle(event)

    assert any("Stok habis" in r.getMessage() for r in caplog.records)


def test_handlers_are_subscribed_on_app_ready():
    handlers = event_bus._handlers

    assert order_created_handler in handlers[OrderCreated]
    assert order_status_changed_handler in handlers[OrderStatusChanged]
    assert order_cancelled_handler in handlers[OrderCancelled]
