"""Unit tests for the Order status state machine.

Covers:
- Model-level FSM helpers (can_transition_to, is_terminal).
- All valid transitions and the timestamp each one stamps.
- Invalid transitions (skip states, reverse, terminal states).
- Compare-and-swap against a concurrently changed row.
- Storage failures surface as TransientStorageError.
- Domain events recorded on the aggregate.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.db import OperationalError
from django.utils import timezone

from modules.orders.constants import (
    STATUS_TIMESTAMP_FIELDS,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
)
from modules.orders.events import OrderCancelled, OrderStatusChanged
from modules.orders.exceptions import IllegalTransition, TransientStorageError
from modules.orders.models import Order, OrderQuerySet

pytestmark = pytest.mark.unit

FORWARD = [
    ("confirm", OrderStatus.CONFIRMED),
    ("start_preparing", OrderStatus.PREPARING),
    ("mark_ready", OrderStatus.READY),
    ("mark_delivered", OrderStatus.DELIVERED),
]


def _advance(order: Order, until: str) -> Order:
    for method, target in FORWARD:
        if order.status == until:
            break
        getattr(order, method)()
    return order


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestTransitionGraph:
    def test_terminal_states_have_no_exits(self):
        for state in TERMINAL_STATES:
            assert VALID_TRANSITIONS[state] == set()

    def test_every_non_terminal_state_can_cancel(self):
        for state, targets in VALID_TRANSITIONS.items():
            if state not in TERMINAL_STATES:
                assert OrderStatus.CANCELLED in targets

    def test_can_transition_to(self, pending_order):
        assert pending_order.can_transition_to(OrderStatus.CONFIRMED)
        assert not pending_order.can_transition_to(OrderStatus.READY)
        assert not pending_order.is_terminal


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestValidTransitions:
    def test_full_lifecycle_stamps_ordered_timestamps(self, pending_order):
        for method, target in FORWARD:
            getattr(pending_order, method)()
            assert pending_order.status == target

        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.DELIVERED
        assert pending_order.is_terminal
        assert (
            pending_order.confirmed_at
            <= pending_order.preparing_at
            <= pending_order.ready_at
            <= pending_order.delivered_at
        )
        assert pending_order.cancelled_at is None

    @pytest.mark.parametrize("method,target", FORWARD)
    def test_transition_stamps_matching_field(self, pending_order, method, target):
        previous = [m for m, t in FORWARD[: FORWARD.index((method, target))]]
        for name in previous:
            getattr(pending_order, name)()

        getattr(pending_order, method)()
        pending_order.refresh_from_db()

        assert pending_order.status == target
        assert getattr(pending_order, STATUS_TIMESTAMP_FIELDS[target]) is not None

    @pytest.mark.parametrize(
        "state",
        [
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.PREPARING,
            OrderStatus.READY,
        ],
    )
    def test_cancel_from_any_non_terminal_state(self, pending_order, state):
        _advance(pending_order, state)

        pending_order.cancel(reason="Pelanggan membatalkan")
        pending_order.refresh_from_db()

        assert pending_order.status == OrderStatus.CANCELLED
        assert pending_order.cancelled_at is not None
        assert pending_order.cancellation_reason == "Pelanggan membatalkan"

    def test_cancel_without_reason_stores_null(self, pending_order):
        pending_order.cancel()
        pending_order.refresh_from_db()

        assert pending_order.cancellation_reason is None

    def test_explicit_now_is_used(self, pending_order):
        at = timezone.now() + timedelta(minutes=3)
        pending_order.confirm(now=at)
        pending_order.refresh_from_db()

        assert pending_order.confirmed_at == at

    def test_stamp_never_precedes_earlier_stamp(self, pending_order):
        later = timezone.now() + timedelta(hours=1)
        pending_order.confirm(now=later)
        pending_order.start_preparing(now=later - timedelta(minutes=5))

        assert pending_order.preparing_at == later


# ---------------------------------------------------------------------------
# Illegal transitions
# ---------------------------------------------------------------------------


class TestInvalidTransitions:
    def test_skipping_confirmation_is_rejected(self, pending_order):
        with pytest.raises(IllegalTransition):
            pending_order.start_preparing()

        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.PENDING
        assert pending_order.preparing_at is None

    def test_cannot_deliver_from_pending(self, pending_order):
        with pytest.raises(IllegalTransition):
            pending_order.mark_delivered()

    def test_cannot_go_backwards(self, pending_order):
        _advance(pending_order, OrderStatus.READY)

        with pytest.raises(IllegalTransition):
            pending_order.start_preparing()

    def test_confirm_twice_is_rejected(self, pending_order):
        pending_order.confirm()
        first = pending_order.confirmed_at

        with pytest.raises(IllegalTransition):
            pending_order.confirm()

        pending_order.refresh_from_db()
        assert pending_order.confirmed_at == first

    @pytest.mark.parametrize("terminal", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    def test_terminal_states_reject_everything(self, pending_order, terminal):
        if terminal == OrderStatus.CANCELLED:
            pending_order.cancel(reason="x")
        else:
            _advance(pending_order, OrderStatus.DELIVERED)

        for method, _ in FORWARD:
            with pytest.raises(IllegalTransition):
                getattr(pending_order, method)()
        with pytest.raises(IllegalTransition):
            pending_order.cancel(reason="again")

    def test_unsaved_order_cannot_transition(self):
        with pytest.raises(IllegalTransition):
            Order(customer_name="x").confirm()


# ---------------------------------------------------------------------------
# Concurrency and storage failures
# ---------------------------------------------------------------------------


class TestCompareAndSwap:
    def test_stale_instance_loses_the_race(self, pending_order):
        stale = Order.objects.get(pk=pending_order.pk)
        pending_order.confirm()

        with pytest.raises(IllegalTransition):
            stale.cancel(reason="Terlambat")

        assert stale.status == OrderStatus.PENDING
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.CONFIRMED
        assert pending_order.cancelled_at is None

    def test_operational_error_is_transient(self, pending_order):
        with patch.object(
            OrderQuerySet, "_transition_update", side_effect=OperationalError("locked")
        ):
            with pytest.raises(TransientStorageError):
                pending_order.confirm()

        assert pending_order.status == OrderStatus.PENDING
        assert pending_order.confirmed_at is None
        assert pending_order.domain_events == []


# ---------------------------------------------------------------------------
# Domain events
# ---------------------------------------------------------------------------


class TestTransitionEvents:
    def test_status_change_records_event(self, pending_order):
        pending_order.confirm()

        [event] = pending_order.domain_events
        assert isinstance(event, OrderStatusChanged)
        assert event.aggregate_id == pending_order.pk
        assert event.old_status == OrderStatus.PENDING
        assert event.new_status == OrderStatus.CONFIRMED

    def test_cancel_records_cancel_event(self, pending_order):
        pending_order.cancel(reason="Stok habis")

        [event] = pending_order.domain_events
        assert isinstance(event, OrderCancelled)
        assert event.reason == "Stok habis"
        assert event.order_number == pending_order.order_number

    def test_failed_transition_records_nothing(self, pending_order):
        with pytest.raises(IllegalTransition):
            pending_order.mark_ready()

        assert pending_order.domain_events == []
