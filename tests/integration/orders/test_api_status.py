"""Integration tests for PATCH /api/v1/orders/{id}/status/."""

from __future__ import annotations

import pytest

from modules.orders.constants import OrderStatus

pytestmark = pytest.mark.integration


def _url(order) -> str:
    return f"/api/v1/orders/{order.pk}/status/"


class TestStatusTransitions:
    def test_confirm(self, staff_client, pending_order):
        response = staff_client.patch(_url(pending_order), {"status": "confirmed"}, format="json")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "confirmed"
        assert body["status_label"] == OrderStatus.CONFIRMED.label
        assert body["confirmed_at"] is not None

    def test_walks_the_whole_lifecycle(self, staff_client, pending_order):
        for target in ["confirmed", "preparing", "ready", "delivered"]:
            response = staff_client.patch(_url(pending_order), {"status": target}, format="json")
            assert response.status_code == 200, response.content

        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.DELIVERED

    def test_skip_returns_409(self, staff_client, pending_order):
        response = staff_client.patch(_url(pending_order), {"status": "ready"}, format="json")

        assert response.status_code == 409
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.PENDING

    def test_terminal_order_returns_409(self, staff_client, pending_order):
        pending_order.cancel(reason="Tutup")

        response = staff_client.patch(_url(pending_order), {"status": "confirmed"}, format="json")

        assert response.status_code == 409

    def test_unknown_status_returns_400(self, staff_client, pending_order):
        response = staff_client.patch(_url(pending_order), {"status": "shipped"}, format="json")

        assert response.status_code == 400
        assert "status" in response.json()


class TestCancellation:
    def test_cancel_with_reason(self, staff_client, pending_order):
        response = staff_client.patch(
            _url(pending_order),
            {"status": "cancelled", "cancellation_reason": "Bahan habis"},
            format="json",
        )

        assert response.status_code == 200
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.CANCELLED
        assert pending_order.cancellation_reason == "Bahan habis"
        assert pending_order.cancelled_at is not None

    @pytest.mark.parametrize("payload", [{}, {"cancellation_reason": ""}, {"cancellation_reason": "  "}])
    def test_missing_reason_returns_400_without_mutation(self, staff_client, pending_order, payload):
        response = staff_client.patch(
            _url(pending_order), {"status": "cancelled", **payload}, format="json"
        )

        assert response.status_code == 400
        assert "cancellation_reason" in response.json()
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.PENDING
        assert pending_order.cancelled_at is None

    def test_reason_too_long(self, staff_client, pending_order):
        response = staff_client.patch(
            _url(pending_order),
            {"status": "cancelled", "cancellation_reason": "x" * 1001},
            format="json",
        )

        assert response.status_code == 400


class TestStatusPermissions:
    def test_owner_cannot_change_status(self, customer_client, customer_user, make_order):
        order = make_order(user_id=customer_user.pk)

        response = customer_client.patch(_url(order), {"status": "confirmed"}, format="json")

        assert response.status_code == 403
        order.refresh_from_db()
        assert order.status == OrderStatus.PENDING

    def test_anonymous_gets_401(self, api_client, pending_order):
        response = api_client.patch(_url(pending_order), {"status": "confirmed"}, format="json")

        assert response.status_code == 401

    def test_missing_order_returns_404(self, staff_client):
        response = staff_client.patch(
            "/api/v1/orders/987654/status/", {"status": "confirmed"}, format="json"
        )

        assert response.status_code == 404
