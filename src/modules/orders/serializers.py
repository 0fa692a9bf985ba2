"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from django.utils import timezone
from rest_framework import serializers

from modules.orders import phone
from modules.orders.constants import (
    CANCELLATION_REASON_MAX_LENGTH,
    OrderStatus,
)
from modules.orders.models import Order, OrderItem

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class UpdateOrderStatusSerializer(serializers.Serializer):
    """Validates the staff status update payload.

    A cancellation without a reason is rejected here, before the
    service is called.
    """

    status = serializers.ChoiceField(choices=OrderStatus.choices)
    cancellation_reason = serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        max_length=CANCELLATION_REASON_MAX_LENGTH,
    )

    def validate(self, attrs):
        if attrs["status"] == OrderStatus.CANCELLED and not (
            attrs.get("cancellation_reason") or ""
        ).strip():
            raise serializers.ValidationError(
                {"cancellation_reason": "Alasan pembatalan wajib diisi."}
            )
        return attrs


class UpdateOrderDetailsSerializer(serializers.Serializer):
    """Customer snapshot fields; anything else in the body is dropped."""

    customer_name = serializers.CharField(required=False, max_length=255)
    customer_phone = serializers.CharField(required=False, max_length=20)
    customer_address = serializers.CharField(
        required=False, allow_blank=True, allow_null=True
    )
    notes = serializers.CharField(required=False, allow_blank=True)


class VerifyOrderPhoneSerializer(serializers.Serializer):
    customer_phone = serializers.CharField(max_length=30)

    def validate_customer_phone(self, value: str) -> str:
        compact = "".join(value.split()).replace("-", "")
        if not phone.input_pattern().match(compact):
            raise serializers.ValidationError("Format nomor telepon tidak valid.")
        return value


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "quantity",
            "unit_price",
            "subtotal",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for the back office, with nested items."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_label = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "access_token",
            "user",
            "customer_name",
            "customer_phone",
            "customer_address",
            "notes",
            "subtotal",
            "delivery_fee",
            "total",
            "status",
            "status_label",
            "confirmed_at",
            "preparing_at",
            "ready_at",
            "delivered_at",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
            "updated_at",
            "items",
        ]
        read_only_fields = fields


class PublicOrderSerializer(serializers.ModelSerializer):
    """What a customer sees behind a verified public link.

    No internal id, owner or token.
    """

    items = OrderItemSerializer(many=True, read_only=True)
    status_label = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Order
        fields = [
            "order_number",
            "customer_name",
            "customer_phone",
            "customer_address",
            "notes",
            "subtotal",
            "delivery_fee",
            "total",
            "status",
            "status_label",
            "confirmed_at",
            "preparing_at",
            "ready_at",
            "delivered_at",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
            "items",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    status_label = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_name",
            "customer_phone",
            "status",
            "status_label",
            "total",
            "created_at",
        ]
        read_only_fields = fields


class PendingOrderSerializer(serializers.ModelSerializer):
    waiting_minutes = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_name",
            "total",
            "created_at",
            "waiting_minutes",
        ]
        read_only_fields = fields

    def get_waiting_minutes(self, obj: Order) -> int:
        now = self.context.get("now") or timezone.now()
        return max(0, int((now - obj.created_at).total_seconds() // 60))
