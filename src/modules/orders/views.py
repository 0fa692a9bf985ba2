"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into appropriate
HTTP status codes; the view never swallows generic exceptions.

Back office (``/api/v1/orders/``) is keyed by the internal id.  Customers
use ``/orders/<access_token>/`` and must pass the phone gate.
"""

from __future__ import annotations

from django.shortcuts import redirect
from django.urls import reverse
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.core.permissions import IsStaff
from modules.orders.dtos import UpdateOrderDetailsDTO
from modules.orders.exceptions import (
    AccessDenied,
    AccessExpired,
    IllegalTransition,
    OrderNotFound,
    OrderValidationError,
    TransientStorageError,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.policies import Actor, evaluate, is_access_expired
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    OrderListSerializer,
    OrderSerializer,
    PendingOrderSerializer,
    PublicOrderSerializer,
    UpdateOrderDetailsSerializer,
    UpdateOrderStatusSerializer,
    VerifyOrderPhoneSerializer,
)
from modules.orders.services import OrderService
from modules.orders.throttles import (
    OrderVerifyBurstThrottle,
    OrderVerifySustainedThrottle,
)

NOT_FOUND = {"detail": "Order not found."}
STORAGE_UNAVAILABLE = {"detail": "Order storage is temporarily unavailable."}
PHONE_MISMATCH = {"customer_phone": ["Nomor telepon tidak sesuai dengan pesanan."]}
LINK_EXPIRED = "Pesanan ini sudah selesai atau dibatalkan dan tidak dapat diakses lagi."

_STAFF_ACTIONS = {"partial_update", "update_status", "pending"}


def _build_service() -> OrderService:
    return OrderService(order_repository=OrderDjangoRepository())


class OrderViewSet(GenericViewSet):
    """ViewSet for back-office Order operations.

    Does **not** extend ``ModelViewSet``: writes go through the
    service layer, which only exposes the guarded transitions.
    """

    queryset = Order.objects.all()
    lookup_value_regex = r"\d+"
    filterset_class = OrderFilter
    ordering_fields = ["created_at", "total", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = _build_service()

    def get_permissions(self):
        if self.action in _STAFF_ACTIONS:
            return [IsStaff()]
        return [IsAuthenticated()]

    def get_throttles(self) -> list[BaseThrottle]:
        """Throttle scope per action."""
        throttle_scope: str | None
        if self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_queryset(self):
        return Order.objects.visible_to(self.request.user)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Staff see every order, customers only their own.  Filtering
        (status, date range, total range, search) is handled by
        ``OrderFilter``; results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/

        Orders the caller may not view answer 404, like missing ones.
        """
        try:
            order = self._service.get_order(int(pk))
        except (OrderNotFound, TypeError, ValueError):
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except TransientStorageError:
            return Response(STORAGE_UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        if not evaluate(Actor.from_user(request.user), order).view:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Customer details
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/

        Edits the customer snapshot.  Status, timestamps and the
        cancellation reason in the body are ignored.
        """
        serializer = UpdateOrderDetailsSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        dto = UpdateOrderDetailsDTO(**serializer.validated_data)

        try:
            order = self._service.update_details(int(pk), dto)
        except (OrderNotFound, TypeError, ValueError):
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except TransientStorageError:
            return Response(STORAGE_UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Status Update
    # ------------------------------------------------------------------

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/status/

        ``{"status": "...", "cancellation_reason": "..."}``; the reason is
        required when cancelling.  Illegal transitions answer 409.
        """
        serializer = UpdateOrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = self._service.update_status(
                order_id=int(pk),
                new_status=data["status"],
                cancellation_reason=data.get("cancellation_reason"),
            )
        except (OrderNotFound, TypeError, ValueError):
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except OrderValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except IllegalTransition as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        except TransientStorageError:
            return Response(STORAGE_UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Pending alerts
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"])
    def pending(self, request: Request) -> Response:
        """GET /api/v1/orders/pending/

        Newest pending orders for the back-office notification badge.
        """
        alerts = self._service.pending_alerts()
        serializer = PendingOrderSerializer(
            alerts.orders, many=True, context={"now": alerts.generated_at}
        )
        return Response({"orders": serializer.data, "total_pending": alerts.total_pending})


# ---------------------------------------------------------------------------
# Public (token) access
# ---------------------------------------------------------------------------


class PublicOrderView(APIView):
    """GET /orders/{access_token}/

    Unknown tokens get the same verification prompt as valid ones.
    """

    permission_classes = [AllowAny]

    def get(self, request: Request, access_token: str) -> Response:
        service = _build_service()
        try:
            order = service.get_by_access_token(access_token)
        except TransientStorageError:
            return Response(STORAGE_UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        if order is not None:
            if Actor.from_user(request.user).is_staff:
                return redirect(reverse("order-detail", kwargs={"pk": order.pk}))
            if is_access_expired(order):
                return Response(
                    {
                        "expired": True,
                        "order_number": order.order_number,
                        "detail": LINK_EXPIRED,
                    }
                )
        return Response({"expired": False, "verification_required": True})


class PublicOrderVerifyView(APIView):
    """POST /orders/{access_token}/verify/

    A wrong phone and an unknown token produce the same 400 body.
    """

    permission_classes = [AllowAny]
    throttle_classes = [OrderVerifyBurstThrottle, OrderVerifySustainedThrottle]

    def post(self, request: Request, access_token: str) -> Response:
        serializer = VerifyOrderPhoneSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        service = _build_service()
        try:
            order = service.open_public_order(
                access_token, serializer.validated_data["customer_phone"]
            )
        except AccessExpired as exc:
            return Response(
                {
                    "expired": True,
                    "order_number": exc.order_number,
                    "detail": LINK_EXPIRED,
                },
                status=status.HTTP_400_BAD_REQUEST,
            )
        except AccessDenied:
            return Response(PHONE_MISMATCH, status=status.HTTP_400_BAD_REQUEST)
        except TransientStorageError:
            return Response(STORAGE_UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response(PublicOrderSerializer(order).data)
