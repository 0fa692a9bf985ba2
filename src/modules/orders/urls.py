"""Order URL configuration.

``urlpatterns`` is mounted under ``api/v1/``; ``public_urlpatterns`` at
the site root, for the links sent to customers.
"""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from modules.orders.views import OrderViewSet, PublicOrderVerifyView, PublicOrderView

router = DefaultRouter(trailing_slash=True)
router.register("orders", OrderViewSet, basename="order")

urlpatterns = router.urls

public_urlpatterns = [
    path("orders/<str:access_token>/", PublicOrderView.as_view(), name="order-public"),
    path(
        "orders/<str:access_token>/verify/",
        PublicOrderVerifyView.as_view(),
        name="order-public-verify",
    ),
]
