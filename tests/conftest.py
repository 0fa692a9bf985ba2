from __future__ import annotations

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from tests.factories import FixedClock, build_order_dto

User = get_user_model()


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle counters and the sweep lock live in the cache."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def staff_user():
    return User.objects.create_user(username="kasir", password="testpass123", is_staff=True)


@pytest.fixture()
def customer_user():
    return User.objects.create_user(username="pelanggan", password="testpass123")


@pytest.fixture()
def staff_client(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture()
def customer_client(customer_user):
    client = APIClient()
    client.force_authenticate(user=customer_user)
    return client


@pytest.fixture()
def clock():
    return FixedClock(timezone.now())


@pytest.fixture()
def make_order():
    """Factory persisting a pending order through the repository."""

    def _make(**overrides) -> Order:
        return OrderDjangoRepository().create(build_order_dto(**overrides))

    return _make


@pytest.fixture()
def pending_order(make_order):
    return make_order()
