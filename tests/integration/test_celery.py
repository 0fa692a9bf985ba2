"""Integration tests for the Celery setup and the auto-cancel task."""

from datetime import timedelta

import pytest
from freezegun import freeze_time

from modules.orders.constants import OrderStatus

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def _celery_eager(settings):
    """Run tasks synchronously in the test process."""
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True


class TestCeleryConfig:
    def test_celery_app_is_importable(self):
        from config.celery import app

        assert app.main == "storefront"

    def test_celery_app_exported_from_init(self):
        from config import celery_app

        assert celery_app.main == "storefront"

    def test_celery_serializer_is_json(self, settings):
        assert settings.CELERY_TASK_SERIALIZER == "json"
        assert settings.CELERY_RESULT_SERIALIZER == "json"
        assert settings.CELERY_ACCEPT_CONTENT == ["json"]

    def test_celery_timezone_matches_django(self, settings):
        assert settings.CELERY_TIMEZONE == settings.TIME_ZONE

    def test_auto_cancel_is_scheduled_every_minute(self, settings):
        entry = settings.CELERY_BEAT_SCHEDULE["auto-cancel-pending-orders"]

        assert entry["task"] == "orders.auto_cancel_pending_orders"
        assert entry["schedule"] == 60.0
        assert entry["options"]["expires"] < entry["schedule"]

    def test_task_is_registered(self):
        from config.celery import app
        from modules.orders import tasks  # noqa: F401

        assert "orders.auto_cancel_pending_orders" in app.tasks


class TestAutoCancelTask:
    def test_task_cancels_stale_orders(self, make_order):
        from django.utils import timezone

        from modules.orders.tasks import auto_cancel_pending_orders

        with freeze_time(timezone.now() - timedelta(minutes=45)):
            stale = make_order()
        fresh = make_order()

        result = auto_cancel_pending_orders.delay().get()

        stale.refresh_from_db()
        fresh.refresh_from_db()
        assert stale.status == OrderStatus.CANCELLED
        assert fresh.status == OrderStatus.PENDING
        assert result["cancelled"] == 1

    def test_task_direct_call_when_disabled(self):
        from modules.orders.tasks import auto_cancel_pending_orders
        from modules.store.services import StoreSettingService

        StoreSettingService().update_settings({"auto_cancel_enabled": False})

        assert auto_cancel_pending_orders()["skipped"] == "disabled"
