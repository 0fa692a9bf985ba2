"""Integration tests for the ``auto_cancel_orders`` management command."""

from __future__ import annotations

from datetime import timedelta
from io import StringIO

import pytest
from django.core.cache import cache
from django.core.management import call_command
from django.utils import timezone
from freezegun import freeze_time

from modules.orders.constants import OrderStatus
from modules.orders.sweep import LOCK_KEY
from modules.store.services import StoreSettingService

pytestmark = pytest.mark.integration


@pytest.fixture()
def stale_order(make_order):
    with freeze_time(timezone.now() - timedelta(minutes=40)):
        return make_order()


def _run(*args):
    out, err = StringIO(), StringIO()
    call_command("auto_cancel_orders", *args, stdout=out, stderr=err)
    return out.getvalue(), err.getvalue()


class TestAutoCancelCommand:
    def test_cancels_stale_orders(self, stale_order):
        out, _ = _run()

        stale_order.refresh_from_db()
        assert stale_order.status == OrderStatus.CANCELLED
        assert "Threshold: 30 minutes" in out
        assert "Cancelled 1 order(s), 0 failed." in out

    def test_dry_run_lists_without_cancelling(self, stale_order):
        out, _ = _run("--dry-run")

        stale_order.refresh_from_db()
        assert stale_order.status == OrderStatus.PENDING
        assert f"would cancel {stale_order.order_number}" in out
        assert "Dry run: 1 order(s) would be cancelled." in out

    def test_disabled(self, stale_order):
        StoreSettingService().update_settings({"auto_cancel_enabled": False})

        out, _ = _run()

        stale_order.refresh_from_db()
        assert stale_order.status == OrderStatus.PENDING
        assert "disabled" in out

    def test_locked(self, stale_order):
        cache.add(LOCK_KEY, "other", timeout=300)

        out, _ = _run()

        stale_order.refresh_from_db()
        assert stale_order.status == OrderStatus.PENDING
        assert "in progress" in out
