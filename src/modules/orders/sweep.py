"""Auto-cancel sweep for orders nobody confirmed in time.

Every run re-reads the store settings.  When enabled, each ``pending``
order created before ``now - auto_cancel_minutes`` is cancelled with a
system reason.  Cancellations are independent: a failing order is logged
and the sweep moves on.

Runs never overlap.  The lock is a cache key created with ``cache.add``
and a TTL (``AUTO_CANCEL_LOCK_TIMEOUT``, 300 s by default).  A run that
dies without releasing it blocks later runs until the TTL elapses, after
which the next tick proceeds normally.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Iterator, List, Optional

import structlog
from django.conf import settings
from django.core.cache import cache
from django.db import transaction

from modules.orders.constants import AUTO_CANCEL_REASON_TEMPLATE
from modules.orders.exceptions import IllegalTransition, TransientStorageError
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import publish_events
from modules.store.services import StoreSettingService
from shared.infrastructure.bus import event_bus as default_event_bus
from shared.infrastructure.clock import system_clock

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from shared.domain.bus import IEventBus
    from shared.domain.clock import Clock

logger = structlog.get_logger(__name__)

LOCK_KEY = "orders:auto-cancel:lock"
DEFAULT_LOCK_TIMEOUT = 300


@dataclass
class SweepResult:
    """Outcome of one sweep invocation."""

    skipped: Optional[str] = None
    dry_run: bool = False
    minutes: Optional[int] = None
    cutoff: Optional[datetime] = None
    candidates: List[str] = field(default_factory=list)
    cancelled: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def ran(self) -> bool:
        return self.skipped is None

    def as_dict(self) -> dict:
        return {
            "skipped": self.skipped,
            "dry_run": self.dry_run,
            "minutes": self.minutes,
            "cutoff": self.cutoff.isoformat() if self.cutoff else None,
            "candidates": len(self.candidates),
            "cancelled": len(self.cancelled),
            "failed": len(self.failed),
        }


@contextmanager
def sweep_lock(
    key: str = LOCK_KEY, timeout: Optional[int] = None
) -> Iterator[bool]:
    """Yield ``True`` if this process now owns the sweep lock.

    Only the owner deletes the key on exit; a lock that already expired
    and was taken by another run is left alone.
    """
    owner = uuid.uuid4().hex
    if timeout is None:
        timeout = getattr(settings, "AUTO_CANCEL_LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT)
    acquired = cache.add(key, owner, timeout=timeout)
    try:
        yield acquired
    finally:
        if acquired and cache.get(key) == owner:
            cache.delete(key)


class AutoCancelSweep:
    """Cancels stale pending orders.

    Collaborators are injectable; defaults are the Django-backed ones.
    """

    def __init__(
        self,
        order_repository: Optional[IOrderRepository] = None,
        settings_service: Optional[StoreSettingService] = None,
        clock: Optional[Clock] = None,
        event_bus: Optional[IEventBus] = None,
    ) -> None:
        self._order_repo = order_repository or OrderDjangoRepository()
        self._settings = settings_service or StoreSettingService()
        self._clock = clock or system_clock
        self._event_bus = event_bus or default_event_bus

    def run(self, dry_run: bool = False) -> SweepResult:
        with sweep_lock() as acquired:
            if not acquired:
                logger.info("order.sweep.skipped", reason="already_running")
                return SweepResult(skipped="locked", dry_run=dry_run)
            return self._run_locked(dry_run)

    def _run_locked(self, dry_run: bool) -> SweepResult:
        if not self._settings.is_auto_cancel_enabled():
            logger.info("order.sweep.skipped", reason="disabled")
            return SweepResult(skipped="disabled", dry_run=dry_run)

        minutes = self._settings.get_auto_cancel_minutes()
        now = self._clock.now()
        result = SweepResult(
            dry_run=dry_run, minutes=minutes, cutoff=now - timedelta(minutes=minutes)
        )
        log = logger.bind(minutes=minutes, cutoff=result.cutoff.isoformat())

        try:
            candidates = self._order_repo.list_expired_pending(result.cutoff)
        except TransientStorageError:
            log.exception("order.sweep.scan_failed")
            result.skipped = "storage_error"
            return result

        result.candidates = [order.order_number for order in candidates]
        if dry_run:
            log.info("order.sweep.dry_run", candidates=len(candidates))
            return result

        reason = AUTO_CANCEL_REASON_TEMPLATE.format(minutes=minutes)
        for order in candidates:
            order_log = log.bind(order_id=order.pk, order_number=order.order_number)
            try:
                self._cancel(order, reason, now)
            except IllegalTransition:
                # Confirmed or cancelled by staff since the scan.
                order_log.info("order.sweep.order_skipped")
            except Exception:
                order_log.exception("order.sweep.failed")
                result.failed.append(order.order_number)
            else:
                order_log.info("order.auto_cancelled")
                result.cancelled.append(order.order_number)

        log.info(
            "order.sweep.finished",
            candidates=len(candidates),
            cancelled=len(result.cancelled),
            failed=len(result.failed),
        )
        return result

    def _cancel(self, order: Order, reason: str, now: datetime) -> None:
        with transaction.atomic():
            order.cancel(reason=reason, now=now)
            events = order.pull_domain_events()
            transaction.on_commit(lambda: publish_events(self._event_bus, events))
