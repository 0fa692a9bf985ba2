"""Scheduled order tasks."""

import structlog
from celery import shared_task

from modules.orders.sweep import AutoCancelSweep

logger = structlog.get_logger(__name__)


@shared_task(name="orders.auto_cancel_pending_orders", ignore_result=True)
def auto_cancel_pending_orders():
    """Cancel pending orders older than the configured threshold.

    Driven by ``CELERY_BEAT_SCHEDULE`` every minute.  Overlapping ticks are
    skipped by the sweep lock.
    """
    result = AutoCancelSweep().run()
    logger.info("order.sweep.task_completed", **result.as_dict())
    return result.as_dict()
