"""Wall-clock implementation of ``shared.domain.clock.Clock``."""

from __future__ import annotations

from datetime import datetime

from django.utils import timezone


class SystemClock:
    """Timezone-aware current time, as configured by ``USE_TZ``."""

    def now(self) -> datetime:
        return timezone.now()


system_clock = SystemClock()
