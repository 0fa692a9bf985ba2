"""Time source abstraction.

Transitions and the auto-cancel sweep ask a ``Clock`` for "now" instead of
reading the wall clock directly, so tests can pin time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...
