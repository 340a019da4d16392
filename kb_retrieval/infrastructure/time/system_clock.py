from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo

from ...application.ports.clock_port import ClockPort


@dataclass(frozen=True)
class SystemClock(ClockPort):
    """Wall clock for indexing timestamps (UTC unless another zone is given)."""

    tz: tzinfo = UTC

    def now(self) -> datetime:
        return datetime.now(self.tz)
