from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime


class ClockPort(ABC):
    """Source of `Document.indexed_at` timestamps.

    Implementations return timezone-aware datetimes so stored timestamps
    survive an isoformat round-trip through the Qdrant payload.
    """

    @abstractmethod
    def now(self) -> datetime: ...
