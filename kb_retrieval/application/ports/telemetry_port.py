"""Metrics sink for search, filtering, citation and indexing events."""

from typing import Any, Protocol


class TelemetryPort(Protocol):
    """Counters and histograms keyed by dotted names such as `kb.search.requests`.

    Use cases call it only when a sink was injected. Implementations must not
    raise: a metrics outage never fails a query.
    """

    def incr(self, name: str, tags: dict[str, Any] | None = None) -> None: ...

    def observe(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None: ...
