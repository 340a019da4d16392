from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class IndexingResult:
    """Outcome of indexing one file; failures are recorded, not raised."""

    file_path: str
    success: bool
    document_id: str | None = None
    chunk_count: int = 0
    error: str | None = None
