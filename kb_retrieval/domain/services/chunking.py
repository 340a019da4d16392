from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import ConfigurationError
from ..models import Chunk, chunk_id_for
from .tokens import count_tokens, tokens_to_chars

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE_TOKENS = 800
DEFAULT_OVERLAP_TOKENS = 100
MAX_CHUNKS = 10_000  # guards against pathological input looping forever

_SENTENCE_ENDINGS = frozenset(".!?\n")


# ---------- Params ----------


@dataclass(frozen=True)
class ChunkingParams:
    chunk_size_tokens: int = DEFAULT_CHUNK_SIZE_TOKENS
    overlap_tokens: int = DEFAULT_OVERLAP_TOKENS
    max_chunks: int = MAX_CHUNKS

    def __post_init__(self) -> None:
        if self.chunk_size_tokens <= 0:
            raise ConfigurationError(
                f"chunk_size_tokens must be positive, got {self.chunk_size_tokens}"
            )
        if self.overlap_tokens < 0:
            raise ConfigurationError(
                f"overlap_tokens must be non-negative, got {self.overlap_tokens}"
            )
        if self.overlap_tokens >= self.chunk_size_tokens:
            raise ConfigurationError(
                f"overlap_tokens ({self.overlap_tokens}) must be less than "
                f"chunk_size_tokens ({self.chunk_size_tokens})"
            )
        if self.max_chunks <= 0:
            raise ConfigurationError(f"max_chunks must be positive, got {self.max_chunks}")


# ---------- Boundary search ----------


def _last_sentence_boundary(text: str, start: int, end: int) -> int:
    """Index of the last sentence-ending char in [start, end) followed by whitespace/EOT."""
    n = len(text)
    for i in range(end - 1, start - 1, -1):
        if text[i] in _SENTENCE_ENDINGS and (i + 1 >= n or text[i + 1].isspace()):
            return i
    return -1


def _last_whitespace(text: str, start: int, end: int) -> int:
    for i in range(end - 1, start - 1, -1):
        if text[i].isspace():
            return i
    return -1


def _find_chunk_end(text: str, start: int, budget_chars: int) -> int:
    end = min(start + budget_chars, len(text))
    if end >= len(text):
        return end

    sentence_end = _last_sentence_boundary(text, start, end)
    if sentence_end > start:
        return sentence_end + 1

    word_end = _last_whitespace(text, start, end)
    if word_end > start:
        return word_end

    # No boundary in the window: raw cut. str indexes code points, never bytes.
    return end


def _skip_whitespace(text: str, pos: int) -> int:
    """First non-whitespace index at or after `pos` (len(text) if none)."""
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _next_start(text: str, start: int, end: int, overlap_chars: int) -> int:
    pos = max(end - overlap_chars, start)
    # Skip leading whitespace, but never past `end` so windows stay gap-free.
    while pos < end and text[pos].isspace():
        pos += 1
    if pos <= start:
        return end
    return pos


# ---------- Chunker ----------


def chunk_text(
    text: str,
    document_id: str,
    chunk_size_tokens: int = DEFAULT_CHUNK_SIZE_TOKENS,
    overlap_tokens: int = DEFAULT_OVERLAP_TOKENS,
) -> list[Chunk]:
    """Split `text` into overlapping, boundary-aware chunks.

    Windows are ~chunk_size_tokens * 4 characters, cut at the nearest preceding
    sentence end, else word boundary, else raw. Consecutive windows overlap by
    ~overlap_tokens * 4 characters.

    Raises:
        ConfigurationError: On invalid sizes.
    """
    return TextChunker(ChunkingParams(chunk_size_tokens, overlap_tokens)).chunk(text, document_id)


class TextChunker:
    """Stateless chunker bound to validated params."""

    def __init__(self, params: ChunkingParams | None = None) -> None:
        self.params = params or ChunkingParams()

    def chunk(self, text: str, document_id: str) -> list[Chunk]:
        if not text.strip():
            return []

        budget_chars = tokens_to_chars(self.params.chunk_size_tokens)
        overlap_chars = tokens_to_chars(self.params.overlap_tokens)

        chunks: list[Chunk] = []
        start = 0
        while start < len(text):
            end = _find_chunk_end(text, start, budget_chars)
            if not text[start:end].strip():
                # Leading blank run longer than the window: cut from the first word.
                end = _find_chunk_end(text, _skip_whitespace(text, start), budget_chars)

            next_start = len(text)
            if end < len(text):
                next_start = _next_start(text, start, end, overlap_chars)
                if next_start == end and text[end].isspace():
                    # Absorb the blank run so no window starts in dead space.
                    end = next_start = _skip_whitespace(text, end)

            content = text[start:end]
            idx = len(chunks)
            chunks.append(
                Chunk(
                    id=chunk_id_for(document_id, idx),
                    document_id=document_id,
                    content=content,
                    start_index=start,
                    end_index=end,
                    token_count=count_tokens(content),
                    chunk_index=idx,
                )
            )
            if end >= len(text):
                break
            if len(chunks) >= self.params.max_chunks:
                logger.warning(
                    "Reached maximum chunks limit (%d) for document %s at offset %d/%d, "
                    "stopping chunking",
                    self.params.max_chunks,
                    document_id,
                    end,
                    len(text),
                )
                break
            start = next_start

        return chunks


# Properties:
#
# - No I/O, no globals besides the module logger.
# - Deterministic: same text and params give identical boundaries.
# - Coverage: chunks[0].start_index == 0, chunks[-1].end_index == len(text)
#   (unless the max-chunks guard fired), and every next window starts at or
#   before the previous end.
# - No blank chunks: every window after the first starts on non-whitespace,
#   and whitespace-only text gives no chunks.
