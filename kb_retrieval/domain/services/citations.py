# kb_retrieval/domain/services/citations.py
# Pure domain service: verifies citations in a generated answer against the
# chunks that were actually served to the model.
from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from ..models import Citation, CitationMetrics, CitationValidation, DroppedCitation, SearchResult

_QUOTE = r"(?:\"(?P<q1>[^\"]+)\"|“(?P<q2>[^”]+)”|«(?P<q3>[^»]+)»)"
_LINK = r"\[(?:Source|Источник)\s*:\s*(?P<title>[^\]]*)\]\((?P<path>[^)\s]+)\)"
_NUMBER = r"\[(?P<num>\d+)\]"

CITATION_PATTERN = re.compile(
    rf"(?:{_QUOTE}\s*)?(?P<marker>{_LINK}|{_NUMBER})",
    re.IGNORECASE,
)

QUOTE_NOT_FOUND = "quote not found in served context"

# An answer counts as grounded only when it cites at least this many sources.
MIN_GROUNDED_CITATIONS = 2


def normalize_path(path: str) -> str:
    """Unify separators for path comparison.

    Examples:
        >>> normalize_path("docs\\\\guide//intro.md/")
        'docs/guide/intro.md'
    """
    unified = path.strip().replace("\\", "/")
    unified = re.sub(r"/+", "/", unified)
    return unified.strip("/")


def normalize_text(text: str) -> str:
    """Collapse whitespace and case-fold, for quote matching."""
    return " ".join(text.split()).casefold()


def _source_path(chunk: SearchResult) -> str:
    return chunk.document_file_path or chunk.document_id


def _source_title(chunk: SearchResult) -> str:
    return chunk.document_title or _source_path(chunk)


def validate_citations(
    answer: str, served_chunks: Sequence[SearchResult]
) -> CitationValidation:
    """
    Extract citation markers from `answer` and keep only the verifiable ones.

    Recognized markers:
      "quote" [Source: Title](path)   (also “…” and «…», label Источник)
      "quote" [n]                     (n = 1-based position in the served context)
      [Source: Title](path) and [n]   (no quote)

    A quoted citation is valid when the normalized quote is a substring of a
    served chunk; the chunk the marker points at is preferred, then the first
    served chunk in context order. An unquoted marker is valid when its path
    (or position) resolves to a served chunk. Valid citations take their path
    and title from the matched chunk; duplicates are collapsed.
    """
    served = list(served_chunks)
    normalized_contents = [normalize_text(c.content) for c in served]
    by_path: dict[str, list[int]] = {}
    for i, c in enumerate(served):
        by_path.setdefault(normalize_path(_source_path(c)), []).append(i)

    valid: list[Citation] = []
    dropped: list[DroppedCitation] = []
    seen: set[tuple[str, str]] = set()

    for m in CITATION_PATTERN.finditer(answer):
        quote = m.group("q1") or m.group("q2") or m.group("q3")
        marker = m.group("marker")
        raw_path = m.group("path")
        num = m.group("num")

        if raw_path is not None:
            targets = by_path.get(normalize_path(raw_path), [])
            cited_path: str | None = raw_path
        else:
            n = int(num)
            targets = [n - 1] if 1 <= n <= len(served) else []
            cited_path = _source_path(served[targets[0]]) if targets else None

        if quote is not None:
            needle = normalize_text(quote)
            match = None
            if needle:
                match = next((i for i in targets if needle in normalized_contents[i]), None)
                if match is None:
                    match = next(
                        (i for i, content in enumerate(normalized_contents) if needle in content),
                        None,
                    )
            if match is None:
                dropped.append(DroppedCitation(text=quote, document_path=cited_path, reason=QUOTE_NOT_FOUND))
                continue
            text = quote.strip()
        else:
            if not targets:
                reason = (
                    f"source {raw_path} not in served context"
                    if raw_path is not None
                    else f"reference [{num}] out of range (1..{len(served)})"
                )
                dropped.append(DroppedCitation(text=marker, document_path=cited_path, reason=reason))
                continue
            match = targets[0]
            text = marker

        chunk = served[match]
        path = _source_path(chunk)
        key = (normalize_path(path), normalize_text(text))
        if key in seen:
            continue
        seen.add(key)
        valid.append(
            Citation(
                text=text,
                document_path=path,
                document_title=_source_title(chunk),
                chunk_id=chunk.chunk_id,
            )
        )

    return CitationValidation(valid=valid, dropped=dropped)


def citation_metrics(validations: Iterable[CitationValidation]) -> CitationMetrics:
    """Aggregate citation quality over validated answers.

    An answer is free of hallucinations when it cited at least
    MIN_GROUNDED_CITATIONS sources and none of them was dropped.
    """
    total_questions = 0
    with_citations = 0
    total_citations = 0
    valid_citations = 0
    grounded = 0
    for v in validations:
        total_questions += 1
        count = len(v.valid) + len(v.dropped)
        total_citations += count
        valid_citations += len(v.valid)
        if count:
            with_citations += 1
        if count >= MIN_GROUNDED_CITATIONS and not v.dropped:
            grounded += 1

    return CitationMetrics(
        total_questions=total_questions,
        questions_with_citations=with_citations,
        average_citations_per_answer=total_citations / total_questions if total_questions else 0.0,
        valid_citations_percentage=valid_citations / total_citations * 100 if total_citations else 0.0,
        answers_without_hallucinations=grounded,
    )
