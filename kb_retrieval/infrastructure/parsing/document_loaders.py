"""File loaders for the indexing pipeline: UTF-8 text/markdown and PDF (pypdf)."""

from __future__ import annotations

import os
from dataclasses import dataclass

from kb_retrieval.application.ports.document_loader_port import DocumentLoaderPort, DocumentPayload
from kb_retrieval.domain.errors import DocumentError

MARKDOWN_EXTENSIONS = (".md", ".markdown")


def markdown_title(text: str) -> str | None:
    """First level-one heading ('# Title'), if any."""
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith("# "):
            return stripped[2:].strip() or None
    return None


@dataclass
class PlainTextLoaderAdapter(DocumentLoaderPort):
    """Reads UTF-8 text; markdown files get their title from the first '# ' heading."""

    def load(self, path: str) -> DocumentPayload:  # type: ignore[override]
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read().strip()
        except (OSError, UnicodeDecodeError) as ex:
            raise DocumentError(f"Text load failed for {path}: {ex}") from ex
        title = markdown_title(text) if path.lower().endswith(MARKDOWN_EXTENSIONS) else None
        return DocumentPayload(text=text, title=title, source_path=path)


@dataclass
class PDFTextExtractorAdapter(DocumentLoaderPort):
    def load(self, path: str) -> DocumentPayload:  # type: ignore[override]
        try:
            from pypdf import PdfReader  # lazy import to avoid hard dependency in tests
        except ImportError as ex:  # pragma: no cover
            raise DocumentError("pypdf is not installed") from ex

        try:
            reader = PdfReader(path)
            pages = [p.extract_text() or "" for p in reader.pages]
            text = "\n\n".join(pages).strip()
            metadata = getattr(reader, "metadata", None)
            title = metadata.title if metadata else None
        except Exception as ex:  # noqa: BLE001
            raise DocumentError(f"PDF parse failed for {path}: {ex}") from ex
        return DocumentPayload(text=text, title=title or None, source_path=path)


@dataclass
class FileDocumentLoader(DocumentLoaderPort):
    """Dispatches on the file extension: .pdf to pypdf, everything else as UTF-8 text."""

    text_loader: PlainTextLoaderAdapter | None = None
    pdf_loader: PDFTextExtractorAdapter | None = None

    def __post_init__(self) -> None:
        self.text_loader = self.text_loader or PlainTextLoaderAdapter()
        self.pdf_loader = self.pdf_loader or PDFTextExtractorAdapter()

    def load(self, path: str) -> DocumentPayload:  # type: ignore[override]
        if not os.path.isfile(path):
            raise DocumentError(f"File not found: {path}")
        if path.lower().endswith(".pdf"):
            return self.pdf_loader.load(path)
        return self.text_loader.load(path)
