from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class DocumentPayload:
    """
    Text extracted from one source file, before chunking.

    - text:        full document text; chunk offsets index into it
    - title:       title found inside the file (markdown heading, PDF metadata)
    - source_path: path recorded on the Document, used to re-index in place
    """

    text: str
    title: str | None = None
    source_path: str | None = None


class DocumentLoaderPort(Protocol):
    def load(self, path: str) -> DocumentPayload:
        """Read `path` into a payload.

        Raises:
            DocumentError: Missing, unreadable or unparseable file.
        """
        ...
