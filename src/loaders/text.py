from __future__ import annotations

"""Plain text extraction for literal input and text files."""

from dataclasses import dataclass
from pathlib import Path

from src.rag.errors import EmptyContentError
from src.rag.types import Document


def load_text_file(path: Path, source: str | None = None) -> Document:
    """Load a UTF-8 text file from disk into a Document."""
    content = path.read_bytes().decode("utf-8", errors="replace")
    return Document(
        text=content,
        metadata={"source": source or path.name, "source_type": "text"},
    )


@dataclass(frozen=True)
class TextExtractor:
    """Wrap a literal string as a single Document."""

    async def extract(self, source: str) -> list[Document]:
        if not source or not source.strip():
            raise EmptyContentError("No text content provided")
        return [Document(text=source, metadata={"source_type": "text"})]
