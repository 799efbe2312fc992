from __future__ import annotations

"""PDF text extraction and cleanup."""

import re
from pathlib import Path

from src.rag.errors import EmptyDocumentError
from src.rag.types import Document

_HYPHEN_BREAK_RE = re.compile(r"(\w)-\n(\w)")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def _clean_pdf_text(text: str) -> str:
    """Rejoin hyphenated line breaks and collapse blank runs."""
    if not text:
        return ""
    cleaned = text.replace("\r\n", "\n")
    cleaned = _HYPHEN_BREAK_RE.sub(r"\1\2", cleaned)
    cleaned = _BLANK_LINES_RE.sub("\n\n", cleaned)
    return cleaned.strip()


def load_pdf_pages(path: Path, source: str | None = None) -> list[Document]:
    """Load a PDF from disk and return one Document per page with text."""
    import fitz

    try:
        reader = fitz.open(str(path))
    except RuntimeError as exc:
        raise EmptyDocumentError(f"Unable to read PDF: {exc}") from exc

    documents: list[Document] = []
    with reader:
        total = reader.page_count
        for number, page in enumerate(reader, start=1):
            text = _clean_pdf_text(page.get_text() or "")
            if not text:
                continue
            documents.append(
                Document(
                    text=text,
                    metadata={
                        "source": source or path.name,
                        "source_type": "pdf",
                        "page": number,
                        "total_pages": total,
                    },
                )
            )
    return documents
