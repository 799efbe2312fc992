from __future__ import annotations

"""Uploaded file extraction dispatched on declared media type."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

from src.loaders.pdf import load_pdf_pages
from src.loaders.text import load_text_file
from src.rag.errors import EmptyDocumentError, UnsupportedMediaTypeError
from src.rag.types import Document

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
TEXT_MEDIA_TYPE = "text/plain"
_GENERIC_MEDIA_TYPES = {"", "application/octet-stream"}
_SUFFIX_MEDIA_TYPES = {
    ".pdf": PDF_MEDIA_TYPE,
    ".txt": TEXT_MEDIA_TYPE,
    ".text": TEXT_MEDIA_TYPE,
}


@dataclass(frozen=True)
class UploadedFile:
    """A file stored on local disk for the lifetime of one request."""
    path: Path
    filename: str
    media_type: str


def resolve_media_type(media_type: str | None, filename: str) -> str:
    """Return the normalized media type, using the suffix for generic uploads."""
    normalized = (media_type or "").split(";", 1)[0].strip().lower()
    if normalized in _GENERIC_MEDIA_TYPES:
        return _SUFFIX_MEDIA_TYPES.get(Path(filename).suffix.lower(), normalized)
    return normalized


@dataclass(frozen=True)
class FileExtractor:
    """Extract documents from PDF and plain text uploads."""

    async def extract(self, source: UploadedFile) -> list[Document]:
        media_type = resolve_media_type(source.media_type, source.filename)
        if media_type == PDF_MEDIA_TYPE:
            documents = await asyncio.to_thread(load_pdf_pages, source.path, source.filename)
        elif media_type == TEXT_MEDIA_TYPE:
            document = await asyncio.to_thread(load_text_file, source.path, source.filename)
            documents = [document] if document.text.strip() else []
        else:
            raise UnsupportedMediaTypeError(source.media_type or "unknown")
        logger.info(
            "file_extracted",
            extra={
                "source_name": source.filename,
                "media_type": media_type,
                "documents": len(documents),
            },
        )
        if not documents:
            raise EmptyDocumentError("No content found in the file")
        return documents


@asynccontextmanager
async def stored_upload(
    data: bytes,
    filename: str,
    media_type: str | None,
    upload_dir: Path,
) -> AsyncIterator[UploadedFile]:
    """Write upload bytes to disk and remove them on every exit path."""
    upload_dir.mkdir(parents=True, exist_ok=True)
    path = upload_dir / f"{uuid.uuid4().hex}-{Path(filename).name}"
    try:
        await asyncio.to_thread(path.write_bytes, data)
        yield UploadedFile(path=path, filename=filename, media_type=media_type or "")
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.exception("upload_cleanup_failed", extra={"path": str(path)})
        else:
            logger.debug("upload_cleaned", extra={"path": str(path)})
