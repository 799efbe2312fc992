from __future__ import annotations

from pathlib import Path

import pytest

from src.loaders.file import (
    PDF_MEDIA_TYPE,
    TEXT_MEDIA_TYPE,
    FileExtractor,
    UploadedFile,
    resolve_media_type,
    stored_upload,
)
from src.loaders.text import TextExtractor, load_text_file
from src.rag.errors import EmptyContentError, EmptyDocumentError, UnsupportedMediaTypeError

pytestmark = pytest.mark.anyio


def _pdf_bytes(pages: list[str]) -> bytes:
    fitz = pytest.importorskip("fitz")
    document = fitz.open()
    for text in pages:
        page = document.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = document.tobytes()
    document.close()
    return data


async def test_text_extractor_wraps_literal_text() -> None:
    documents = await TextExtractor().extract("Policies are reviewed yearly.")

    assert len(documents) == 1
    assert documents[0].text == "Policies are reviewed yearly."
    assert documents[0].metadata == {"source_type": "text"}


@pytest.mark.parametrize("text", ["", "   \n\t"])
async def test_text_extractor_rejects_blank_text(text: str) -> None:
    with pytest.raises(EmptyContentError):
        await TextExtractor().extract(text)


def test_load_text_file_uses_display_name(tmp_path: Path) -> None:
    path = tmp_path / "stored-notes.txt"
    path.write_text("Line one\nLine two", encoding="utf-8")

    document = load_text_file(path, source="notes.txt")

    assert document.text == "Line one\nLine two"
    assert document.metadata == {"source": "notes.txt", "source_type": "text"}


async def test_file_extractor_reads_text_upload(tmp_path: Path) -> None:
    path = tmp_path / "handbook.txt"
    path.write_text("Remote work is allowed on Fridays.", encoding="utf-8")

    documents = await FileExtractor().extract(
        UploadedFile(path=path, filename="handbook.txt", media_type=TEXT_MEDIA_TYPE)
    )

    assert [document.text for document in documents] == ["Remote work is allowed on Fridays."]
    assert documents[0].metadata["source"] == "handbook.txt"


async def test_file_extractor_reads_pdf_pages(tmp_path: Path) -> None:
    path = tmp_path / "report.pdf"
    path.write_bytes(_pdf_bytes(["Quarterly revenue grew.", "", "Headcount is stable."]))

    documents = await FileExtractor().extract(
        UploadedFile(path=path, filename="report.pdf", media_type=PDF_MEDIA_TYPE)
    )

    assert len(documents) == 2
    assert "Quarterly revenue grew." in documents[0].text
    assert documents[0].metadata["page"] == 1
    assert documents[1].metadata["page"] == 3
    assert documents[1].metadata["total_pages"] == 3
    assert documents[1].metadata["source_type"] == "pdf"


async def test_file_extractor_rejects_pdf_without_text(tmp_path: Path) -> None:
    path = tmp_path / "blank.pdf"
    path.write_bytes(_pdf_bytes([""]))

    with pytest.raises(EmptyDocumentError):
        await FileExtractor().extract(
            UploadedFile(path=path, filename="blank.pdf", media_type=PDF_MEDIA_TYPE)
        )


async def test_file_extractor_rejects_empty_text_file(tmp_path: Path) -> None:
    path = tmp_path / "empty.txt"
    path.write_text("  \n", encoding="utf-8")

    with pytest.raises(EmptyDocumentError):
        await FileExtractor().extract(
            UploadedFile(path=path, filename="empty.txt", media_type=TEXT_MEDIA_TYPE)
        )


async def test_file_extractor_rejects_unsupported_media_type(tmp_path: Path) -> None:
    path = tmp_path / "sheet.csv"
    path.write_text("a,b\n1,2", encoding="utf-8")

    with pytest.raises(UnsupportedMediaTypeError) as excinfo:
        await FileExtractor().extract(
            UploadedFile(path=path, filename="sheet.csv", media_type="text/csv")
        )

    assert str(excinfo.value) == "Unsupported file type: text/csv"
    assert excinfo.value.status_code == 500


@pytest.mark.parametrize(
    ("media_type", "filename", "expected"),
    [
        ("application/pdf", "a.bin", PDF_MEDIA_TYPE),
        ("text/plain; charset=utf-8", "a.bin", TEXT_MEDIA_TYPE),
        ("application/octet-stream", "Report.PDF", PDF_MEDIA_TYPE),
        (None, "notes.txt", TEXT_MEDIA_TYPE),
        ("image/png", "notes.txt", "image/png"),
    ],
)
def test_resolve_media_type(media_type: str | None, filename: str, expected: str) -> None:
    assert resolve_media_type(media_type, filename) == expected


async def test_stored_upload_removes_file_after_use(tmp_path: Path) -> None:
    async with stored_upload(b"hello", "hello.txt", TEXT_MEDIA_TYPE, tmp_path) as uploaded:
        assert uploaded.path.read_bytes() == b"hello"
        assert uploaded.filename == "hello.txt"

    assert list(tmp_path.iterdir()) == []


async def test_stored_upload_removes_file_on_failure(tmp_path: Path) -> None:
    with pytest.raises(UnsupportedMediaTypeError):
        async with stored_upload(b"x", "x.bin", "image/png", tmp_path) as uploaded:
            await FileExtractor().extract(uploaded)

    assert list(tmp_path.iterdir()) == []


async def test_stored_upload_removes_partial_write(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    original_write = Path.write_bytes

    def short_write(self: Path, data: bytes) -> int:
        original_write(self, data[:2])
        raise OSError("No space left on device")

    monkeypatch.setattr(Path, "write_bytes", short_write)

    with pytest.raises(OSError):
        async with stored_upload(b"abcdef", "a.txt", TEXT_MEDIA_TYPE, tmp_path):
            pass

    assert list(tmp_path.iterdir()) == []


def test_load_text_file_marks_invalid_bytes(tmp_path: Path) -> None:
    path = tmp_path / "latin1.txt"
    path.write_bytes(b"caf\xe9 menu")

    document = load_text_file(path)

    assert document.text == "caf\ufffd menu"
