"""Unit tests for document extraction: PDF pages via PyMuPDF, everything else as UTF-8."""

from __future__ import annotations

import fitz
import pytest

from src.services.ingestion.extractors import extract_documents, is_pdf
from src.utils.errors import ExtractionError


def _make_pdf(pages: list[str]) -> bytes:
    """Build an in-memory PDF with one text line per page ("" = blank page)."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


class TestIsPdf:
    @pytest.mark.parametrize(
        ("file_name", "mime_type", "expected"),
        [
            ("report.pdf", None, True),
            ("REPORT.PDF", None, True),
            ("report", "application/pdf", True),
            ("notes.txt", "text/plain", False),
            ("notes.pdf.txt", None, False),
        ],
    )
    def test_detection(self, file_name: str, mime_type: str | None, expected: bool) -> None:
        assert is_pdf(file_name, mime_type) is expected


class TestPdfExtraction:
    def test_one_document_per_page(self) -> None:
        content = _make_pdf(["First page text", "Second page text"])
        docs = extract_documents(content, "doc.pdf")

        assert len(docs) == 2
        assert "First page text" in docs[0].text
        assert "Second page text" in docs[1].text
        assert docs[0].metadata == {"source": "doc.pdf", "page_number": 1}
        assert docs[1].metadata["page_number"] == 2

    def test_blank_pages_are_kept(self) -> None:
        docs = extract_documents(_make_pdf(["", "Only text here"]), "doc.pdf")
        assert len(docs) == 2
        assert docs[0].text.strip() == ""

    def test_corrupt_pdf_raises_extraction_error(self) -> None:
        with pytest.raises(ExtractionError) as exc_info:
            extract_documents(b"this is not a pdf", "broken.pdf")
        assert exc_info.value.provider_name == "pymupdf"


class TestTextExtraction:
    def test_plain_text_is_one_document(self) -> None:
        docs = extract_documents("hello wörld".encode("utf-8"), "notes.txt", "text/plain")
        assert len(docs) == 1
        assert docs[0].text == "hello wörld"
        assert docs[0].metadata == {"source": "notes.txt"}

    def test_invalid_utf8_is_replaced(self) -> None:
        docs = extract_documents(b"ok \xff bytes", "data.bin")
        assert docs[0].text == "ok � bytes"
