"""Text extraction from downloaded file bytes.

PDFs are read with PyMuPDF (fitz) page by page, giving one
:class:`~src.models.ingestion.SourceDocument` per page with a 1-based
``page_number``.  Every other type is decoded as UTF-8 with replacement
characters into a single document; binary office formats come out as
noise that the normalizer then strips.
"""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from src.models.ingestion import SourceDocument
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_PDF_MIME_TYPE = "application/pdf"


def is_pdf(file_name: str, mime_type: str | None) -> bool:
    """Return ``True`` when the file should go through the PDF loader."""
    if mime_type and mime_type.lower() == _PDF_MIME_TYPE:
        return True
    return file_name.lower().endswith(".pdf")


def extract_documents(
    content: bytes,
    file_name: str,
    mime_type: str | None = None,
) -> list[SourceDocument]:
    """Extract text documents from *content*.

    Parameters
    ----------
    content:
        Raw file bytes.
    file_name:
        Original file name; the ``.pdf`` extension selects the PDF loader.
    mime_type:
        Provider-reported MIME type, if known.

    Returns
    -------
    list[SourceDocument]
        One document per PDF page (empty pages included), or exactly one
        document for any other type.

    Raises
    ------
    ExtractionError
        If the bytes claim to be a PDF but cannot be opened.
    """
    if is_pdf(file_name, mime_type):
        return _extract_pdf_pages(content, file_name)

    text = content.decode("utf-8", errors="replace")
    logger.debug("text_extracted", file_name=file_name, chars=len(text))
    return [SourceDocument(text=text, metadata={"source": file_name})]


def _extract_pdf_pages(content: bytes, file_name: str) -> list[SourceDocument]:
    try:
        doc = fitz.open(stream=content, filetype="pdf")
    except Exception as exc:
        logger.error("pdf_open_failed", file_name=file_name, error=str(exc))
        raise ExtractionError(
            message=f"Could not open PDF '{file_name}': {exc}",
            provider_name="pymupdf",
        ) from exc

    documents: list[SourceDocument] = []
    try:
        for page_index in range(len(doc)):
            text = doc[page_index].get_text("text")
            documents.append(
                SourceDocument(
                    text=text,
                    metadata={"source": file_name, "page_number": page_index + 1},
                )
            )
    except Exception as exc:
        raise ExtractionError(
            message=f"Could not read PDF '{file_name}': {exc}",
            provider_name="pymupdf",
        ) from exc
    finally:
        doc.close()

    if not any(d.text.strip() for d in documents):
        logger.warning("pdf_no_text_extracted", file_name=file_name, pages=len(documents))

    logger.info("pdf_processed", file_name=file_name, pages=len(documents))
    return documents
