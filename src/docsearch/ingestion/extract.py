"""Text extraction for uploaded documents.

PDF text comes from PyMuPDF (fitz), DOCX paragraphs from python-docx, and
TXT/MD files are decoded as UTF-8. Extraction never raises: failures are
reported through :class:`ExtractResult`.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator

import docx
import fitz  # PyMuPDF

from docsearch.utils.files import file_extension
from docsearch.utils.text import normalize_whitespace

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ExtractResult:
    success: bool
    content: str = ""
    error: str | None = None


def iter_pdf_pages(data: bytes) -> Iterator[str]:
    """Yield normalized text page by page."""
    doc = fitz.open(stream=data, filetype="pdf")
    try:
        for index in range(len(doc)):
            try:
                text = doc[index].get_text() or ""
            except Exception as exc:  # pragma: no cover
                LOGGER.warning("Failed to read PDF page %s: %s", index, exc)
                continue
            normalized = normalize_whitespace(text.splitlines())
            if normalized:
                yield normalized
    finally:
        doc.close()


def extract_pdf(data: bytes) -> str:
    return "\n".join(iter_pdf_pages(data))


def extract_docx(data: bytes) -> str:
    document = docx.Document(io.BytesIO(data))
    return normalize_whitespace(paragraph.text for paragraph in document.paragraphs)


def extract_plain(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


EXTRACTORS: Dict[str, Callable[[bytes], str]] = {
    "pdf": extract_pdf,
    "docx": extract_docx,
    "txt": extract_plain,
    "md": extract_plain,
}

SUPPORTED_EXTENSIONS = tuple(EXTRACTORS)


def is_supported(file_name: str) -> bool:
    return file_extension(file_name) in EXTRACTORS


def extract(data: bytes, file_name: str) -> ExtractResult:
    """Extract plain text from ``data`` based on the extension of ``file_name``."""
    extension = file_extension(file_name)
    extractor = EXTRACTORS.get(extension)
    if extractor is None:
        LOGGER.info("No text extractor for %s", file_name)
        return ExtractResult(success=False, error=f"Unsupported file type: {extension or 'none'}")

    try:
        content = extractor(data)
    except Exception as exc:
        LOGGER.error("Failed to extract text from %s: %s", file_name, exc)
        return ExtractResult(success=False, error="Could not read the document contents")

    LOGGER.debug("Extracted %d characters from %s", len(content), file_name)
    return ExtractResult(success=True, content=content)
