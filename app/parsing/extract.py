from __future__ import annotations

import logging
from io import BytesIO
from zipfile import ZipFile

import defusedxml.ElementTree as ET

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MEDIA_TYPE = "application/pdf"

EXTRACTABLE_MEDIA_TYPES = frozenset({DOCX_MEDIA_TYPE})
RECOGNIZED_MEDIA_TYPES = frozenset({DOCX_MEDIA_TYPE, PDF_MEDIA_TYPE})


class ExtractionError(ValueError):
    code = "extraction_failed"


class UnsupportedFormatError(ExtractionError):
    code = "unsupported_format"


class CorruptOrEmptyError(ExtractionError):
    code = "corrupt_or_empty"


class ParseFailureError(ExtractionError):
    code = "parse_failure"


def _extract_docx_python_docx(content: bytes) -> str:
    from docx import Document

    document = Document(BytesIO(content))
    chunks = [paragraph.text for paragraph in document.paragraphs if paragraph.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                chunks.append(" | ".join(cells))
    return "\n".join(chunks)


def _extract_docx_zipxml(content: bytes) -> str:
    with ZipFile(BytesIO(content)) as archive:
        raw = archive.read("word/document.xml")
    root = ET.fromstring(raw)
    paragraphs: list[str] = []
    for paragraph in root.iter():
        if not paragraph.tag.endswith("}p"):
            continue
        texts = [node.text for node in paragraph.iter() if node.tag.endswith("}t") and node.text]
        line = "".join(texts).strip()
        if line:
            paragraphs.append(line)
    return "\n".join(paragraphs)


def extract_docx_text(content: bytes) -> str:
    try:
        return _extract_docx_python_docx(content)
    except Exception as primary_exc:  # noqa: BLE001 - retried with the raw XML reader below
        logger.info("docx_primary_parser_failed falling_back=zipxml: %s", primary_exc)
    try:
        return _extract_docx_zipxml(content)
    except Exception as exc:  # noqa: BLE001 - any unreadable container is a parse failure
        raise ParseFailureError(
            "Unable to read this Word document. Please ensure it is a valid .docx file."
        ) from exc


def extract_text(content: bytes, media_type: str) -> str:
    """Return the plain text of an uploaded resume document.

    Only DOCX documents are extracted. PDF is accepted by the upload
    allow-list but is refused here with a message pointing the user at DOCX.
    """
    normalized = (media_type or "").split(";")[0].strip().lower()
    if normalized not in RECOGNIZED_MEDIA_TYPES:
        raise UnsupportedFormatError(
            f"Unsupported file format '{normalized or 'unknown'}'. Please upload a DOCX file."
        )
    if normalized not in EXTRACTABLE_MEDIA_TYPES:
        raise CorruptOrEmptyError(
            "PDF text extraction is not available. Please upload your resume as a DOCX file."
        )

    text = extract_docx_text(content).strip()
    if not text:
        raise CorruptOrEmptyError("The document appears to be empty or contains no readable text.")
    logger.info("document_extracted media_type=%s chars=%s", normalized, len(text))
    return text
