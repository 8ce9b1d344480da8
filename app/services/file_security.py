from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from zipfile import BadZipFile, ZipFile

from app.parsing.extract import DOCX_MEDIA_TYPE, PDF_MEDIA_TYPE

ALLOWED_MEDIA_TYPES = frozenset({DOCX_MEDIA_TYPE, PDF_MEDIA_TYPE})

EXTENSION_MEDIA_TYPE_HINTS = {
    "docx": DOCX_MEDIA_TYPE,
    "pdf": PDF_MEDIA_TYPE,
}

# Media types browsers send when they do not know better.
GENERIC_MEDIA_TYPES = frozenset({"", "application/octet-stream", "binary/octet-stream"})

PDF_MAGIC = b"%PDF-"
ZIP_MAGICS = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")

UPLOAD_CHUNK_BYTES = 64 * 1024


class UploadRejectedError(ValueError):
    pass


@dataclass(frozen=True)
class UploadedDocument:
    content: bytes
    media_type: str
    size_bytes: int
    filename: str


def extension_from_filename(filename: str) -> str:
    if "." not in (filename or ""):
        return ""
    return filename.rsplit(".", 1)[-1].strip().lower()[:20]


def resolve_media_type(content_type: str | None, filename: str) -> str:
    declared = (content_type or "").split(";")[0].strip().lower()
    if declared in GENERIC_MEDIA_TYPES:
        return EXTENSION_MEDIA_TYPE_HINTS.get(extension_from_filename(filename), declared)
    return declared


def validate_media_type(media_type: str) -> None:
    if media_type in ALLOWED_MEDIA_TYPES:
        return
    if media_type == "application/msword":
        raise UploadRejectedError("Legacy .doc is not supported. Convert to .docx.")
    raise UploadRejectedError("Invalid file type. Only DOCX files are currently supported.")


def validate_upload_size(size_bytes: int, max_bytes: int) -> None:
    if size_bytes > max_bytes:
        raise UploadRejectedError(
            f"File size too large. Maximum size is {max_bytes // (1024 * 1024)}MB."
        )


def _zip_has_paths(content: bytes, prefixes: tuple[str, ...]) -> bool:
    try:
        with ZipFile(BytesIO(content)) as archive:
            names = archive.namelist()
    except (BadZipFile, ValueError):
        return False
    return any(name.startswith(prefixes) for name in names)


def validate_upload_signature(*, media_type: str, content: bytes) -> None:
    if not content:
        raise UploadRejectedError("Uploaded file is empty.")

    if media_type == PDF_MEDIA_TYPE:
        if not content.startswith(PDF_MAGIC):
            raise UploadRejectedError("File signature does not match .pdf content.")
        return

    if media_type == DOCX_MEDIA_TYPE:
        if not content.startswith(ZIP_MAGICS) or not _zip_has_paths(content, ("word/",)):
            raise UploadRejectedError("File signature does not match .docx content.")
