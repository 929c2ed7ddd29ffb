"""
File-type inference for uploaded documents.

Everything here is pure and never raises: a name without an extension or with
an extension we do not know simply classifies as ``unknown``.
"""
from typing import Optional

UNKNOWN = "unknown"

EXTENSION_KINDS = {
    "pdf": "pdf",
    "doc": "word",
    "docx": "word",
    "txt": "text",
    "rtf": "text",
    "jpg": "image",
    "jpeg": "image",
    "png": "image",
    "gif": "image",
    "webp": "image",
    "msg": "email",
    "eml": "email",
    "xls": "spreadsheet",
    "xlsx": "spreadsheet",
    "csv": "spreadsheet",
}

EXTENSION_MIME_TYPES = {
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "txt": "text/plain",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "msg": "application/vnd.ms-outlook",
    "eml": "message/rfc822",
}

GENERIC_MIME = "application/octet-stream"


def get_file_extension(filename: Optional[str]) -> str:
    """
    Return the lower-cased extension of *filename* without the dot.

    ``"report"``, ``".env"`` and ``"archive."`` all return ``""``.
    """
    if not filename:
        return ""
    name = filename.rsplit("/", 1)[-1]
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem or not ext:
        return ""
    return ext.lower()


def classify_file(filename: Optional[str]) -> str:
    """Map a filename to a coarse kind (pdf, word, image, ...) or ``unknown``."""
    return EXTENSION_KINDS.get(get_file_extension(filename), UNKNOWN)


def guess_mime_type(filename: Optional[str], declared: Optional[str] = None) -> str:
    """Prefer the client's declared type unless it is missing or generic."""
    if declared and declared != GENERIC_MIME:
        return declared.lower()
    return EXTENSION_MIME_TYPES.get(get_file_extension(filename), GENERIC_MIME)


def is_image(mime_type: Optional[str]) -> bool:
    return bool(mime_type) and mime_type.lower().startswith("image/")


def can_preview(mime_type: Optional[str]) -> bool:
    """Inline rendering is offered only for images and PDFs."""
    if not mime_type:
        return False
    return is_image(mime_type) or mime_type.lower() == "application/pdf"


def get_file_type(mime_type: Optional[str]) -> str:
    return "photo" if is_image(mime_type) else "document"


def default_category(file_type: str, category: Optional[str] = None) -> str:
    if category:
        return category
    return "photos" if file_type == "photo" else "evidence"
