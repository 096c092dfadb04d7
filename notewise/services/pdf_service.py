"""PDF upload handling.

Uploads are checked, turned into a data URI for the extraction flow, and
optionally read locally through their text layer.
"""
from __future__ import annotations

import base64
import binascii
import io
import re
from typing import List, Tuple

import PyPDF2

from notewise.errors import InvalidInput

PDF_MIME = "application/pdf"
PDF_MAGIC = b"%PDF"

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)(?P<params>(;[\w-]+=[^;,]+)*);base64,(?P<data>.*)$", re.DOTALL)


class UploadRejected(InvalidInput):
    """Raised when an upload is not something we can study from."""


def check_pdf_upload(filename: str, mimetype: str, data: bytes, max_bytes: int) -> None:
    name = (filename or "").strip().lower()
    mime = (mimetype or "").split(";", 1)[0].strip().lower()
    if not name.endswith(".pdf") and mime != PDF_MIME:
        raise UploadRejected("Please upload a PDF file.", title="Invalid File Type")
    if not data or data.lstrip()[:4] != PDF_MAGIC:
        raise UploadRejected("Please upload a PDF file.", title="Invalid File Type")
    if len(data) > max_bytes:
        mb = max_bytes // (1024 * 1024)
        raise UploadRejected(f"Please upload a PDF smaller than {mb}MB.", title="File Too Large")


def to_data_uri(data: bytes, mime: str = PDF_MIME) -> str:
    return f"data:{mime};base64," + base64.b64encode(data).decode("ascii")


def parse_data_uri(uri: str) -> Tuple[str, bytes]:
    """Split a base64 data URI into ``(mime, payload)``.

    Raises ``ValueError`` if the URI is not ``data:<mime>;base64,<data>``.
    """
    m = _DATA_URI_RE.match((uri or "").strip())
    if not m:
        raise ValueError("Expected format: 'data:<mimetype>;base64,<encoded_data>'")
    try:
        payload = base64.b64decode(m.group("data"), validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Data URI payload is not valid base64")
    if not payload:
        raise ValueError("Data URI payload is empty")
    return m.group("mime").lower(), payload


def extract_pdf_text(data: bytes) -> Tuple[str, int]:
    """Read the PDF text layer. Returns ``(text, page_count)``."""
    reader = PyPDF2.PdfReader(io.BytesIO(data))
    parts: List[str] = []
    for page in reader.pages:
        parts.append(page.extract_text() or "")
    return "\n".join(parts).strip(), len(reader.pages)


def count_pages(data: bytes) -> int:
    try:
        return len(PyPDF2.PdfReader(io.BytesIO(data)).pages)
    except Exception:
        return 0


def try_extract_pdf_text(data: bytes) -> Tuple[str, int]:
    try:
        return extract_pdf_text(data)
    except Exception:
        # PDF parsers raise a wide range of errors on damaged files
        return "", 0


def text_is_meaningful(text: str) -> bool:
    s = (text or "").strip()
    if len(s) < 250:
        return False
    alpha = sum(1 for ch in s if ch.isalpha())
    ratio = alpha / max(len(s), 1)
    return ratio >= 0.25
