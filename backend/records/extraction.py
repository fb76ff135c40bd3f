from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path


TEXT_EXTENSIONS = {".txt", ".csv", ".md", ".json", ".log"}
TEXT_MIME_TYPES = {"application/json"}
PDF_MIME_TYPE = "application/pdf"

_PDF_LITERAL_RE = re.compile(rb"\(((?:[^()\\]|\\.){2,300})\)")
_PDF_ESCAPES = {b"n": b" ", b"r": b" ", b"t": b" ", b"(": b"(", b")": b")", b"\\": b"\\"}


@dataclass(frozen=True)
class ExtractedText:
    text: str
    method: str


def extension_from_filename(file_name: str) -> str:
    return Path(file_name).suffix.lower().strip()


def _is_pdf(file_name: str, mime_type: str) -> bool:
    return mime_type == PDF_MIME_TYPE or extension_from_filename(file_name) == ".pdf"


def _is_text(file_name: str, mime_type: str) -> bool:
    return (
        mime_type.startswith("text/")
        or mime_type in TEXT_MIME_TYPES
        or extension_from_filename(file_name) in TEXT_EXTENSIONS
    )


def is_supported_upload(file_name: str, mime_type: str) -> bool:
    return _is_pdf(file_name, mime_type) or _is_text(file_name, mime_type)


def _unescape_pdf_literal(raw: bytes) -> str:
    unescaped = re.sub(rb"\\(.)", lambda match: _PDF_ESCAPES.get(match.group(1), match.group(1)), raw)
    return " ".join(unescaped.decode("latin-1").split())


def pdf_text_lines(pdf_bytes: bytes) -> list[str]:
    """Readable string literals from a PDF's uncompressed content streams, first occurrence only."""
    lines: dict[str, str] = {}
    for match in _PDF_LITERAL_RE.finditer(pdf_bytes):
        line = _unescape_pdf_literal(match.group(1))
        if len(line) >= 3 and any(ch.isalpha() for ch in line):
            lines.setdefault(line.lower(), line)
    return list(lines.values())


def extract_upload_text(file_name: str, mime_type: str, data: bytes) -> ExtractedText:
    """Turn an upload accepted by ``is_supported_upload`` into document text."""
    if _is_pdf(file_name, mime_type):
        return ExtractedText("\n".join(pdf_text_lines(data)).strip(), "pdf_text_extract")
    return ExtractedText(data.decode("utf-8", errors="ignore").strip(), "direct_text")
