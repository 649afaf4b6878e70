"""
File materials: turn an uploaded file into an inline data URL.

File materials are stored inline in the course content as
`data:<mime>;base64,<payload>` together with the original file name and MIME
type. This keeps content self-contained in one jsonb column, at the cost of a
hard size limit per file.
"""
from __future__ import annotations

import base64
import os
import re
import unicodedata
from dataclasses import dataclass
from typing import Optional

_MIME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9!#$&^_.+-]*/[a-z0-9][a-z0-9!#$&^_.+-]*$")
_SANITIZE_PATTERN = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class MaterialFileSettings:
    """Configuration for inline file materials."""

    max_size_bytes: int = 8 * 1024 * 1024

    @classmethod
    def from_env(cls) -> "MaterialFileSettings":
        raw = (os.getenv("MATERIAL_MAX_BYTES") or "").strip()
        if not raw:
            return cls()
        try:
            value = int(raw)
        except ValueError:
            return cls()
        return cls(max_size_bytes=value) if value > 0 else cls()


@dataclass(frozen=True)
class DataUrlFile:
    content: str
    file_name: str
    file_type: str


def _sanitize_filename(filename: str) -> Optional[str]:
    if not filename:
        return None
    base = os.path.basename(filename.strip().replace("\\", "/"))
    if not base:
        return None
    root, ext = os.path.splitext(base)
    normalized = unicodedata.normalize("NFKD", root)
    ascii_root = normalized.encode("ascii", "ignore").decode("ascii")
    sanitized_root = _SANITIZE_PATTERN.sub("-", ascii_root).strip("-_.")
    if not sanitized_root:
        sanitized_root = "file"
    sanitized_root = sanitized_root[:64]
    clean_ext = "".join(ch for ch in ext.lower() if ch.isalnum() or ch == ".")
    if clean_ext and not clean_ext.startswith("."):
        clean_ext = f".{clean_ext}"
    return f"{sanitized_root}{clean_ext}" if clean_ext else sanitized_root


def file_to_data_url(
    data: bytes,
    mime_type: str,
    filename: str,
    settings: Optional[MaterialFileSettings] = None,
) -> DataUrlFile:
    """Encode `data` as a data URL.

    Raises ValueError with `empty_file`, `file_too_large`, `invalid_mime_type`
    or `invalid_filename`.
    """
    settings = settings or MaterialFileSettings()
    if not data:
        raise ValueError("empty_file")
    if len(data) > settings.max_size_bytes:
        raise ValueError("file_too_large")
    normalized_mime = (mime_type or "").split(";", 1)[0].strip().lower() or "application/octet-stream"
    if not _MIME_PATTERN.match(normalized_mime):
        raise ValueError("invalid_mime_type")
    name = _sanitize_filename(filename)
    if not name:
        raise ValueError("invalid_filename")
    encoded = base64.b64encode(bytes(data)).decode("ascii")
    return DataUrlFile(content=f"data:{normalized_mime};base64,{encoded}", file_name=name, file_type=normalized_mime)


__all__ = ["MaterialFileSettings", "DataUrlFile", "file_to_data_url"]
