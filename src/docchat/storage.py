"""Temporary on-disk copies of uploads awaiting extraction."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Final
from uuid import uuid4

LOGGER = logging.getLogger(__name__)

_FILENAME_SAFE_CHARS_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9._-]+")


def _sanitize_filename(filename: str) -> str:
    """Return a filesystem-safe filename preserving the extension when possible."""
    sanitized = Path(filename or "upload").name
    sanitized = _FILENAME_SAFE_CHARS_RE.sub("_", sanitized)
    return sanitized.strip("._") or "upload"


def save_temporary_upload(upload_dir: Path, file_name: str, data: bytes) -> Path:
    """Write ``data`` to a uniquely named file inside ``upload_dir``."""
    upload_dir.mkdir(parents=True, exist_ok=True)
    sanitized = Path(_sanitize_filename(file_name))
    destination = upload_dir / f"{sanitized.stem or 'upload'}-{uuid4().hex}{sanitized.suffix}"
    destination.write_bytes(data)
    return destination


def discard_upload(path: Path) -> None:
    """Remove a temporary upload; a file that is already gone is fine."""
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        LOGGER.warning("Could not remove temporary upload %s: %s", path, exc)
