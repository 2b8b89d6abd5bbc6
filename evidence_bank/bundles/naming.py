"""
Filename derivation for payloads stored in an evidence bundle.

Every name produced here is a single archive path component: separators
and dot-only names never reach the zip.
"""

from __future__ import annotations

import mimetypes
import os
import re
from typing import Optional
from urllib.parse import unquote, urlparse

SLUG_MAX_LENGTH = 60

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")
_PATH_SEPARATORS = re.compile(r"[\\/]+")


def slugify(text: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Lowercase, collapse non-alphanumeric runs to '-', trim, and truncate."""
    slug = _NON_ALNUM_RUN.sub("-", text.lower()).strip("-")
    return slug[:max_length]


def safe_component(text: str) -> str:
    """Replace path separators with '_' so ``text`` stays one path component."""
    cleaned = _PATH_SEPARATORS.sub("_", text)
    return "_" if cleaned in ("", ".", "..") else cleaned


def last_path_segment(url: str) -> str:
    # decoded first: %2F and %5C split like / and \
    path = unquote(urlparse(url).path)
    segments = [s for s in _PATH_SEPARATORS.split(path) if s]
    return segments[-1] if segments else ""


def has_extension(segment: str) -> bool:
    return os.path.splitext(segment)[1] not in ("", ".")


def extension_for(content_type: Optional[str]) -> str:
    """File extension (without dot) for a Content-Type header, or 'bin'."""
    if not content_type:
        return "bin"
    mime = content_type.split(";", 1)[0].strip().lower()
    guessed = mimetypes.guess_extension(mime) if mime else None
    if guessed:
        return guessed.lstrip(".")
    return "bin"


def derive_filename(
    evidence_id: str,
    url: str,
    description: str = "",
    content_type: Optional[str] = None,
) -> str:
    """
    Name under which a fetched payload is stored.

    ``https://host/files/report.pdf`` for BKT-001 becomes ``BKT-001-report.pdf``.
    When the last URL segment has no extension the name is built from the
    description and the response content type, e.g. ``bank-statement-BKT-001.pdf``.
    """
    segment = last_path_segment(url)
    prefix = safe_component(evidence_id)
    if not has_extension(segment):
        stem = slugify(description) or "evidence"
        return f"{stem}-{prefix}.{extension_for(content_type)}"
    return f"{prefix}-{segment}"
