"""Storage key derivation — pure functions, no I/O.

Keys have the form ``{owner}/{parent path}/{sanitized name}``.  The owner
segment is always the node owner, even when bytes arrive through a share
link opened by someone else.
"""

from __future__ import annotations

import posixpath
import re
import secrets

_UNSAFE_CHARS = re.compile(r"[^\w\-. ]")

FALLBACK_FILENAME = "file"


def sanitize_filename(filename: str) -> str:
    """Strip characters outside ``[A-Za-z0-9_-. ]`` (plus Unicode word chars).

    Examples:
        sanitize_filename("report (final).pdf") -> "report final.pdf"
        sanitize_filename("???") -> "file"
    """
    sanitized = _UNSAFE_CHARS.sub("", filename)
    if not sanitized.strip(". "):
        return FALLBACK_FILENAME
    return sanitized


def derive_key(owner_id: str, filename: str, parent_path: str = "") -> str:
    """Derive the object key for *filename* under *parent_path*.

    *parent_path* is the parent folder's logical path with segments joined
    by ``/`` (empty for root level).

    Examples:
        derive_key("u1", "a.txt", "Docs") -> "u1/Docs/a.txt"
        derive_key("u1", "a.txt") -> "u1/a.txt"
    """
    sanitized = sanitize_filename(filename)
    parent_path = parent_path.strip("/")
    if parent_path:
        return f"{owner_id}/{parent_path}/{sanitized}"
    return f"{owner_id}/{sanitized}"


def unique_variant(filename: str) -> str:
    """Append a short random suffix before the extension.

    Examples:
        unique_variant("a.txt") -> "a-3f9c01ab.txt"
        unique_variant(".env") -> ".env-3f9c01ab"
    """
    stem, ext = posixpath.splitext(filename)
    return f"{stem}-{secrets.token_hex(4)}{ext}"
