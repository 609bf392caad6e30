"""Name validation, pagination, and datetime helpers."""

from __future__ import annotations

import math
from datetime import UTC, datetime

from .exceptions import InvalidArgumentError

# Reserved filenames (Windows compatibility)
RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
}

MAX_NAME_LENGTH = 255


# =============================================================================
# Names
# =============================================================================


def validate_name(name: str | None) -> str:
    """Validate a node name and return it trimmed.

    Raises ``InvalidArgumentError`` when the name is empty, contains the
    path separator, a null byte or a control character, is too long, is a
    relative-path token, or is a reserved device name.

    Examples:
        validate_name("  notes.md ") -> "notes.md"
        validate_name("a/b") -> InvalidArgumentError
    """
    if name is None:
        raise InvalidArgumentError("Name is required")

    name = name.strip()
    if not name:
        raise InvalidArgumentError("Name cannot be empty")

    if "/" in name:
        raise InvalidArgumentError('Name cannot contain "/"')

    if "\x00" in name:
        raise InvalidArgumentError("Name contains null bytes")

    for ch in name:
        code = ord(ch)
        if 0x01 <= code <= 0x1F:
            raise InvalidArgumentError(f"Name contains control character: 0x{code:02x}")

    if len(name) > MAX_NAME_LENGTH:
        raise InvalidArgumentError(f"Name too long (max {MAX_NAME_LENGTH} characters)")

    if name in (".", ".."):
        raise InvalidArgumentError(f"Reserved name: {name}")

    base_name = name.upper().split(".")[0]
    if base_name in RESERVED_NAMES:
        raise InvalidArgumentError(f"Reserved filename: {name}")

    return name


def validate_id(value: str | None, label: str = "id") -> str:
    """Reject empty or obviously malformed identifiers."""
    if not value or not isinstance(value, str):
        raise InvalidArgumentError(f"Invalid {label}")
    if len(value) > 64 or any(ch.isspace() or ch == "/" for ch in value):
        raise InvalidArgumentError(f"Invalid {label}: {value!r}")
    return value


# =============================================================================
# Pagination
# =============================================================================


def check_pagination(page: int, limit: int, max_limit: int = 1000) -> tuple[int, int]:
    """Validate ``(page, limit)`` and return ``(offset, limit)``."""
    if page < 1:
        raise InvalidArgumentError("page must be >= 1")
    if limit < 1 or limit > max_limit:
        raise InvalidArgumentError(f"limit must be between 1 and {max_limit}")
    return (page - 1) * limit, limit


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total else 0


def escape_like(term: str) -> str:
    """Escape SQL LIKE wildcards so *term* matches literally (escape char ``\\``)."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# =============================================================================
# Datetimes
# =============================================================================


def ensure_utc(value: datetime) -> datetime:
    """Return *value* in UTC; naive values (SQLite drops tzinfo) are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utcnow() -> datetime:
    return datetime.now(UTC)
