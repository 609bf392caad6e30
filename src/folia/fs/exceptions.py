"""Custom exception hierarchy for the Folia namespace layer.

Every exception carries a ``kind`` string so transports can map errors to
status codes without importing the whole hierarchy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import PurgeResult


class FoliaError(Exception):
    """Base exception for all Folia errors."""

    kind = "internal"


class InvalidArgumentError(FoliaError, ValueError):
    """Raised for malformed ids, names, pagination, or missing fields."""

    kind = "invalid_argument"


class NotFoundError(FoliaError):
    """Raised when a node or share is absent, not owned, or soft-deleted."""

    kind = "not_found"


class NodeNotFoundError(NotFoundError):
    """Raised when a node lookup fails for the calling owner."""


class ShareNotFoundError(NotFoundError):
    """Raised when a share id or token does not resolve."""


class ConflictError(FoliaError):
    """Raised on a live sibling with the same name and type."""

    kind = "conflict"


class BadRequestError(FoliaError):
    """Raised when an operation's preconditions on tree state do not hold."""

    kind = "bad_request"


class ForbiddenError(FoliaError):
    """Raised on missing share permissions, expired links, or cyclic moves."""

    kind = "forbidden"


class CyclicMoveError(ForbiddenError, BadRequestError):
    """Raised when a node would become its own ancestor."""

    kind = "forbidden"


class ShareExpiredError(ForbiddenError):
    """Raised when a share link is past its expiry instant."""


class UnauthorizedError(FoliaError):
    """Raised when a share password is missing or wrong."""

    kind = "unauthorized"
    requires_password = False


class PasswordRequiredError(UnauthorizedError):
    """Raised when a password-gated share is accessed without a password."""

    requires_password = True


class InternalError(FoliaError):
    """Raised on persistence or storage collaborator failures."""

    kind = "internal"


class StorageError(InternalError):
    """Raised on blob store failures (network, credentials, etc.)."""


class PathDepthExceededError(InternalError):
    """Raised when an ancestor walk exceeds its bound or revisits a node."""


class PurgeIncompleteError(InternalError):
    """Raised when a purge left some entries behind for a later retry."""

    def __init__(self, message: str, result: PurgeResult) -> None:
        super().__init__(message)
        self.result = result
