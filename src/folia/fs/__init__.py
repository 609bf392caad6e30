"""Namespace layer — tree store, path resolution, cascades, sharing."""

from folia.fs.exceptions import (
    BadRequestError,
    ConflictError,
    CyclicMoveError,
    FoliaError,
    ForbiddenError,
    InternalError,
    InvalidArgumentError,
    NodeNotFoundError,
    NotFoundError,
    PasswordRequiredError,
    PathDepthExceededError,
    PurgeIncompleteError,
    ShareExpiredError,
    ShareNotFoundError,
    StorageError,
    UnauthorizedError,
)
from folia.fs.keys import derive_key, sanitize_filename, unique_variant
from folia.fs.paths import PathResolver
from folia.fs.shared import SharedAccess
from folia.fs.sharing import UNSET, ShareAccess, ShareState, SharingService
from folia.fs.tree import NamespaceStore
from folia.fs.types import (
    Breadcrumb,
    DeleteResult,
    NodeInfo,
    NodePage,
    Permissions,
    PurgeFailure,
    PurgeResult,
    RestoreResult,
    SharedFolderPage,
    SharedNodeInfo,
    ShareInfo,
    SharePage,
    ShareResult,
    UploadIntent,
)

__all__ = [
    "UNSET",
    "BadRequestError",
    "Breadcrumb",
    "ConflictError",
    "CyclicMoveError",
    "DeleteResult",
    "FoliaError",
    "ForbiddenError",
    "InternalError",
    "InvalidArgumentError",
    "NamespaceStore",
    "NodeInfo",
    "NodeNotFoundError",
    "NodePage",
    "NotFoundError",
    "PasswordRequiredError",
    "PathDepthExceededError",
    "PathResolver",
    "Permissions",
    "PurgeFailure",
    "PurgeIncompleteError",
    "PurgeResult",
    "RestoreResult",
    "ShareAccess",
    "ShareExpiredError",
    "ShareInfo",
    "ShareNotFoundError",
    "SharePage",
    "ShareResult",
    "ShareState",
    "SharedAccess",
    "SharedFolderPage",
    "SharedNodeInfo",
    "SharingService",
    "StorageError",
    "UnauthorizedError",
    "UploadIntent",
    "derive_key",
    "sanitize_filename",
    "unique_variant",
]
