"""Folia: owner-scoped file and folder metadata with share links.

Files and folders live in a per-owner tree; bytes live in a blob store
addressed by keys derived from each file's logical path.
"""

__version__ = "0.1.0"

from folia._folia import Folia
from folia.config import FoliaConfig
from folia.fs.exceptions import (
    BadRequestError,
    ConflictError,
    FoliaError,
    ForbiddenError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    PurgeIncompleteError,
    UnauthorizedError,
)
from folia.fs.types import (
    Breadcrumb,
    DeleteResult,
    NodeInfo,
    NodePage,
    Permissions,
    PurgeResult,
    RestoreResult,
    SharedFolderPage,
    SharedNodeInfo,
    ShareInfo,
    SharePage,
    ShareResult,
    UploadIntent,
)
from folia.models import AccessLevel, Node, NodeType, ShareLink
from folia.storage import BlobStore, MemoryBlobStore, S3BlobStore

__all__ = [
    "AccessLevel",
    "BadRequestError",
    "BlobStore",
    "Breadcrumb",
    "ConflictError",
    "DeleteResult",
    "Folia",
    "FoliaConfig",
    "FoliaError",
    "ForbiddenError",
    "InternalError",
    "InvalidArgumentError",
    "MemoryBlobStore",
    "Node",
    "NodeInfo",
    "NodePage",
    "NodeType",
    "NotFoundError",
    "Permissions",
    "PurgeIncompleteError",
    "PurgeResult",
    "RestoreResult",
    "S3BlobStore",
    "ShareInfo",
    "ShareLink",
    "SharePage",
    "ShareResult",
    "SharedFolderPage",
    "SharedNodeInfo",
    "UnauthorizedError",
    "UploadIntent",
    "__version__",
]
