"""Result types: NodeInfo, NodePage, RestoreResult, PurgeResult, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from folia.models.nodes import NodeBase
    from folia.models.shares import ShareLinkBase


@dataclass
class NodeInfo:
    """File/folder metadata as returned to callers."""

    id: str
    name: str
    node_type: str
    owner_id: str
    parent_id: str | None = None
    storage_key: str | None = None
    size: int = 0
    mime_type: str | None = None
    is_deleted: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_node(cls, node: NodeBase) -> NodeInfo:
        return cls(
            id=node.id,
            name=node.name,
            node_type=node.node_type.value,
            owner_id=node.owner_id,
            parent_id=node.parent_id,
            storage_key=node.storage_key,
            size=node.size,
            mime_type=node.mime_type,
            is_deleted=node.is_deleted,
            created_at=node.created_at,
            updated_at=node.updated_at,
        )


@dataclass
class NodePage:
    """One page of a node listing."""

    items: list[NodeInfo] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 0
    total_items: int = 0


@dataclass
class Breadcrumb:
    """One step of a root-to-node navigation trail."""

    id: str
    name: str


@dataclass
class UploadIntent:
    """A created file node plus the presigned URL its bytes go to."""

    node: NodeInfo
    upload_url: str


@dataclass
class DeleteResult:
    """Result of a soft-delete."""

    node: NodeInfo
    total_deleted: int = 1


@dataclass
class RestoreResult:
    """Result of a restore. Descendants are reported, never restored."""

    node: NodeInfo
    has_deleted_descendants: bool = False


@dataclass
class PurgeFailure:
    """A file whose storage object could not be deleted during purge."""

    node_id: str
    storage_key: str
    error: str


@dataclass
class PurgeResult:
    """Outcome of a permanent delete over a subtree."""

    node_id: str
    nodes_deleted: int = 0
    objects_deleted: int = 0
    deleted_ids: list[str] = field(default_factory=list)
    failures: list[PurgeFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


@dataclass
class Permissions:
    """Share permission flags."""

    can_view: bool = True
    can_edit: bool = False
    can_share: bool = False


@dataclass
class ShareInfo:
    """Share metadata. The password itself is never exposed."""

    id: str
    token: str
    node_id: str
    permissions: Permissions
    access_level: str
    created_by: str
    has_password: bool = False
    expires_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    node: NodeInfo | None = None

    @classmethod
    def from_share(
        cls, share: ShareLinkBase, node: NodeBase | None = None
    ) -> ShareInfo:
        return cls(
            id=share.id,
            token=share.token,
            node_id=share.node_id,
            permissions=Permissions(
                can_view=share.can_view,
                can_edit=share.can_edit,
                can_share=share.can_share,
            ),
            access_level=share.access_level.value,
            created_by=share.created_by,
            has_password=share.has_password,
            expires_at=share.expires_at,
            created_at=share.created_at,
            updated_at=share.updated_at,
            node=NodeInfo.from_node(node) if node is not None else None,
        )


@dataclass
class ShareResult:
    """Result of creating a share link."""

    share: ShareInfo
    share_url: str


@dataclass
class SharePage:
    """One page of the caller's share links."""

    items: list[ShareInfo] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 0
    total_items: int = 0


@dataclass
class SharedNodeInfo:
    """What an anonymous link visitor sees about the shared node."""

    id: str
    name: str
    node_type: str
    size: int
    mime_type: str | None
    permissions: Permissions
    access_level: str
    has_password: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class SharedFolderPage(NodePage):
    """A shared-folder listing, labelled with the folder being browsed."""

    parent_id: str = ""
    parent_name: str = ""
