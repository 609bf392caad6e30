"""SharedAccess — what an anonymous visitor can do through a share token.

Every call validates the token first.  Work is then done in the namespace
of the node's owner; the visitor never has an owner id of their own.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import BadRequestError, NodeNotFoundError
from .types import NodeInfo, Permissions, SharedFolderPage, SharedNodeInfo, UploadIntent

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from folia.models.nodes import NodeBase
    from folia.storage.protocol import BlobStore

    from .sharing import ShareAccess, SharingService
    from .tree import NamespaceStore

logger = logging.getLogger(__name__)


class SharedAccess:
    """Token-gated browse, download, upload and folder creation."""

    def __init__(
        self,
        store: NamespaceStore,
        sharing: SharingService,
        storage: BlobStore,
        *,
        presign_expiry_seconds: int = 3600,
    ) -> None:
        self.store = store
        self.sharing = sharing
        self.storage = storage
        self.presign_expiry_seconds = presign_expiry_seconds

    async def _inside(
        self, session: AsyncSession, access: ShareAccess, node_id: str, *, folder: bool
    ) -> NodeBase:
        """Fetch a live node of the share's owner that lies in the shared subtree."""
        owner_id = access.owner_id
        if folder:
            node = await self.store.get_folder(session, owner_id, node_id)
        else:
            node = await self.store.get(session, owner_id, node_id)
        if not await self.store.paths.is_descendant(session, access.node.id, node.id):
            raise NodeNotFoundError(f"Node not found: {node_id}")
        return node

    async def _upload_target(
        self, session: AsyncSession, access: ShareAccess, parent_id: str | None
    ) -> str:
        """Folder id new entries go into: the shared folder or the shared file's parent."""
        node = access.node
        if node.is_folder:
            if parent_id is None or parent_id == node.id:
                return node.id
            folder = await self._inside(session, access, parent_id, folder=True)
            return folder.id
        if parent_id is not None and parent_id != node.parent_id:
            raise NodeNotFoundError(f"Folder not found: {parent_id}")
        if node.parent_id is None:
            raise BadRequestError("Shared file has no folder to upload into")
        return node.parent_id

    async def info(
        self, session: AsyncSession, token: str, password: str | None = None
    ) -> SharedNodeInfo:
        access = await self.sharing.validate_token(session, token, password)
        node, share = access.node, access.share
        return SharedNodeInfo(
            id=node.id,
            name=node.name,
            node_type=node.node_type.value,
            size=node.size,
            mime_type=node.mime_type,
            permissions=Permissions(
                can_view=share.can_view,
                can_edit=share.can_edit,
                can_share=share.can_share,
            ),
            access_level=share.access_level.value,
            has_password=share.has_password,
            created_at=node.created_at,
            updated_at=node.updated_at,
        )

    async def list(
        self,
        session: AsyncSession,
        token: str,
        password: str | None = None,
        *,
        parent_id: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> SharedFolderPage:
        """List a folder inside a shared folder (the shared folder itself by default)."""
        access = await self.sharing.validate_token(session, token, password)
        self.sharing.require_view_permission(access)
        if not access.node.is_folder:
            raise BadRequestError("Shared resource is not a folder")

        folder = access.node
        if parent_id is not None and parent_id != folder.id:
            folder = await self._inside(session, access, parent_id, folder=True)

        listing = await self.store.list_children(
            session, access.owner_id, folder.id, page=page, limit=limit
        )
        return SharedFolderPage(
            items=listing.items,
            current_page=listing.current_page,
            total_pages=listing.total_pages,
            total_items=listing.total_items,
            parent_id=folder.id,
            parent_name=folder.name,
        )

    async def download_url(
        self,
        session: AsyncSession,
        token: str,
        password: str | None = None,
        *,
        node_id: str | None = None,
    ) -> str:
        """Presigned download URL for the shared file, or a file inside a shared folder."""
        access = await self.sharing.validate_token(session, token, password)
        self.sharing.require_view_permission(access)

        node = access.node
        if node_id is not None and node_id != node.id:
            if not node.is_folder:
                raise NodeNotFoundError(f"Node not found: {node_id}")
            node = await self._inside(session, access, node_id, folder=False)
        if not node.is_file or not node.storage_key:
            raise BadRequestError("Cannot download a folder")

        return await self.storage.presign_download(
            node.storage_key, node.name, expires_in=self.presign_expiry_seconds
        )

    async def upload(
        self,
        session: AsyncSession,
        token: str,
        password: str | None,
        name: str,
        mime_type: str,
        size: int,
        *,
        parent_id: str | None = None,
        force_variant: bool = False,
    ) -> UploadIntent:
        """Create a file owned by the link owner and return its upload URL."""
        access = await self.sharing.validate_token(session, token, password)
        self.sharing.require_edit_permission(access)
        target = await self._upload_target(session, access, parent_id)

        file = await self.store.create_file(
            session, access.owner_id, name, mime_type, size, target,
            force_variant=force_variant,
        )
        url = await self.storage.presign_upload(
            file.storage_key or "", file.mime_type or mime_type,
            expires_in=self.presign_expiry_seconds,
        )
        logger.debug("Share %s: upload intent %s", access.share.id, file.id)
        return UploadIntent(node=NodeInfo.from_node(file), upload_url=url)

    async def create_folder(
        self,
        session: AsyncSession,
        token: str,
        password: str | None,
        name: str,
        *,
        parent_id: str | None = None,
    ) -> NodeInfo:
        """Create a folder owned by the link owner."""
        access = await self.sharing.validate_token(session, token, password)
        self.sharing.require_edit_permission(access)
        target = await self._upload_target(session, access, parent_id)
        folder = await self.store.create_folder(session, access.owner_id, name, target)
        logger.debug("Share %s: created folder %s", access.share.id, folder.id)
        return NodeInfo.from_node(folder)
