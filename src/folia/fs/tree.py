"""NamespaceStore — owner-scoped tree of files and folders.

Stateless service that receives the node model at construction and a
session plus an owner id at call time.  Methods flush but never commit;
transaction boundaries belong to the caller.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from folia.models.nodes import NodeType, parent_key_for

from .cascade import (
    DEFAULT_BATCH_SIZE,
    folder_height,
    has_deleted_descendants,
    purge_subtree,
    soft_delete_subtree,
)
from .exceptions import (
    BadRequestError,
    ConflictError,
    CyclicMoveError,
    InvalidArgumentError,
    NodeNotFoundError,
)
from .keys import derive_key, unique_variant
from .types import Breadcrumb, DeleteResult, NodeInfo, NodePage, PurgeResult, RestoreResult
from .utils import check_pagination, escape_like, total_pages, utcnow, validate_id, validate_name

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from folia.models.nodes import NodeBase
    from folia.storage.protocol import BlobStore

    from .paths import PathResolver

logger = logging.getLogger(__name__)

# Fresh random suffixes to try before giving up on a name or key collision.
_MAX_VARIANT_ATTEMPTS = 8


class NamespaceStore:
    """Tree operations on nodes, every one scoped by an explicit owner id.

    Share-token callers pass the shared node's owner as *owner_id* so that
    anything they create lands in the link creator's namespace.
    """

    def __init__(
        self,
        node_model: type[NodeBase],
        paths: PathResolver,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_page_size: int = 1000,
    ) -> None:
        self._node_model = node_model
        self.paths = paths
        self.batch_size = batch_size
        self.max_page_size = max_page_size

    @property
    def node_model(self) -> type[NodeBase]:
        return self._node_model

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _find(
        self,
        session: AsyncSession,
        owner_id: str,
        node_id: str,
        *,
        include_deleted: bool = False,
    ) -> NodeBase | None:
        model = self._node_model
        query = select(model).where(model.id == node_id, model.owner_id == owner_id)
        if not include_deleted:
            query = query.where(model.is_deleted.is_(False))  # type: ignore[union-attr]
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def get(self, session: AsyncSession, owner_id: str, node_id: str) -> NodeBase:
        """Return a live node of *owner_id* or raise ``NodeNotFoundError``."""
        validate_id(node_id, "node id")
        node = await self._find(session, owner_id, node_id)
        if node is None:
            raise NodeNotFoundError(f"Node not found: {node_id}")
        return node

    async def get_any(self, session: AsyncSession, owner_id: str, node_id: str) -> NodeBase:
        """Like ``get`` but soft-deleted nodes are returned too."""
        validate_id(node_id, "node id")
        node = await self._find(session, owner_id, node_id, include_deleted=True)
        if node is None:
            raise NodeNotFoundError(f"Node not found: {node_id}")
        return node

    async def get_folder(self, session: AsyncSession, owner_id: str, folder_id: str) -> NodeBase:
        """Return a live folder of *owner_id* or raise ``NodeNotFoundError``."""
        validate_id(folder_id, "folder id")
        node = await self._find(session, owner_id, folder_id)
        if node is None or not node.is_folder:
            raise NodeNotFoundError(f"Folder not found: {folder_id}")
        return node

    async def _find_sibling(
        self,
        session: AsyncSession,
        owner_id: str,
        parent_id: str | None,
        node_type: NodeType,
        name: str,
        *,
        exclude_id: str | None = None,
    ) -> NodeBase | None:
        model = self._node_model
        query = select(model).where(
            model.owner_id == owner_id,
            model.parent_key == parent_key_for(parent_id),
            model.node_type == node_type,
            model.name == name,
            model.is_deleted.is_(False),  # type: ignore[union-attr]
        )
        if exclude_id is not None:
            query = query.where(model.id != exclude_id)
        result = await session.execute(query.limit(1))
        return result.scalars().first()

    async def _key_taken(
        self, session: AsyncSession, key: str, *, exclude_id: str | None = None
    ) -> bool:
        model = self._node_model
        query = select(model.id).where(model.storage_key == key)  # type: ignore[arg-type]
        if exclude_id is not None:
            query = query.where(model.id != exclude_id)
        result = await session.execute(query.limit(1))
        return result.first() is not None

    async def _flush(self, session: AsyncSession, what: str) -> None:
        """Flush, turning a unique-index violation into ``ConflictError``."""
        try:
            await session.flush()
        except IntegrityError as e:
            logger.debug("Unique constraint rejected %s", what)
            raise ConflictError(f"{what} already exists in this location") from e

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_children(
        self,
        session: AsyncSession,
        owner_id: str,
        parent_id: str | None = None,
        *,
        page: int = 1,
        limit: int = 50,
        search: str | None = None,
    ) -> NodePage:
        """List live children of *parent_id* (root when None), folders first."""
        offset, limit = check_pagination(page, limit, self.max_page_size)
        if parent_id is not None:
            await self.get_folder(session, owner_id, parent_id)

        model = self._node_model
        conditions = [
            model.owner_id == owner_id,
            model.parent_key == parent_key_for(parent_id),
            model.is_deleted.is_(False),  # type: ignore[union-attr]
        ]
        if search:
            pattern = f"%{escape_like(search.casefold())}%"
            conditions.append(
                model.name_folded.like(pattern, escape="\\")  # type: ignore[attr-defined]
            )

        total = await session.scalar(
            select(func.count()).select_from(model).where(*conditions)
        ) or 0
        folders_first = case((model.node_type == NodeType.FOLDER, 0), else_=1)
        result = await session.execute(
            select(model)
            .where(*conditions)
            .order_by(folders_first, model.name, model.id)
            .offset(offset)
            .limit(limit)
        )
        return NodePage(
            items=[NodeInfo.from_node(n) for n in result.scalars().all()],
            current_page=page,
            total_pages=total_pages(total, limit),
            total_items=total,
        )

    async def list_trash(
        self,
        session: AsyncSession,
        owner_id: str,
        *,
        page: int = 1,
        limit: int = 50,
    ) -> NodePage:
        """List the top of each deleted subtree, most recently deleted first.

        A deleted node is listed when its parent is live or it sits at
        root; its deleted descendants are reachable by restoring it.
        """
        offset, limit = check_pagination(page, limit, self.max_page_size)
        model = self._node_model
        parent = select(model.id).where(  # type: ignore[arg-type]
            model.owner_id == owner_id,
            model.is_deleted.is_(True),  # type: ignore[union-attr]
        )
        conditions = [
            model.owner_id == owner_id,
            model.is_deleted.is_(True),  # type: ignore[union-attr]
            model.parent_id.is_(None) | model.parent_id.not_in(parent),  # type: ignore[union-attr]
        ]
        total = await session.scalar(
            select(func.count()).select_from(model).where(*conditions)
        ) or 0
        result = await session.execute(
            select(model)
            .where(*conditions)
            .order_by(model.deleted_at.desc(), model.name)  # type: ignore[union-attr]
            .offset(offset)
            .limit(limit)
        )
        return NodePage(
            items=[NodeInfo.from_node(n) for n in result.scalars().all()],
            current_page=page,
            total_pages=total_pages(total, limit),
            total_items=total,
        )

    async def breadcrumbs(
        self, session: AsyncSession, owner_id: str, node_id: str
    ) -> list[Breadcrumb]:
        """Return ``(id, name)`` steps from the top ancestor down to the node."""
        node = await self.get(session, owner_id, node_id)
        chain = await self.paths.ancestry(session, node)
        return [Breadcrumb(id=n.id, name=n.name) for n in chain]

    async def resolve_path(self, session: AsyncSession, owner_id: str, node_id: str) -> list[str]:
        node = await self.get(session, owner_id, node_id)
        return await self.paths.resolve_path(session, node)

    async def _check_depth(
        self,
        session: AsyncSession,
        parent: NodeBase,
        *,
        moving: NodeBase | None = None,
        ancestry: list[NodeBase] | None = None,
    ) -> None:
        """Refuse to place a folder (and its folder subtree) below the depth bound."""
        if ancestry is None:
            ancestry = await self.paths.ancestry(session, parent)
        room = self.paths.max_depth - len(ancestry) - 1
        if room < 0:
            raise InvalidArgumentError(
                f"Folders cannot be nested more than {self.paths.max_depth} levels deep"
            )
        if moving is None:
            return
        height = await folder_height(
            session, self._node_model, moving.owner_id, moving.id,
            batch_size=self.batch_size, limit=room,
        )
        if height > room:
            raise InvalidArgumentError(
                f"Moving '{moving.name}' would nest folders more than "
                f"{self.paths.max_depth} levels deep"
            )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_folder(
        self,
        session: AsyncSession,
        owner_id: str,
        name: str,
        parent_id: str | None = None,
    ) -> NodeBase:
        """Create a folder; same-name live folders are a ``ConflictError``."""
        name = validate_name(name)
        if parent_id is not None:
            parent = await self.get_folder(session, owner_id, parent_id)
            await self._check_depth(session, parent)

        if await self._find_sibling(session, owner_id, parent_id, NodeType.FOLDER, name):
            raise ConflictError(f"Folder '{name}' already exists in this location")

        folder = self._node_model(
            name=name,
            name_folded=name.casefold(),
            node_type=NodeType.FOLDER,
            owner_id=owner_id,
            size=0,
        )
        folder.set_parent(parent_id)
        session.add(folder)
        await self._flush(session, f"Folder '{name}'")
        logger.debug("Created folder %s (%s) for %s", folder.id, name, owner_id)
        return folder

    async def create_file(
        self,
        session: AsyncSession,
        owner_id: str,
        name: str,
        mime_type: str,
        size: int,
        parent_id: str | None = None,
        *,
        force_variant: bool = False,
    ) -> NodeBase:
        """Create a file node and derive its storage key.

        A live same-name file does not fail the call: the new node gets a
        ``unique_variant`` of the name instead.  *force_variant* applies
        the variant unconditionally (used when retrying after a lost race).
        """
        name = validate_name(name)
        if not mime_type or not mime_type.strip():
            raise InvalidArgumentError("mime_type is required")
        if size is None or size < 0:
            raise InvalidArgumentError("size must be >= 0")

        parent = None
        if parent_id is not None:
            parent = await self.get_folder(session, owner_id, parent_id)
        parent_path = await self.paths.parent_path(session, parent)

        final_name = unique_variant(name) if force_variant else name
        for _ in range(_MAX_VARIANT_ATTEMPTS):
            taken = await self._find_sibling(
                session, owner_id, parent_id, NodeType.FILE, final_name
            )
            key = derive_key(owner_id, final_name, parent_path)
            if not taken and not await self._key_taken(session, key):
                break
            final_name = unique_variant(name)
        else:
            raise ConflictError(f"Could not find a free name for '{name}'")

        file = self._node_model(
            name=final_name,
            name_folded=final_name.casefold(),
            node_type=NodeType.FILE,
            owner_id=owner_id,
            storage_key=key,
            size=size,
            mime_type=mime_type.strip(),
        )
        file.set_parent(parent_id)
        session.add(file)
        await self._flush(session, f"File '{final_name}'")
        if final_name != name:
            logger.debug("Upload name %r collided; stored as %r", name, final_name)
        return file

    # ------------------------------------------------------------------
    # Structural mutations
    # ------------------------------------------------------------------

    async def _rekey(
        self, session: AsyncSession, node: NodeBase, parent: NodeBase | None
    ) -> None:
        """Recompute a file's storage key from *parent* and its current name.

        Only the metadata reference changes; the stored bytes stay put.
        """
        parent_path = await self.paths.parent_path(session, parent)
        key = derive_key(node.owner_id, node.name, parent_path)
        if key == node.storage_key:
            return
        if await self._key_taken(session, key, exclude_id=node.id):
            raise ConflictError(f"Storage key already in use: {key}")
        node.storage_key = key

    async def rename(
        self,
        session: AsyncSession,
        owner_id: str,
        node_id: str,
        new_name: str,
    ) -> NodeBase:
        """Rename a node in place; FILE storage keys follow the new name."""
        new_name = validate_name(new_name)
        node = await self.get(session, owner_id, node_id)
        if new_name == node.name:
            return node

        if await self._find_sibling(
            session, owner_id, node.parent_id, node.node_type, new_name, exclude_id=node.id
        ):
            raise ConflictError(
                f"A {node.node_type.value} named '{new_name}' already exists in this location"
            )

        node.set_name(new_name)
        if node.is_file:
            parent = None
            if node.parent_id is not None:
                parent = await self._find(session, owner_id, node.parent_id, include_deleted=True)
            await self._rekey(session, node, parent)
        node.updated_at = utcnow()
        await self._flush(session, f"{node.node_type.value.capitalize()} '{new_name}'")
        return node

    async def move(
        self,
        session: AsyncSession,
        owner_id: str,
        node_id: str,
        destination_id: str | None,
    ) -> NodeBase:
        """Reparent a node under *destination_id* (root when None)."""
        node = await self.get(session, owner_id, node_id)
        if destination_id == node.parent_id:
            return node

        destination = None
        if destination_id is not None:
            if destination_id == node.id:
                raise CyclicMoveError("Cannot move a node into itself")
            destination = await self.get_folder(session, owner_id, destination_id)
            ancestry = await self.paths.ancestry(session, destination)
            if any(a.id == node.id for a in ancestry):
                raise CyclicMoveError("Cannot move a folder into its own subdirectory")
            if node.is_folder:
                await self._check_depth(session, destination, moving=node, ancestry=ancestry)

        if await self._find_sibling(
            session, owner_id, destination_id, node.node_type, node.name, exclude_id=node.id
        ):
            raise ConflictError(
                f"A {node.node_type.value} named '{node.name}' already exists "
                "in the destination folder"
            )

        if node.is_file:
            await self._rekey(session, node, destination)
        node.set_parent(destination_id)
        node.updated_at = utcnow()
        await self._flush(session, f"{node.node_type.value.capitalize()} '{node.name}'")
        return node

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def soft_delete(
        self, session: AsyncSession, owner_id: str, node_id: str
    ) -> DeleteResult:
        """Hide a node and, for folders, every live descendant."""
        node = await self.get(session, owner_id, node_id)
        count = await soft_delete_subtree(
            session, self._node_model, owner_id, node, batch_size=self.batch_size
        )
        logger.debug("Soft-deleted %d node(s) under %s", count, node.id)
        return DeleteResult(node=NodeInfo.from_node(node), total_deleted=count)

    async def restore(
        self, session: AsyncSession, owner_id: str, node_id: str
    ) -> RestoreResult:
        """Un-delete one node. Descendants stay deleted and are only reported."""
        node = await self.get_any(session, owner_id, node_id)
        if not node.is_deleted:
            raise BadRequestError(f"{node.node_type.value.capitalize()} is not deleted")

        if node.parent_id is not None:
            parent = await self._find(session, owner_id, node.parent_id, include_deleted=True)
            if parent is not None and parent.is_deleted:
                raise BadRequestError(
                    "Cannot restore a file/folder whose parent is deleted"
                )

        if await self._find_sibling(
            session, owner_id, node.parent_id, node.node_type, node.name, exclude_id=node.id
        ):
            raise ConflictError(
                f"A {node.node_type.value} named '{node.name}' already exists in this location"
            )

        node.is_deleted = False
        node.deleted_at = None
        node.updated_at = utcnow()
        await self._flush(session, f"{node.node_type.value.capitalize()} '{node.name}'")

        remaining = False
        if node.is_folder:
            remaining = await has_deleted_descendants(
                session, self._node_model, owner_id, node.id, batch_size=self.batch_size
            )
        return RestoreResult(node=NodeInfo.from_node(node), has_deleted_descendants=remaining)

    async def purge(
        self,
        session: AsyncSession,
        owner_id: str,
        node_id: str,
        storage: BlobStore,
    ) -> PurgeResult:
        """Permanently delete a node (live or trashed) and its whole subtree."""
        node = await self.get_any(session, owner_id, node_id)
        return await purge_subtree(
            session, self._node_model, owner_id, node, storage, batch_size=self.batch_size
        )
