"""Folia — async facade over the namespace store, sharing and blob storage."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from folia.config import FoliaConfig
from folia.fs.exceptions import (
    BadRequestError,
    ConflictError,
    InternalError,
    PurgeIncompleteError,
    StorageError,
)
from folia.fs.paths import PathResolver
from folia.fs.shared import SharedAccess
from folia.fs.sharing import UNSET, SharingService
from folia.fs.tree import NamespaceStore
from folia.fs.types import NodeInfo, ShareResult, UploadIntent
from folia.models.nodes import Node
from folia.models.shares import ShareLink

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncEngine

    from folia.fs.types import (
        Breadcrumb,
        DeleteResult,
        NodePage,
        Permissions,
        PurgeResult,
        RestoreResult,
        SharedFolderPage,
        ShareInfo,
        SharedNodeInfo,
        SharePage,
    )
    from folia.models.nodes import NodeBase
    from folia.models.shares import AccessLevel, ShareLinkBase
    from folia.storage.protocol import BlobStore

logger = logging.getLogger(__name__)


class Folia:
    """Owner-scoped file/folder metadata with share links.

    Every public method runs in its own session: committed on success,
    rolled back on any error.  Owner ids come from the caller's identity
    layer and are trusted as given.

    Usage::

        engine = create_async_engine("sqlite+aiosqlite:///folia.db")
        folia = Folia(engine, storage=S3BlobStore("my-bucket"))
        await folia.create_tables()
        docs = await folia.create_folder("u1", "Docs")
        intent = await folia.create_file("u1", "a.txt", "text/plain", 12, docs.id)
    """

    def __init__(
        self,
        engine: AsyncEngine | None = None,
        *,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        storage: BlobStore | None = None,
        config: FoliaConfig | None = None,
        node_model: type[NodeBase] | None = None,
        share_model: type[ShareLinkBase] | None = None,
    ) -> None:
        if session_factory is None:
            if engine is None:
                raise ValueError("Folia needs an engine or a session_factory")
            session_factory = async_sessionmaker(
                engine, class_=AsyncSession, expire_on_commit=False
            )
        self._engine = engine
        self._session_factory = session_factory
        self.config = config or FoliaConfig()

        if storage is None:
            if not self.config.s3_bucket:
                raise ValueError("Folia needs a storage backend or config.s3_bucket")
            from folia.storage.s3 import S3BlobStore

            storage = S3BlobStore.from_config(self.config)
        self.storage = storage

        self._node_model = node_model or Node
        self._share_model = share_model or ShareLink
        self.paths = PathResolver(self._node_model, max_depth=self.config.max_path_depth)
        self.store = NamespaceStore(
            self._node_model,
            self.paths,
            batch_size=self.config.cascade_batch_size,
            max_page_size=self.config.max_page_size,
        )
        self.sharing = SharingService(
            self._share_model,
            self._node_model,
            bcrypt_rounds=self.config.password_hash_rounds,
            max_page_size=self.config.max_page_size,
        )
        self.shared = SharedAccess(
            self.store,
            self.sharing,
            self.storage,
            presign_expiry_seconds=self.config.presign_expiry_seconds,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_tables(self) -> None:
        """Create the node and share tables if they do not exist."""
        if self._engine is None:
            raise ValueError("create_tables() requires an engine")
        nm, sm = self._node_model, self._share_model
        async with self._engine.begin() as conn:
            await conn.run_sync(
                lambda c: nm.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
            )
            await conn.run_sync(
                lambda c: sm.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
            )

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession]:
        """Yield a session, committing on success and rolling back on error."""
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except IntegrityError as e:
            await session.rollback()
            raise ConflictError("An item with that name already exists in this location") from e
        except SQLAlchemyError as e:
            await session.rollback()
            logger.exception("Persistence failure")
            raise InternalError("Persistence failure") from e
        except StorageError:
            await session.rollback()
            logger.warning("Blob store call failed; transaction rolled back", exc_info=True)
            raise
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    def _limit(self, limit: int | None) -> int:
        return self.config.default_page_size if limit is None else limit

    def share_url(self, token: str) -> str:
        return f"{self.config.share_base_url.rstrip('/')}/shared/{token}"

    # ------------------------------------------------------------------
    # Owner operations
    # ------------------------------------------------------------------

    async def list_nodes(
        self,
        owner_id: str,
        parent_id: str | None = None,
        *,
        page: int = 1,
        limit: int | None = None,
        search: str | None = None,
    ) -> NodePage:
        async with self._session() as session:
            return await self.store.list_children(
                session, owner_id, parent_id,
                page=page, limit=self._limit(limit), search=search,
            )

    async def get_node(self, owner_id: str, node_id: str) -> NodeInfo:
        async with self._session() as session:
            return NodeInfo.from_node(await self.store.get(session, owner_id, node_id))

    async def get_path(self, owner_id: str, node_id: str) -> list[str]:
        """Names from the top-level ancestor down to the node."""
        async with self._session() as session:
            return await self.store.resolve_path(session, owner_id, node_id)

    async def get_breadcrumbs(self, owner_id: str, node_id: str) -> list[Breadcrumb]:
        async with self._session() as session:
            return await self.store.breadcrumbs(session, owner_id, node_id)

    async def create_folder(
        self, owner_id: str, name: str, parent_id: str | None = None
    ) -> NodeInfo:
        async with self._session() as session:
            folder = await self.store.create_folder(session, owner_id, name, parent_id)
            return NodeInfo.from_node(folder)

    async def create_file(
        self,
        owner_id: str,
        name: str,
        mime_type: str,
        size: int,
        parent_id: str | None = None,
    ) -> UploadIntent:
        """Register a file and return the presigned URL its bytes go to.

        A same-name file already in the folder gives the new one a variant
        name.  If a concurrent writer wins the race anyway, the call is
        retried in a fresh transaction with a variant forced.
        """
        retries = self.config.create_retries
        for attempt in range(retries):
            try:
                async with self._session() as session:
                    file = await self.store.create_file(
                        session, owner_id, name, mime_type, size, parent_id,
                        force_variant=attempt > 0,
                    )
                    url = await self.storage.presign_upload(
                        file.storage_key or "", file.mime_type or mime_type,
                        expires_in=self.config.presign_expiry_seconds,
                    )
                    return UploadIntent(node=NodeInfo.from_node(file), upload_url=url)
            except ConflictError:
                if attempt + 1 >= retries:
                    raise
                logger.debug("Lost create race for %r (attempt %d), retrying", name, attempt + 1)
        raise ConflictError(f"Could not create file '{name}'")  # pragma: no cover

    async def download_url(self, owner_id: str, node_id: str) -> str:
        async with self._session() as session:
            node = await self.store.get(session, owner_id, node_id)
            if not node.is_file or not node.storage_key:
                raise BadRequestError("Cannot download a folder")
            return await self.storage.presign_download(
                node.storage_key, node.name, expires_in=self.config.presign_expiry_seconds
            )

    async def rename(self, owner_id: str, node_id: str, new_name: str) -> NodeInfo:
        async with self._session() as session:
            node = await self.store.rename(session, owner_id, node_id, new_name)
            return NodeInfo.from_node(node)

    async def move(
        self, owner_id: str, node_id: str, destination_id: str | None
    ) -> NodeInfo:
        async with self._session() as session:
            node = await self.store.move(session, owner_id, node_id, destination_id)
            return NodeInfo.from_node(node)

    async def delete(self, owner_id: str, node_id: str) -> DeleteResult:
        """Move a node (and, for folders, its subtree) to the trash."""
        async with self._session() as session:
            return await self.store.soft_delete(session, owner_id, node_id)

    async def restore(self, owner_id: str, node_id: str) -> RestoreResult:
        async with self._session() as session:
            return await self.store.restore(session, owner_id, node_id)

    async def purge(self, owner_id: str, node_id: str) -> PurgeResult:
        """Permanently delete a node, its subtree, their objects and their share links.

        Progress is committed even when some storage deletes fail; the call
        then raises ``PurgeIncompleteError`` carrying the result.
        """
        async with self._session() as session:
            result = await self.store.purge(session, owner_id, node_id, self.storage)
            await self.sharing.delete_shares_for_nodes(
                session, result.deleted_ids, batch_size=self.config.cascade_batch_size
            )
        if not result.complete:
            raise PurgeIncompleteError(
                f"Purge of {node_id} left {len(result.failures)} object(s) undeleted",
                result,
            )
        return result

    async def list_trash(
        self, owner_id: str, *, page: int = 1, limit: int | None = None
    ) -> NodePage:
        async with self._session() as session:
            return await self.store.list_trash(
                session, owner_id, page=page, limit=self._limit(limit)
            )

    # ------------------------------------------------------------------
    # Share links (creator side)
    # ------------------------------------------------------------------

    async def create_share(
        self,
        owner_id: str,
        node_id: str,
        *,
        permissions: Permissions | None = None,
        access_level: AccessLevel | str | None = None,
        expires_at: datetime | None = None,
        password: str | None = None,
    ) -> ShareResult:
        async with self._session() as session:
            share = await self.sharing.create_share(
                session, owner_id, node_id,
                permissions=permissions,
                access_level=access_level,
                expires_at=expires_at,
                password=password,
            )
            info = await self.sharing.describe(session, share)
        return ShareResult(share=info, share_url=self.share_url(info.token))

    async def list_shares(
        self, owner_id: str, *, page: int = 1, limit: int | None = None
    ) -> SharePage:
        async with self._session() as session:
            return await self.sharing.list_shares(
                session, owner_id, page=page, limit=self._limit(limit)
            )

    async def get_share(self, owner_id: str, share_id: str) -> ShareInfo:
        async with self._session() as session:
            share = await self.sharing.get_share(session, owner_id, share_id)
            return await self.sharing.describe(session, share)

    async def update_share(
        self,
        owner_id: str,
        share_id: str,
        *,
        can_view: bool | None = None,
        can_edit: bool | None = None,
        can_share: bool | None = None,
        access_level: AccessLevel | str | None = None,
        expires_at: datetime | None = UNSET,
        password: str | None = UNSET,
    ) -> ShareInfo:
        async with self._session() as session:
            share = await self.sharing.update_share(
                session, owner_id, share_id,
                can_view=can_view,
                can_edit=can_edit,
                can_share=can_share,
                access_level=access_level,
                expires_at=expires_at,
                password=password,
            )
            return await self.sharing.describe(session, share)

    async def delete_share(self, owner_id: str, share_id: str) -> bool:
        async with self._session() as session:
            return await self.sharing.delete_share(session, owner_id, share_id)

    # ------------------------------------------------------------------
    # Public access by token
    # ------------------------------------------------------------------

    async def shared_info(self, token: str, password: str | None = None) -> SharedNodeInfo:
        async with self._session() as session:
            return await self.shared.info(session, token, password)

    async def shared_list(
        self,
        token: str,
        password: str | None = None,
        *,
        parent_id: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> SharedFolderPage:
        async with self._session() as session:
            return await self.shared.list(
                session, token, password,
                parent_id=parent_id, page=page, limit=self._limit(limit),
            )

    async def shared_download_url(
        self, token: str, password: str | None = None, *, node_id: str | None = None
    ) -> str:
        async with self._session() as session:
            return await self.shared.download_url(session, token, password, node_id=node_id)

    async def shared_upload(
        self,
        token: str,
        name: str,
        mime_type: str,
        size: int,
        *,
        password: str | None = None,
        parent_id: str | None = None,
    ) -> UploadIntent:
        """Upload intent through a share; the file belongs to the link owner."""
        retries = self.config.create_retries
        for attempt in range(retries):
            try:
                async with self._session() as session:
                    return await self.shared.upload(
                        session, token, password, name, mime_type, size,
                        parent_id=parent_id, force_variant=attempt > 0,
                    )
            except ConflictError:
                if attempt + 1 >= retries:
                    raise
                logger.debug("Lost shared create race for %r, retrying", name)
        raise ConflictError(f"Could not create file '{name}'")  # pragma: no cover

    async def shared_create_folder(
        self,
        token: str,
        name: str,
        *,
        password: str | None = None,
        parent_id: str | None = None,
    ) -> NodeInfo:
        async with self._session() as session:
            return await self.shared.create_folder(
                session, token, password, name, parent_id=parent_id
            )
