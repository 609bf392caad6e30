"""Subtree cascades — soft-delete, deleted-descendant probe, permanent purge.

Subtrees are walked breadth-first with an explicit queue of folder ids,
querying children ``batch_size`` parents at a time, so neither memory per
query nor call-stack depth grows with the tree.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import TYPE_CHECKING

from sqlalchemy import delete
from sqlmodel import select

from folia.models.nodes import NodeType

from .exceptions import StorageError
from .types import PurgeFailure, PurgeResult
from .utils import utcnow

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession

    from folia.models.nodes import NodeBase
    from folia.storage.protocol import BlobStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


async def iter_subtree_batches(
    session: AsyncSession,
    model: type[NodeBase],
    owner_id: str,
    root_id: str,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    include_deleted: bool = False,
) -> AsyncIterator[list[NodeBase]]:
    """Yield the descendants of *root_id* (exclusive) in breadth-first batches.

    Each yielded list holds the children of up to *batch_size* folders.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    pending: list[str] = [root_id]
    seen: set[str] = {root_id}
    while pending:
        parent_ids, pending = pending[:batch_size], pending[batch_size:]
        conditions = [
            model.owner_id == owner_id,
            model.parent_id.in_(parent_ids),  # type: ignore[union-attr]
        ]
        if not include_deleted:
            conditions.append(model.is_deleted.is_(False))  # type: ignore[union-attr]
        result = await session.execute(select(model).where(*conditions))
        children = list(result.scalars().all())
        for child in children:
            if child.is_folder and child.id not in seen:
                seen.add(child.id)
                pending.append(child.id)
        if children:
            yield children


async def folder_height(
    session: AsyncSession,
    model: type[NodeBase],
    owner_id: str,
    root_id: str,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    limit: int | None = None,
) -> int:
    """Return how many levels of folders lie below *root_id*.

    Soft-deleted folders count, since restoring them brings their depth
    back.  Counting stops once the height exceeds *limit*.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    height = 0
    level: list[str] = [root_id]
    seen: set[str] = {root_id}
    while level:
        next_level: list[str] = []
        for start in range(0, len(level), batch_size):
            chunk = level[start : start + batch_size]
            result = await session.execute(
                select(model.id).where(  # type: ignore[arg-type]
                    model.owner_id == owner_id,
                    model.parent_id.in_(chunk),  # type: ignore[union-attr]
                    model.node_type == NodeType.FOLDER,
                )
            )
            for child_id in result.scalars().all():
                if child_id not in seen:
                    seen.add(child_id)
                    next_level.append(child_id)
        if not next_level:
            break
        height += 1
        if limit is not None and height > limit:
            break
        level = next_level
    return height


async def soft_delete_subtree(
    session: AsyncSession,
    model: type[NodeBase],
    owner_id: str,
    root: NodeBase,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Mark *root* and every live descendant deleted. Returns the count marked."""
    now = utcnow()
    root.is_deleted = True
    root.deleted_at = now
    root.updated_at = now
    total = 1

    if root.is_folder:
        async for batch in iter_subtree_batches(
            session, model, owner_id, root.id, batch_size=batch_size
        ):
            for node in batch:
                node.is_deleted = True
                node.deleted_at = now
                node.updated_at = now
            await session.flush()
            total += len(batch)

    await session.flush()
    return total


async def has_deleted_descendants(
    session: AsyncSession,
    model: type[NodeBase],
    owner_id: str,
    node_id: str,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> bool:
    """Return True if any descendant of *node_id* is soft-deleted.

    Stops at the first deleted entry found.
    """
    batches = iter_subtree_batches(
        session, model, owner_id, node_id,
        batch_size=batch_size, include_deleted=True,
    )
    async with aclosing(batches):
        async for batch in batches:
            if any(n.is_deleted for n in batch):
                return True
    return False


async def purge_subtree(
    session: AsyncSession,
    model: type[NodeBase],
    owner_id: str,
    root: NodeBase,
    storage: BlobStore,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> PurgeResult:
    """Permanently remove *root* and its descendants, live or soft-deleted.

    Storage objects go first, metadata second.  A file whose object cannot
    be deleted keeps its row, and so does every folder on its path up to
    *root*, so a retry can pick up where this run stopped.  Other entries
    are still processed.

    Queries stay batched, but the collected rows and their parent pointers
    are held until storage has been visited, so memory grows with the size
    of the subtree.  Purge very large trees one subfolder at a time.
    """
    result = PurgeResult(node_id=root.id)

    # Parent pointer of every collected node, for retaining ancestors of failures.
    parents: dict[str, str | None] = {root.id: root.parent_id}
    levels: list[list[NodeBase]] = [[root]]
    if root.is_folder:
        async for batch in iter_subtree_batches(
            session, model, owner_id, root.id,
            batch_size=batch_size, include_deleted=True,
        ):
            levels.append(batch)
            for node in batch:
                parents[node.id] = node.parent_id

    retained: set[str] = set()
    for level in levels:
        for node in level:
            if not node.is_file or not node.storage_key:
                continue
            try:
                await storage.delete(node.storage_key)
            except StorageError as e:
                logger.warning(
                    "Storage delete failed for %s (node %s)",
                    node.storage_key, node.id, exc_info=True,
                )
                result.failures.append(
                    PurgeFailure(node_id=node.id, storage_key=node.storage_key, error=str(e))
                )
                current: str | None = node.id
                while current is not None and current not in retained:
                    retained.add(current)
                    if current == root.id:
                        break
                    current = parents.get(current)
                continue
            result.objects_deleted += 1

    # Deepest level first so no child row outlives its parent row.
    for level in reversed(levels):
        doomed = [n.id for n in level if n.id not in retained]
        for start in range(0, len(doomed), batch_size):
            chunk = doomed[start : start + batch_size]
            await session.execute(
                delete(model)
                .where(model.id.in_(chunk))  # type: ignore[union-attr]
                .execution_options(synchronize_session=False)
            )
        for node in level:
            if node.id not in retained:
                session.expunge(node)
        result.deleted_ids.extend(doomed)
        result.nodes_deleted += len(doomed)

    await session.flush()
    logger.info(
        "Purged node %s: %d rows, %d objects, %d failures",
        root.id, result.nodes_deleted, result.objects_deleted, len(result.failures),
    )
    return result
