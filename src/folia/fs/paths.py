"""PathResolver — bounded ancestor walks over parent pointers.

Logical paths are never stored.  Each call walks the parent chain with
one lookup per hop, stopping at a null parent or a dangling reference,
and failing closed on chains deeper than ``max_depth`` or on cycles.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlmodel import select

from .exceptions import PathDepthExceededError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from folia.models.nodes import NodeBase

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 256


class PathResolver:
    """Stateless parent-chain walker.

    Receives the concrete node model at construction so callers can use
    custom SQLModel subclasses.  Lookups are by id only; ownership is the
    caller's concern (a node's ancestors always share its owner).
    """

    def __init__(self, node_model: type[NodeBase], max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        if max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        self._node_model = node_model
        self.max_depth = max_depth

    async def _fetch(self, session: AsyncSession, node_id: str) -> NodeBase | None:
        model = self._node_model
        result = await session.execute(select(model).where(model.id == node_id))
        return result.scalar_one_or_none()

    async def ancestry(self, session: AsyncSession, node: NodeBase) -> list[NodeBase]:
        """Return the chain of rows from the topmost ancestor down to *node*."""
        chain: list[NodeBase] = [node]
        seen = {node.id}
        current = node
        while current.parent_id is not None:
            if len(chain) > self.max_depth:
                raise PathDepthExceededError(
                    f"Ancestor chain of node {node.id} exceeds {self.max_depth} levels"
                )
            if current.parent_id in seen:
                logger.error("Cyclic parent chain detected at node %s", current.parent_id)
                raise PathDepthExceededError(f"Cyclic parent chain at node {node.id}")
            parent = await self._fetch(session, current.parent_id)
            if parent is None:
                logger.warning(
                    "Dangling parent %s referenced by node %s", current.parent_id, current.id
                )
                break
            seen.add(parent.id)
            chain.append(parent)
            current = parent
        chain.reverse()
        return chain

    async def resolve_path(self, session: AsyncSession, node: NodeBase) -> list[str]:
        """Return the names from root to *node*, inclusive."""
        return [n.name for n in await self.ancestry(session, node)]

    async def parent_path(self, session: AsyncSession, parent: NodeBase | None) -> str:
        """Return the ``/``-joined logical path of *parent* (``""`` for root)."""
        if parent is None:
            return ""
        return "/".join(await self.resolve_path(session, parent))

    async def is_descendant(
        self, session: AsyncSession, ancestor_id: str, node_id: str | None
    ) -> bool:
        """Return True if *node_id* is *ancestor_id* or lies beneath it.

        Walks upward from *node_id*; a null *node_id* (root) is nobody's
        descendant.
        """
        if node_id is None:
            return False
        if node_id == ancestor_id:
            return True
        start = await self._fetch(session, node_id)
        if start is None:
            return False
        return any(n.id == ancestor_id for n in await self.ancestry(session, start))
