"""SharingService — share-link CRUD and token validation.

Stateless service that receives the share and node models at construction
and a session at call time, following the NamespaceStore pattern.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import bcrypt
from sqlalchemy import func
from sqlmodel import select

from folia.models.shares import AccessLevel

from .exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NodeNotFoundError,
    PasswordRequiredError,
    ShareExpiredError,
    ShareNotFoundError,
    UnauthorizedError,
)
from .types import Permissions, ShareInfo, SharePage
from .utils import check_pagination, ensure_utc, total_pages, utcnow, validate_id

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from folia.models.nodes import NodeBase
    from folia.models.shares import ShareLinkBase

logger = logging.getLogger(__name__)

UNSET: Any = object()
"""Marker for ``update_share`` arguments that should be left unchanged."""

# bcrypt only looks at the first 72 bytes; longer secrets are rejected.
_MAX_PASSWORD_BYTES = 72


class ShareState(Enum):
    """Outcome of one validation attempt against a share token."""

    UNVALIDATED = "unvalidated"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    PASSWORD_REQUIRED = "password_required"
    UNAUTHORIZED = "unauthorized"
    VALID = "valid"


@dataclass
class ShareAccess:
    """A validated share and the node it is bound to."""

    share: ShareLinkBase
    node: NodeBase

    @property
    def owner_id(self) -> str:
        """Effective owner for anything done through this link."""
        return self.node.owner_id


def _coerce_access_level(value: AccessLevel | str | None) -> AccessLevel | None:
    if value is None or isinstance(value, AccessLevel):
        return value
    try:
        return AccessLevel(value)
    except ValueError:
        raise InvalidArgumentError(
            f"Invalid access level: {value!r}. Must be one of "
            f"{', '.join(a.value for a in AccessLevel)}."
        ) from None


class SharingService:
    """Manages share links bound to nodes.

    Constructor receives the concrete share and node models so callers can
    use custom SQLModel subclasses with different table names.
    """

    def __init__(
        self,
        share_model: type[ShareLinkBase],
        node_model: type[NodeBase],
        *,
        bcrypt_rounds: int = 12,
        max_page_size: int = 1000,
    ) -> None:
        self._share_model = share_model
        self._node_model = node_model
        self.bcrypt_rounds = bcrypt_rounds
        self.max_page_size = max_page_size

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    async def _hash_password(self, password: str) -> str:
        encoded = password.encode("utf-8")
        if len(encoded) > _MAX_PASSWORD_BYTES:
            raise InvalidArgumentError(
                f"Password too long (max {_MAX_PASSWORD_BYTES} bytes)"
            )
        salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
        hashed = await asyncio.to_thread(bcrypt.hashpw, encoded, salt)
        return hashed.decode("utf-8")

    @staticmethod
    async def _check_password(password: str, hashed: str) -> bool:
        encoded = password.encode("utf-8")
        if len(encoded) > _MAX_PASSWORD_BYTES:
            return False
        return await asyncio.to_thread(bcrypt.checkpw, encoded, hashed.encode("utf-8"))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _node_by_id(self, session: AsyncSession, node_id: str) -> NodeBase | None:
        model = self._node_model
        result = await session.execute(select(model).where(model.id == node_id))
        return result.scalar_one_or_none()

    async def _nodes_by_id(
        self, session: AsyncSession, node_ids: Sequence[str]
    ) -> dict[str, NodeBase]:
        if not node_ids:
            return {}
        model = self._node_model
        result = await session.execute(
            select(model).where(model.id.in_(set(node_ids)))  # type: ignore[union-attr]
        )
        return {n.id: n for n in result.scalars().all()}

    async def _by_token(self, session: AsyncSession, token: str) -> ShareLinkBase | None:
        model = self._share_model
        result = await session.execute(select(model).where(model.token == token))
        return result.scalar_one_or_none()

    async def get_share(
        self, session: AsyncSession, owner_id: str, share_id: str
    ) -> ShareLinkBase:
        """Return a share created by *owner_id* or raise ``ShareNotFoundError``."""
        validate_id(share_id, "share id")
        model = self._share_model
        result = await session.execute(
            select(model).where(model.id == share_id, model.created_by == owner_id)
        )
        share = result.scalar_one_or_none()
        if share is None:
            raise ShareNotFoundError(f"Share link not found: {share_id}")
        return share

    async def describe(self, session: AsyncSession, share: ShareLinkBase) -> ShareInfo:
        """Convert a share to ``ShareInfo`` with its node fetched by id."""
        node = await self._node_by_id(session, share.node_id)
        return ShareInfo.from_share(share, node)

    # ------------------------------------------------------------------
    # CRUD (owner side)
    # ------------------------------------------------------------------

    async def create_share(
        self,
        session: AsyncSession,
        owner_id: str,
        node_id: str,
        *,
        permissions: Permissions | None = None,
        access_level: AccessLevel | str | None = None,
        expires_at: datetime | None = None,
        password: str | None = None,
    ) -> ShareLinkBase:
        """Create a share link on a live node owned by *owner_id*. Flushes, no commit."""
        validate_id(node_id, "node id")
        node = await self._node_by_id(session, node_id)
        if node is None or node.owner_id != owner_id or node.is_deleted:
            raise NodeNotFoundError(f"File or folder not found: {node_id}")

        perms = permissions or Permissions()
        share = self._share_model(
            node_id=node.id,
            created_by=owner_id,
            can_view=perms.can_view,
            can_edit=perms.can_edit,
            can_share=perms.can_share,
            access_level=_coerce_access_level(access_level) or AccessLevel.UNLISTED,
            expires_at=ensure_utc(expires_at) if expires_at is not None else None,
            password_hash=await self._hash_password(password) if password else None,
        )
        session.add(share)
        await session.flush()
        logger.info("Created share %s on node %s for %s", share.id, node.id, owner_id)
        return share

    async def list_shares(
        self,
        session: AsyncSession,
        owner_id: str,
        *,
        page: int = 1,
        limit: int = 50,
    ) -> SharePage:
        """List share links created by *owner_id*, newest first."""
        offset, limit = check_pagination(page, limit, self.max_page_size)
        model = self._share_model
        condition = model.created_by == owner_id
        total = await session.scalar(
            select(func.count()).select_from(model).where(condition)
        ) or 0
        result = await session.execute(
            select(model)
            .where(condition)
            .order_by(model.created_at.desc(), model.id)  # type: ignore[union-attr]
            .offset(offset)
            .limit(limit)
        )
        shares = list(result.scalars().all())
        nodes = await self._nodes_by_id(session, [s.node_id for s in shares])
        return SharePage(
            items=[ShareInfo.from_share(s, nodes.get(s.node_id)) for s in shares],
            current_page=page,
            total_pages=total_pages(total, limit),
            total_items=total,
        )

    async def update_share(
        self,
        session: AsyncSession,
        owner_id: str,
        share_id: str,
        *,
        can_view: bool | None = None,
        can_edit: bool | None = None,
        can_share: bool | None = None,
        access_level: AccessLevel | str | None = None,
        expires_at: datetime | None = UNSET,
        password: str | None = UNSET,
    ) -> ShareLinkBase:
        """Update a share in place.

        Permission flags left as None keep their value.  ``expires_at=None``
        removes the expiry.  ``password=None`` removes the password, a
        non-empty string replaces it, and ``""`` leaves it unchanged.
        """
        share = await self.get_share(session, owner_id, share_id)

        if can_view is not None:
            share.can_view = can_view
        if can_edit is not None:
            share.can_edit = can_edit
        if can_share is not None:
            share.can_share = can_share

        level = _coerce_access_level(access_level)
        if level is not None:
            share.access_level = level

        if expires_at is not UNSET:
            share.expires_at = ensure_utc(expires_at) if expires_at is not None else None

        if password is not UNSET:
            if password is None:
                share.password_hash = None
            elif password:
                share.password_hash = await self._hash_password(password)

        share.updated_at = utcnow()
        await session.flush()
        return share

    async def delete_share(self, session: AsyncSession, owner_id: str, share_id: str) -> bool:
        """Delete a share created by *owner_id*. Raises if it does not exist."""
        share = await self.get_share(session, owner_id, share_id)
        await session.delete(share)
        await session.flush()
        return True

    async def delete_shares_for_nodes(
        self, session: AsyncSession, node_ids: Sequence[str], *, batch_size: int = 500
    ) -> int:
        """Remove every share bound to one of *node_ids*. Returns the count removed."""
        model = self._share_model
        count = 0
        ids = list(node_ids)
        for start in range(0, len(ids), batch_size):
            result = await session.execute(
                select(model).where(
                    model.node_id.in_(ids[start : start + batch_size])  # type: ignore[union-attr]
                )
            )
            for share in result.scalars().all():
                await session.delete(share)
                count += 1
        if count:
            await session.flush()
        return count

    # ------------------------------------------------------------------
    # Token validation (visitor side)
    # ------------------------------------------------------------------

    async def validate_token(
        self,
        session: AsyncSession,
        token: str,
        password: str | None = None,
        *,
        now: datetime | None = None,
    ) -> ShareAccess:
        """Resolve *token* to its share and node, enforcing expiry and password.

        Raises ``ShareNotFoundError`` for unknown tokens, ``ShareExpiredError``
        for expired links (whatever password is given), ``NodeNotFoundError``
        when the bound node is gone or trashed, ``PasswordRequiredError`` when
        a password is set but none was supplied, and ``UnauthorizedError`` on a
        wrong password.
        """
        if not token:
            raise InvalidArgumentError("Share token is required")

        share = await self._by_token(session, token)
        if share is None:
            raise ShareNotFoundError("Shared resource not found")

        now = ensure_utc(now) if now is not None else utcnow()
        if share.expires_at is not None and ensure_utc(share.expires_at) <= now:
            raise ShareExpiredError("Share link has expired")

        node = await self._node_by_id(session, share.node_id)
        if node is None or node.is_deleted:
            raise NodeNotFoundError("Referenced file or folder not found")

        if share.password_hash is not None:
            if not password:
                raise PasswordRequiredError("Password required")
            if not await self._check_password(password, share.password_hash):
                raise UnauthorizedError("Invalid password")

        return ShareAccess(share=share, node=node)

    async def check_token(
        self,
        session: AsyncSession,
        token: str,
        password: str | None = None,
        *,
        now: datetime | None = None,
    ) -> ShareState:
        """Classify a validation attempt without raising."""
        try:
            await self.validate_token(session, token, password, now=now)
        except ShareExpiredError:
            return ShareState.EXPIRED
        except PasswordRequiredError:
            return ShareState.PASSWORD_REQUIRED
        except UnauthorizedError:
            return ShareState.UNAUTHORIZED
        except (ShareNotFoundError, NodeNotFoundError, InvalidArgumentError):
            return ShareState.NOT_FOUND
        return ShareState.VALID

    @staticmethod
    def require_edit_permission(access: ShareAccess | None) -> None:
        """Raise ``ForbiddenError`` unless the validated share allows edits."""
        if access is None:
            raise ForbiddenError("Share validation required before checking permissions")
        if not access.share.can_edit:
            raise ForbiddenError("You do not have permission to edit this resource")

    @staticmethod
    def require_view_permission(access: ShareAccess | None) -> None:
        """Raise ``ForbiddenError`` unless the validated share allows viewing."""
        if access is None:
            raise ForbiddenError("Share validation required before checking permissions")
        if not access.share.can_view:
            raise ForbiddenError("You do not have permission to view this resource")
