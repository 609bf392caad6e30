"""ShareLink model — tokenized capability links bound to one node.

Provides ``ShareLinkBase`` (non-table) and ``ShareLink`` (concrete table).
Subclass ``ShareLinkBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per deployment.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class AccessLevel(str, Enum):
    """Distribution intent of a link. Advisory except PRIVATE + password."""

    PUBLIC = "public"
    UNLISTED = "unlisted"
    PRIVATE = "private"


def new_share_token() -> str:
    """Return a fresh unguessable share token."""
    return secrets.token_urlsafe(24)


class ShareLinkBase(SQLModel):
    """Base fields for a share link. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    token: str = Field(default_factory=new_share_token, unique=True, index=True)
    node_id: str = Field(index=True)
    can_view: bool = Field(default=True)
    can_edit: bool = Field(default=False)
    can_share: bool = Field(default=False)
    access_level: AccessLevel = Field(default=AccessLevel.UNLISTED)
    expires_at: datetime | None = Field(
        default=None,
        index=True,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    password_hash: str | None = Field(default=None)
    created_by: str = Field(index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None


class ShareLink(ShareLinkBase, table=True):
    """Default share link table — ``folia_share_links``."""

    __tablename__ = "folia_share_links"
