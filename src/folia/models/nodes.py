"""Node model — files and folders in an owner-scoped tree.

Provides ``NodeBase`` (non-table) and ``Node`` (concrete table).
Subclass ``NodeBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per deployment; copy the ``__table_args__``
of ``Node`` so the sibling-uniqueness backstop comes along.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime, Index, text
from sqlmodel import Field, SQLModel


class NodeType(str, Enum):
    """Kind of namespace entry. Immutable after creation."""

    FILE = "file"
    FOLDER = "folder"


ROOT_KEY = ""
"""``parent_key`` value for root-level nodes."""


def parent_key_for(parent_id: str | None) -> str:
    """Return the ``parent_key`` column value for *parent_id*."""
    return parent_id if parent_id is not None else ROOT_KEY


class NodeBase(SQLModel):
    """Base fields for a namespace node. Subclass with ``table=True`` for a concrete table.

    The logical path is deliberately absent: it is recomputed from the
    parent chain on demand by ``PathResolver``.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str
    # casefold() of name; searched instead of SQL lower(), which is ASCII-only on SQLite.
    name_folded: str = Field(default="")
    node_type: NodeType
    owner_id: str = Field(index=True)
    parent_id: str | None = Field(default=None, index=True)
    # Mirrors parent_id with "" for root so the unique index sees root siblings.
    parent_key: str = Field(default=ROOT_KEY)
    storage_key: str | None = Field(default=None, unique=True)
    size: int = Field(default=0)
    mime_type: str | None = Field(default=None)
    is_deleted: bool = Field(default=False, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    deleted_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )

    @property
    def is_folder(self) -> bool:
        return self.node_type == NodeType.FOLDER

    @property
    def is_file(self) -> bool:
        return self.node_type == NodeType.FILE

    def set_name(self, name: str) -> None:
        """Rename the node, keeping ``name_folded`` in sync."""
        self.name = name
        self.name_folded = name.casefold()

    def set_parent(self, parent_id: str | None) -> None:
        """Point the node at *parent_id*, keeping ``parent_key`` in sync."""
        self.parent_id = parent_id
        self.parent_key = parent_key_for(parent_id)


class Node(NodeBase, table=True):
    """Default node table — ``folia_nodes``."""

    __tablename__ = "folia_nodes"
    __table_args__ = (
        Index("ix_folia_nodes_listing", "owner_id", "parent_key", "is_deleted"),
        Index(
            "uq_folia_nodes_live_sibling",
            "owner_id",
            "parent_key",
            "node_type",
            "name",
            unique=True,
            sqlite_where=text("is_deleted = 0"),
            postgresql_where=text("NOT is_deleted"),
        ),
    )
