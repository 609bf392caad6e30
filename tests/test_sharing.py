"""Tests for SharingService — share CRUD and token validation."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from folia.fs.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NodeNotFoundError,
    PasswordRequiredError,
    ShareExpiredError,
    ShareNotFoundError,
    UnauthorizedError,
)
from folia.fs.sharing import ShareAccess, SharingService, ShareState
from folia.fs.types import Permissions
from folia.models import AccessLevel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from folia.fs.tree import NamespaceStore
    from folia.models import Node


@pytest.fixture
async def doc(store: NamespaceStore, async_session: AsyncSession) -> Node:
    return await store.create_file(async_session, "u1", "doc.txt", "text/plain", 3)


# ---------------------------------------------------------------------------
# create / get / list
# ---------------------------------------------------------------------------


class TestCreateShare:
    async def test_defaults(self, sharing: SharingService, async_session: AsyncSession, doc: Node):
        share = await sharing.create_share(async_session, "u1", doc.id)
        assert share.node_id == doc.id
        assert share.created_by == "u1"
        assert share.can_view and not share.can_edit and not share.can_share
        assert share.access_level == AccessLevel.UNLISTED
        assert share.token
        assert not share.has_password

    async def test_options(self, sharing: SharingService, async_session: AsyncSession, doc: Node):
        expires = datetime.now(UTC) + timedelta(days=1)
        share = await sharing.create_share(
            async_session, "u1", doc.id,
            permissions=Permissions(can_view=True, can_edit=True),
            access_level="public",
            expires_at=expires,
            password="hunter2",
        )
        assert share.can_edit
        assert share.access_level == AccessLevel.PUBLIC
        assert share.expires_at == expires
        assert share.has_password
        assert share.password_hash != "hunter2"

    async def test_naive_expiry_taken_as_utc(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(
            async_session, "u1", doc.id, expires_at=datetime(2030, 1, 1, 12, 0)
        )
        assert share.expires_at == datetime(2030, 1, 1, 12, 0, tzinfo=UTC)

    async def test_bad_access_level(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        with pytest.raises(InvalidArgumentError, match="Invalid access level"):
            await sharing.create_share(async_session, "u1", doc.id, access_level="secret")

    async def test_password_too_long(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        with pytest.raises(InvalidArgumentError):
            await sharing.create_share(async_session, "u1", doc.id, password="x" * 73)

    async def test_node_of_other_owner(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        with pytest.raises(NodeNotFoundError):
            await sharing.create_share(async_session, "u2", doc.id)

    async def test_deleted_node(
        self,
        sharing: SharingService,
        store: NamespaceStore,
        async_session: AsyncSession,
        doc: Node,
    ):
        await store.soft_delete(async_session, "u1", doc.id)
        with pytest.raises(NodeNotFoundError):
            await sharing.create_share(async_session, "u1", doc.id)


class TestGetAndList:
    async def test_get_scoped_by_creator(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(async_session, "u1", doc.id)
        assert (await sharing.get_share(async_session, "u1", share.id)).id == share.id
        with pytest.raises(ShareNotFoundError):
            await sharing.get_share(async_session, "u2", share.id)

    async def test_list_includes_node(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        await sharing.create_share(async_session, "u1", doc.id)
        await sharing.create_share(async_session, "u1", doc.id, password="pw")

        page = await sharing.list_shares(async_session, "u1")
        assert page.total_items == 2
        assert page.total_pages == 1
        assert all(info.node is not None and info.node.name == "doc.txt" for info in page.items)
        assert sorted(info.has_password for info in page.items) == [False, True]
        assert (await sharing.list_shares(async_session, "u2")).items == []

    async def test_list_pagination(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        for _ in range(3):
            await sharing.create_share(async_session, "u1", doc.id)
        page = await sharing.list_shares(async_session, "u1", page=2, limit=2)
        assert page.total_pages == 2
        assert len(page.items) == 1


# ---------------------------------------------------------------------------
# update / delete
# ---------------------------------------------------------------------------


class TestUpdateShare:
    async def test_partial_permissions(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(async_session, "u1", doc.id)
        updated = await sharing.update_share(async_session, "u1", share.id, can_edit=True)
        assert updated.can_view and updated.can_edit and not updated.can_share

    async def test_access_level(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(async_session, "u1", doc.id)
        updated = await sharing.update_share(
            async_session, "u1", share.id, access_level=AccessLevel.PRIVATE
        )
        assert updated.access_level == AccessLevel.PRIVATE

    async def test_expiry_set_and_cleared(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(async_session, "u1", doc.id)
        expires = datetime.now(UTC) + timedelta(hours=1)
        assert (
            await sharing.update_share(async_session, "u1", share.id, expires_at=expires)
        ).expires_at == expires
        # Leaving expires_at out keeps it.
        assert (
            await sharing.update_share(async_session, "u1", share.id, can_share=True)
        ).expires_at == expires
        assert (
            await sharing.update_share(async_session, "u1", share.id, expires_at=None)
        ).expires_at is None

    async def test_password_semantics(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(async_session, "u1", doc.id, password="one")
        original = share.password_hash

        await sharing.update_share(async_session, "u1", share.id, password="")
        assert share.password_hash == original

        await sharing.update_share(async_session, "u1", share.id, password="two")
        assert share.password_hash not in (None, original)
        await sharing.validate_token(async_session, share.token, "two")

        await sharing.update_share(async_session, "u1", share.id, password=None)
        assert not share.has_password

    async def test_other_creator(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(async_session, "u1", doc.id)
        with pytest.raises(ShareNotFoundError):
            await sharing.update_share(async_session, "u2", share.id, can_edit=True)


class TestDeleteShare:
    async def test_delete(self, sharing: SharingService, async_session: AsyncSession, doc: Node):
        share = await sharing.create_share(async_session, "u1", doc.id)
        assert await sharing.delete_share(async_session, "u1", share.id)
        with pytest.raises(ShareNotFoundError):
            await sharing.get_share(async_session, "u1", share.id)
        with pytest.raises(ShareNotFoundError):
            await sharing.delete_share(async_session, "u1", share.id)

    async def test_delete_for_nodes(
        self,
        sharing: SharingService,
        store: NamespaceStore,
        async_session: AsyncSession,
        doc: Node,
    ):
        other = await store.create_file(async_session, "u1", "other.txt", "text/plain", 1)
        await sharing.create_share(async_session, "u1", doc.id)
        await sharing.create_share(async_session, "u1", doc.id)
        kept = await sharing.create_share(async_session, "u1", other.id)

        removed = await sharing.delete_shares_for_nodes(async_session, [doc.id], batch_size=1)
        assert removed == 2
        page = await sharing.list_shares(async_session, "u1")
        assert [s.id for s in page.items] == [kept.id]


# ---------------------------------------------------------------------------
# Token validation
# ---------------------------------------------------------------------------


class TestValidateToken:
    async def test_valid(self, sharing: SharingService, async_session: AsyncSession, doc: Node):
        share = await sharing.create_share(async_session, "u1", doc.id)
        access = await sharing.validate_token(async_session, share.token)
        assert isinstance(access, ShareAccess)
        assert access.node.id == doc.id
        assert access.owner_id == "u1"

    async def test_unknown_token(self, sharing: SharingService, async_session: AsyncSession):
        with pytest.raises(ShareNotFoundError):
            await sharing.validate_token(async_session, "no-such-token")

    async def test_expired_regardless_of_password(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(
            async_session, "u1", doc.id,
            expires_at=datetime.now(UTC) - timedelta(minutes=1),
            password="pw",
        )
        with pytest.raises(ShareExpiredError) as excinfo:
            await sharing.validate_token(async_session, share.token, "pw")
        assert isinstance(excinfo.value, ForbiddenError)
        with pytest.raises(ShareExpiredError):
            await sharing.validate_token(async_session, share.token)

    async def test_expiry_boundary(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        at = datetime(2030, 6, 1, tzinfo=UTC)
        share = await sharing.create_share(async_session, "u1", doc.id, expires_at=at)
        before = at - timedelta(seconds=1)
        assert (await sharing.validate_token(async_session, share.token, now=before)).share
        with pytest.raises(ShareExpiredError):
            await sharing.validate_token(async_session, share.token, now=at)

    async def test_naive_now_is_utc(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        at = datetime(2030, 6, 1, tzinfo=UTC)
        share = await sharing.create_share(async_session, "u1", doc.id, expires_at=at)
        naive_before = datetime(2030, 5, 31, 23, 59)
        assert (await sharing.validate_token(async_session, share.token, now=naive_before)).share
        with pytest.raises(ShareExpiredError):
            await sharing.validate_token(async_session, share.token, now=datetime(2030, 6, 1))

    async def test_node_deleted(
        self,
        sharing: SharingService,
        store: NamespaceStore,
        async_session: AsyncSession,
        doc: Node,
    ):
        share = await sharing.create_share(async_session, "u1", doc.id)
        await store.soft_delete(async_session, "u1", doc.id)
        with pytest.raises(NodeNotFoundError):
            await sharing.validate_token(async_session, share.token)

    async def test_password_required(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(async_session, "u1", doc.id, password="pw")
        with pytest.raises(PasswordRequiredError) as excinfo:
            await sharing.validate_token(async_session, share.token)
        assert excinfo.value.requires_password
        assert excinfo.value.kind == "unauthorized"

    async def test_wrong_password(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(async_session, "u1", doc.id, password="pw")
        with pytest.raises(UnauthorizedError) as excinfo:
            await sharing.validate_token(async_session, share.token, "nope")
        assert not isinstance(excinfo.value, PasswordRequiredError)
        assert not excinfo.value.requires_password

    async def test_right_password(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(async_session, "u1", doc.id, password="pw")
        access = await sharing.validate_token(async_session, share.token, "pw")
        assert access.share.id == share.id


class TestCheckToken:
    async def test_states(
        self,
        sharing: SharingService,
        store: NamespaceStore,
        async_session: AsyncSession,
        doc: Node,
    ):
        open_share = await sharing.create_share(async_session, "u1", doc.id)
        locked = await sharing.create_share(async_session, "u1", doc.id, password="pw")
        expired = await sharing.create_share(
            async_session, "u1", doc.id, expires_at=datetime.now(UTC) - timedelta(seconds=1)
        )

        check = sharing.check_token
        assert await check(async_session, open_share.token) is ShareState.VALID
        assert await check(async_session, locked.token) is ShareState.PASSWORD_REQUIRED
        assert await check(async_session, locked.token, "bad") is ShareState.UNAUTHORIZED
        assert await check(async_session, locked.token, "pw") is ShareState.VALID
        assert await check(async_session, expired.token) is ShareState.EXPIRED
        assert await check(async_session, "missing") is ShareState.NOT_FOUND
        assert await check(async_session, "") is ShareState.NOT_FOUND

        await store.soft_delete(async_session, "u1", doc.id)
        assert await check(async_session, open_share.token) is ShareState.NOT_FOUND


class TestPermissionChecks:
    async def test_edit_required(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(async_session, "u1", doc.id)
        access = await sharing.validate_token(async_session, share.token)
        sharing.require_view_permission(access)
        with pytest.raises(ForbiddenError):
            sharing.require_edit_permission(access)

    async def test_view_revoked(
        self, sharing: SharingService, async_session: AsyncSession, doc: Node
    ):
        share = await sharing.create_share(
            async_session, "u1", doc.id, permissions=Permissions(can_view=False, can_edit=True)
        )
        access = await sharing.validate_token(async_session, share.token)
        sharing.require_edit_permission(access)
        with pytest.raises(ForbiddenError):
            sharing.require_view_permission(access)

    def test_unvalidated(self, sharing: SharingService):
        with pytest.raises(ForbiddenError):
            sharing.require_edit_permission(None)
        with pytest.raises(ForbiddenError):
            sharing.require_view_permission(None)
