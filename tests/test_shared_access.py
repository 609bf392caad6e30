"""Tests for SharedAccess — anonymous access through share tokens."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from folia.fs.exceptions import (
    BadRequestError,
    ForbiddenError,
    NodeNotFoundError,
    PasswordRequiredError,
)
from folia.fs.shared import SharedAccess
from folia.fs.types import Permissions

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from folia.fs.sharing import SharingService
    from folia.fs.tree import NamespaceStore
    from folia.models import Node
    from folia.storage import MemoryBlobStore

EDIT = Permissions(can_view=True, can_edit=True)


@pytest.fixture
def shared(
    store: NamespaceStore, sharing: SharingService, blobs: MemoryBlobStore
) -> SharedAccess:
    return SharedAccess(store, sharing, blobs, presign_expiry_seconds=600)


@pytest.fixture
async def tree(store: NamespaceStore, async_session: AsyncSession) -> dict[str, Node]:
    """u1: Shared/{Sub/{deep.txt}, top.txt}, Private/{secret.txt}, root.txt"""
    shared_dir = await store.create_folder(async_session, "u1", "Shared")
    sub = await store.create_folder(async_session, "u1", "Sub", shared_dir.id)
    private = await store.create_folder(async_session, "u1", "Private")
    return {
        "shared": shared_dir,
        "sub": sub,
        "private": private,
        "deep": await store.create_file(async_session, "u1", "deep.txt", "text/plain", 1, sub.id),
        "top": await store.create_file(
            async_session, "u1", "top.txt", "text/plain", 1, shared_dir.id
        ),
        "secret": await store.create_file(
            async_session, "u1", "secret.txt", "text/plain", 1, private.id
        ),
        "root": await store.create_file(async_session, "u1", "root.txt", "text/plain", 1),
    }


async def _token(sharing: SharingService, session: AsyncSession, node: Node, **kwargs) -> str:
    share = await sharing.create_share(session, "u1", node.id, **kwargs)
    return share.token


class TestInfo:
    async def test_file_share(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["top"], access_level="public")
        info = await shared.info(async_session, token)
        assert info.id == tree["top"].id
        assert info.name == "top.txt"
        assert info.node_type == "file"
        assert info.access_level == "public"
        assert info.permissions == Permissions()
        assert not info.has_password

    async def test_password_gate(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"], password="pw")
        with pytest.raises(PasswordRequiredError):
            await shared.info(async_session, token)
        assert (await shared.info(async_session, token, "pw")).has_password


class TestList:
    async def test_shared_folder(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"])
        page = await shared.list(async_session, token)
        assert [n.name for n in page.items] == ["Sub", "top.txt"]
        assert page.parent_id == tree["shared"].id
        assert page.parent_name == "Shared"

    async def test_subfolder(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"])
        page = await shared.list(async_session, token, parent_id=tree["sub"].id)
        assert [n.name for n in page.items] == ["deep.txt"]
        assert page.parent_name == "Sub"

    async def test_outside_subtree(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"])
        with pytest.raises(NodeNotFoundError):
            await shared.list(async_session, token, parent_id=tree["private"].id)

    async def test_file_share_cannot_list(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["top"])
        with pytest.raises(BadRequestError):
            await shared.list(async_session, token)


class TestDownload:
    async def test_file_share(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["top"])
        url = await shared.download_url(async_session, token)
        assert url.startswith("memory://folia/u1/Shared/top.txt?method=GET")
        assert "filename=top.txt" in url
        assert "expires_in=600" in url

    async def test_file_inside_folder_share(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"])
        url = await shared.download_url(async_session, token, node_id=tree["deep"].id)
        assert "u1/Shared/Sub/deep.txt" in url

    async def test_file_outside_folder_share(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"])
        with pytest.raises(NodeNotFoundError):
            await shared.download_url(async_session, token, node_id=tree["secret"].id)

    async def test_other_node_through_file_share(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["top"])
        with pytest.raises(NodeNotFoundError):
            await shared.download_url(async_session, token, node_id=tree["root"].id)

    async def test_folder_itself(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"])
        with pytest.raises(BadRequestError):
            await shared.download_url(async_session, token)

    async def test_view_permission_required(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(
            sharing, async_session, tree["top"], permissions=Permissions(can_view=False)
        )
        with pytest.raises(ForbiddenError):
            await shared.download_url(async_session, token)


class TestUpload:
    async def test_into_folder_share_as_owner(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"], permissions=EDIT)
        intent = await shared.upload(async_session, token, None, "new.txt", "text/plain", 5)
        assert intent.node.owner_id == "u1"
        assert intent.node.parent_id == tree["shared"].id
        assert intent.node.storage_key == "u1/Shared/new.txt"
        assert intent.upload_url.startswith("memory://folia/u1/Shared/new.txt?method=PUT")

    async def test_into_subfolder(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"], permissions=EDIT)
        intent = await shared.upload(
            async_session, token, None, "n.txt", "text/plain", 1, parent_id=tree["sub"].id
        )
        assert intent.node.storage_key == "u1/Shared/Sub/n.txt"

    async def test_outside_subtree(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"], permissions=EDIT)
        with pytest.raises(NodeNotFoundError):
            await shared.upload(
                async_session, token, None, "n.txt", "text/plain", 1,
                parent_id=tree["private"].id,
            )

    async def test_file_share_uploads_beside_file(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["deep"], permissions=EDIT)
        intent = await shared.upload(async_session, token, None, "n.txt", "text/plain", 1)
        assert intent.node.parent_id == tree["sub"].id

    async def test_root_file_share_has_no_target(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["root"], permissions=EDIT)
        with pytest.raises(BadRequestError):
            await shared.upload(async_session, token, None, "n.txt", "text/plain", 1)

    async def test_edit_permission_required(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"])
        with pytest.raises(ForbiddenError):
            await shared.upload(async_session, token, None, "n.txt", "text/plain", 1)

    async def test_duplicate_gets_variant(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"], permissions=EDIT)
        intent = await shared.upload(async_session, token, None, "top.txt", "text/plain", 1)
        assert intent.node.name != "top.txt"
        assert intent.node.name.startswith("top-")


class TestCreateFolder:
    async def test_create(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        store: NamespaceStore,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"], permissions=EDIT)
        folder = await shared.create_folder(async_session, token, None, "New")
        assert folder.owner_id == "u1"
        assert folder.parent_id == tree["shared"].id
        node = await store.get(async_session, "u1", folder.id)
        assert node.is_folder

    async def test_view_only(
        self,
        shared: SharedAccess,
        sharing: SharingService,
        async_session: AsyncSession,
        tree: dict[str, Node],
    ):
        token = await _token(sharing, async_session, tree["shared"])
        with pytest.raises(ForbiddenError):
            await shared.create_folder(async_session, token, None, "New")
