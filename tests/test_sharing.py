"""Tests for SharingService — shares, public links and token resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from homecloud.exceptions import NotFoundError, ValidationError
from homecloud.fs.permissions import SharePermission
from homecloud.fs.sharing import generate_share_token

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from homecloud.fs.sharing import SharingService
    from homecloud.fs.tree import FileTree
    from homecloud.models.users import User


@pytest.fixture
def sharing(tree: FileTree) -> SharingService:
    return tree.sharing


@pytest.fixture
async def report(tree: FileTree, async_session: AsyncSession, alice: User):
    return await tree.register_upload(
        async_session, alice.id, None, "report.pdf", "blob-report", 2048, "application/pdf"
    )


class TestPermission:
    def test_parse(self):
        assert SharePermission.parse("view") is SharePermission.VIEW
        assert SharePermission.parse("edit") is SharePermission.EDIT

    def test_parse_invalid(self):
        with pytest.raises(ValidationError, match="Invalid permission"):
            SharePermission.parse("admin")


class TestToken:
    def test_shape(self):
        token = generate_share_token()
        assert len(token) == 32
        int(token, 16)

    def test_unique(self):
        assert len({generate_share_token() for _ in range(100)}) == 100


# ---------------------------------------------------------------------------
# create_share / create_public_link
# ---------------------------------------------------------------------------


class TestCreateShare:
    async def test_create(self, sharing, async_session, alice, bob, report):
        result = await sharing.create_share(async_session, alice.id, report.id, bob.id)
        assert result.created is True
        share = result.share
        assert share.file_id == report.id
        assert share.shared_by == alice.id
        assert share.shared_with == bob.id
        assert share.permission == "view"
        assert share.file_name == "report.pdf"
        assert share.shared_with_name == "bob"
        assert share.shared_with_email == "bob@example.com"
        assert share.is_public is False

    async def test_idempotent(self, sharing, async_session, alice, bob, report):
        first = await sharing.create_share(async_session, alice.id, report.id, bob.id)
        second = await sharing.create_share(async_session, alice.id, report.id, bob.id, "edit")
        assert second.created is False
        assert second.share.id == first.share.id
        assert second.share.token == first.share.token

    async def test_self_share_rejected(self, sharing, async_session, alice, report):
        with pytest.raises(ValidationError):
            await sharing.create_share(async_session, alice.id, report.id, alice.id)

    async def test_invalid_permission(self, sharing, async_session, alice, bob, report):
        with pytest.raises(ValidationError):
            await sharing.create_share(async_session, alice.id, report.id, bob.id, "owner")

    async def test_unknown_recipient(self, sharing, async_session, alice, report):
        with pytest.raises(NotFoundError):
            await sharing.create_share(async_session, alice.id, report.id, 999)

    async def test_only_owner_can_share(self, sharing, async_session, alice, bob, carol, report):
        with pytest.raises(NotFoundError):
            await sharing.create_share(async_session, bob.id, report.id, carol.id)

    async def test_public_link(self, sharing, async_session, alice, report):
        result = await sharing.create_public_link(async_session, alice.id, report.id)
        assert result.share.is_public
        again = await sharing.create_public_link(async_session, alice.id, report.id)
        assert again.created is False
        assert again.share.token == result.share.token

    async def test_user_share_and_public_link_are_distinct(
        self, sharing, async_session, alice, bob, report
    ):
        user_share = await sharing.create_share(async_session, alice.id, report.id, bob.id)
        link = await sharing.create_public_link(async_session, alice.id, report.id)
        assert user_share.share.id != link.share.id
        assert user_share.share.token != link.share.token


# ---------------------------------------------------------------------------
# listing
# ---------------------------------------------------------------------------


class TestListing:
    async def test_my_shares_and_shared_with_me(
        self, sharing, async_session, alice, bob, carol, report
    ):
        await sharing.create_share(async_session, alice.id, report.id, bob.id)
        await sharing.create_public_link(async_session, alice.id, report.id)

        mine = await sharing.list_my_shares(async_session, alice.id)
        assert len(mine) == 2

        with_bob = await sharing.list_shared_with_me(async_session, bob.id)
        assert [s.file_name for s in with_bob] == ["report.pdf"]
        assert with_bob[0].shared_by_name == "alice"
        assert await sharing.list_shared_with_me(async_session, carol.id) == []

    async def test_trashed_file_hidden_from_recipient(
        self, tree, sharing, async_session, alice, bob, report
    ):
        await sharing.create_share(async_session, alice.id, report.id, bob.id)
        await tree.trash(async_session, alice.id, report.id)
        assert await sharing.list_shared_with_me(async_session, bob.id) == []

    async def test_shareable_users_excludes_caller(self, sharing, async_session, alice, bob, carol):
        users = await sharing.list_shareable_users(async_session, bob.id)
        assert [u.username for u in users] == ["alice", "carol"]

    async def test_counts(self, sharing, async_session, alice, bob, report):
        await sharing.create_share(async_session, alice.id, report.id, bob.id)
        await sharing.create_public_link(async_session, alice.id, report.id)
        assert await sharing.count_for_user(async_session, alice.id) == (2, 0)
        assert await sharing.count_for_user(async_session, bob.id) == (0, 1)


# ---------------------------------------------------------------------------
# revoke / resolve
# ---------------------------------------------------------------------------


class TestRevoke:
    async def test_revoke(self, sharing, async_session, alice, bob, report):
        result = await sharing.create_share(async_session, alice.id, report.id, bob.id)
        await sharing.revoke_share(async_session, alice.id, result.share.id)
        assert await sharing.list_my_shares(async_session, alice.id) == []

    async def test_only_creator_can_revoke(self, sharing, async_session, alice, bob, report):
        result = await sharing.create_share(async_session, alice.id, report.id, bob.id)
        with pytest.raises(NotFoundError):
            await sharing.revoke_share(async_session, bob.id, result.share.id)

    async def test_revoked_token_no_longer_resolves(self, sharing, async_session, alice, report):
        link = await sharing.create_public_link(async_session, alice.id, report.id)
        await sharing.revoke_share(async_session, alice.id, link.share.id)
        with pytest.raises(NotFoundError):
            await sharing.resolve_public_token(async_session, link.share.token)


class TestResolvePublicToken:
    async def test_resolve(self, sharing, async_session, alice, report):
        link = await sharing.create_public_link(async_session, alice.id, report.id)
        public = await sharing.resolve_public_token(async_session, link.share.token)
        assert public.file_id == report.id
        assert public.name == "report.pdf"
        assert public.size_bytes == 2048
        assert public.owner_id == alice.id
        assert public.owner_name == "alice"
        assert public.blob_name == "blob-report"

    async def test_user_share_token_resolves(self, sharing, async_session, alice, bob, report):
        result = await sharing.create_share(async_session, alice.id, report.id, bob.id)
        public = await sharing.resolve_public_token(async_session, result.share.token)
        assert public.file_id == report.id

    async def test_unknown_or_empty_token(self, sharing, async_session):
        with pytest.raises(NotFoundError):
            await sharing.resolve_public_token(async_session, "nope")
        with pytest.raises(NotFoundError):
            await sharing.resolve_public_token(async_session, "")

    async def test_trashed_file_does_not_resolve(
        self, tree, sharing, async_session, alice, report
    ):
        link = await sharing.create_public_link(async_session, alice.id, report.id)
        await tree.trash(async_session, alice.id, report.id)
        with pytest.raises(NotFoundError):
            await sharing.resolve_public_token(async_session, link.share.token)

    async def test_folder_does_not_resolve(self, tree, sharing, async_session, alice):
        folder = await tree.create_folder(async_session, alice.id, "Docs")
        link = await sharing.create_public_link(async_session, alice.id, folder.id)
        with pytest.raises(NotFoundError):
            await sharing.resolve_public_token(async_session, link.share.token)
