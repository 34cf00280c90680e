"""Tests for TrashService — trash, restore, trash listing, permanent delete."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlmodel import select

from homecloud.exceptions import ConflictError, NotFoundError
from homecloud.models.files import FileNode
from homecloud.models.shares import Share

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from homecloud.fs.tree import FileTree
    from homecloud.models.users import User


async def _upload(tree, session, user, name, parent_id=None):
    return await tree.register_upload(
        session, user.id, parent_id, name, f"blob-{name}-{parent_id}", 5, "text/plain"
    )


async def _rows(session: AsyncSession, ids: list[int]) -> dict[int, FileNode]:
    result = await session.execute(
        select(FileNode)
        .where(FileNode.id.in_(ids))  # type: ignore[union-attr]
        .execution_options(populate_existing=True)
    )
    return {n.id: n for n in result.scalars().all()}  # type: ignore[misc]


@pytest.fixture
async def nested(tree: FileTree, async_session: AsyncSession, alice: User):
    """A/ -> B/ -> c.txt, plus A/d.txt."""
    a = await tree.create_folder(async_session, alice.id, "A")
    b = await tree.create_folder(async_session, alice.id, "B", a.id)
    c = await _upload(tree, async_session, alice, "c.txt", b.id)
    d = await _upload(tree, async_session, alice, "d.txt", a.id)
    return a, b, c, d


# ---------------------------------------------------------------------------
# trash
# ---------------------------------------------------------------------------


class TestTrash:
    async def test_cascades_with_one_timestamp(self, tree, async_session, alice, nested):
        a, b, c, d = nested
        info = await tree.trash(async_session, alice.id, a.id)
        assert info.trashed is True

        rows = await _rows(async_session, [a.id, b.id, c.id, d.id])
        assert all(r.trashed for r in rows.values())
        stamps = {r.trashed_at for r in rows.values()}
        assert len(stamps) == 1
        assert None not in stamps

    async def test_does_not_touch_siblings(self, tree, async_session, alice, nested):
        a, b, c, d = nested
        await tree.trash(async_session, alice.id, b.id)
        rows = await _rows(async_session, [a.id, d.id])
        assert not rows[a.id].trashed
        assert not rows[d.id].trashed

    async def test_foreign_node(self, tree, async_session, alice, bob):
        theirs = await tree.create_folder(async_session, bob.id, "Bob")
        with pytest.raises(NotFoundError):
            await tree.trash(async_session, alice.id, theirs.id)


# ---------------------------------------------------------------------------
# list_trash
# ---------------------------------------------------------------------------


class TestListTrash:
    async def test_only_trash_roots(self, tree, async_session, alice, nested):
        a, b, c, d = nested
        await tree.trash(async_session, alice.id, a.id)
        listed = await tree.list_trash(async_session, alice.id)
        assert [t.id for t in listed] == [a.id]

    async def test_independently_trashed_items(self, tree, async_session, alice, nested):
        a, b, c, d = nested
        loose = await _upload(tree, async_session, alice, "loose.txt")
        await tree.trash(async_session, alice.id, c.id)
        await tree.trash(async_session, alice.id, loose.id)
        listed = await tree.list_trash(async_session, alice.id)
        assert {t.id for t in listed} == {c.id, loose.id}

    async def test_other_users_trash_hidden(self, tree, async_session, alice, bob):
        theirs = await _upload(tree, async_session, bob, "b.txt")
        await tree.trash(async_session, bob.id, theirs.id)
        assert await tree.list_trash(async_session, alice.id) == []


# ---------------------------------------------------------------------------
# restore
# ---------------------------------------------------------------------------


class TestRestore:
    async def test_restores_subtree(self, tree, async_session, alice, nested):
        a, b, c, d = nested
        await tree.trash(async_session, alice.id, a.id)
        info = await tree.restore(async_session, alice.id, a.id)
        assert info.trashed is False
        assert info.trashed_at is None

        rows = await _rows(async_session, [a.id, b.id, c.id, d.id])
        assert not any(r.trashed for r in rows.values())
        assert all(r.trashed_at is None for r in rows.values())
        assert await tree.list_trash(async_session, alice.id) == []

    async def test_restores_previously_trashed_descendant(
        self, tree, async_session, alice, nested
    ):
        a, b, c, d = nested
        await tree.trash(async_session, alice.id, c.id)
        await tree.trash(async_session, alice.id, a.id)
        await tree.restore(async_session, alice.id, a.id)
        rows = await _rows(async_session, [c.id])
        assert rows[c.id].trashed is False

    async def test_newest_wins_on_clash_inside_subtree(self, tree, async_session, alice):
        folder = await tree.create_folder(async_session, alice.id, "F")
        old = await _upload(tree, async_session, alice, "x.txt", folder.id)
        await tree.trash(async_session, alice.id, old.id)
        new = await tree.register_upload(
            async_session, alice.id, folder.id, "x.txt", "blob-new", 5, "text/plain"
        )
        await tree.trash(async_session, alice.id, folder.id)

        await tree.restore(async_session, alice.id, folder.id)

        listing = await tree.list_dir(async_session, alice.id, folder.id)
        assert [e.id for e in listing.entries] == [new.id]
        trash = await tree.list_trash(async_session, alice.id)
        assert [t.id for t in trash] == [old.id]

    async def test_root_name_clash(self, tree, async_session, alice):
        first = await _upload(tree, async_session, alice, "a.txt")
        await tree.trash(async_session, alice.id, first.id)
        await tree.register_upload(async_session, alice.id, None, "a.txt", "blob-2", 1, None)
        with pytest.raises(ConflictError):
            await tree.restore(async_session, alice.id, first.id)

    async def test_trashed_parent_restores_to_root(self, tree, async_session, alice, nested):
        a, b, c, d = nested
        await tree.trash(async_session, alice.id, d.id)
        await tree.trash(async_session, alice.id, a.id)

        info = await tree.restore(async_session, alice.id, d.id)
        assert info.parent_id is None
        listing = await tree.list_dir(async_session, alice.id)
        assert d.id in [e.id for e in listing.entries]

    async def test_active_node_not_restorable(self, tree, async_session, alice, nested):
        a, b, c, d = nested
        with pytest.raises(NotFoundError):
            await tree.restore(async_session, alice.id, a.id)


# ---------------------------------------------------------------------------
# permanent_delete
# ---------------------------------------------------------------------------


class TestPermanentDelete:
    async def test_removes_subtree_children_first(self, tree, async_session, alice, nested):
        a, b, c, d = nested
        await tree.trash(async_session, alice.id, a.id)
        result = await tree.permanent_delete(async_session, alice.id, a.id)

        assert set(result.deleted_ids) == {a.id, b.id, c.id, d.id}
        assert result.deleted_ids[-1] == a.id
        assert result.deleted_ids.index(c.id) < result.deleted_ids.index(b.id)
        assert result.total_deleted == 4
        assert sorted(result.blob_names) == sorted([f"blob-c.txt-{b.id}", f"blob-d.txt-{a.id}"])
        assert await _rows(async_session, [a.id, b.id, c.id, d.id]) == {}

    async def test_removes_shares(self, tree, async_session, alice, bob, nested):
        a, b, c, d = nested
        await tree.sharing.create_share(async_session, alice.id, c.id, bob.id)
        await tree.sharing.create_public_link(async_session, alice.id, d.id)
        await tree.permanent_delete(async_session, alice.id, a.id)

        result = await async_session.execute(select(Share))
        assert result.scalars().all() == []

    async def test_other_nodes_untouched(self, tree, async_session, alice, nested):
        a, b, c, d = nested
        keep = await _upload(tree, async_session, alice, "keep.txt")
        await tree.permanent_delete(async_session, alice.id, b.id)
        rows = await _rows(async_session, [a.id, d.id, keep.id])
        assert set(rows) == {a.id, d.id, keep.id}

    async def test_foreign_node(self, tree, async_session, alice, bob):
        theirs = await _upload(tree, async_session, bob, "b.txt")
        with pytest.raises(NotFoundError):
            await tree.permanent_delete(async_session, alice.id, theirs.id)
