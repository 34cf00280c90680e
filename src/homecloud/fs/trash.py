"""TrashService — soft delete, restore, trash listing, and permanent delete."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, or_, update
from sqlalchemy.orm import aliased
from sqlmodel import select

from homecloud.models.files import FileCategory, FileNode

from .types import DeleteResult, FileInfo
from .walk import invert, load_parent_map, subtree_postorder, subtree_preorder

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from .metadata import MetadataService

    ShareDeleter = Callable[[AsyncSession, list[int]], Awaitable[int]]

logger = logging.getLogger(__name__)


class TrashService:
    """Trash lifecycle: Active -> Trashed -> (Active | deleted).

    Trash and restore cascade over the whole subtree of a folder.
    Permanent delete removes the subtree's records and shares and reports
    the blobs to release; releasing them is the caller's job, after the
    metadata change is committed.
    """

    def __init__(self, metadata: MetadataService, delete_shares_cb: ShareDeleter) -> None:
        self._metadata = metadata
        self._delete_shares_cb = delete_shares_cb

    async def trash(self, session: AsyncSession, user_id: int, file_id: int) -> FileInfo:
        """Mark *file_id* and every descendant trashed with one timestamp."""
        node = await self._metadata.get_owned(session, user_id, file_id)
        trashed_at = datetime.now(UTC)

        parents = await load_parent_map(session, user_id)
        ids = subtree_preorder(file_id, invert(parents))
        await session.execute(
            update(FileNode)
            .where(FileNode.id.in_(ids))  # type: ignore[union-attr]
            .values(trashed=True, trashed_at=trashed_at)
        )
        await session.flush()
        await session.refresh(node)

        logger.debug("Trashed %d node(s) under %s for user %s", len(ids), file_id, user_id)
        return self._metadata.file_to_info(node)

    async def restore(self, session: AsyncSession, user_id: int, file_id: int) -> FileInfo:
        """Restore a trashed node and its whole subtree.

        The node returns to its parent, or to the root when the parent is
        itself still in the trash.  Inside the subtree, when two siblings
        would come back with the same name the most recently created one
        wins and the others stay in the trash with their descendants.
        """
        node = await self._metadata.get_owned(session, user_id, file_id, trashed=True)

        target_parent = node.parent_id
        if target_parent is not None:
            parent = await session.get(FileNode, target_parent)
            if parent is None or parent.trashed or parent.user_id != user_id:
                target_parent = None

        await self._metadata.ensure_name_free(
            session, user_id, target_parent, node.name, exclude_id=node.id
        )

        rows = await session.execute(
            select(FileNode.id, FileNode.parent_id, FileNode.name, FileNode.trashed).where(
                FileNode.user_id == user_id
            )
        )
        info = {r[0]: (r[1], r[2], r[3]) for r in rows.all()}
        children = invert({node_id: v[0] for node_id, v in info.items()})

        restored = [file_id]
        worklist = [file_id]
        while worklist:
            current = worklist.pop()
            kids = children.get(current, [])
            used = {info[k][1] for k in kids if not info[k][2]}
            for kid in sorted((k for k in kids if info[k][2]), reverse=True):
                name = info[kid][1]
                if name in used:
                    continue
                used.add(name)
                restored.append(kid)
                worklist.append(kid)

        await session.execute(
            update(FileNode)
            .where(FileNode.id.in_(restored))  # type: ignore[union-attr]
            .values(trashed=False, trashed_at=None)
        )
        if target_parent != node.parent_id:
            logger.debug("Parent of %s is trashed; restoring to root", file_id)
            await session.execute(
                update(FileNode).where(FileNode.id == file_id).values(parent_id=target_parent)
            )
        await session.flush()
        await session.refresh(node)

        skipped = len(subtree_preorder(file_id, children)) - len(restored)
        if skipped:
            logger.info(
                "Restore of %s left %d node(s) in trash due to name clashes", file_id, skipped
            )
        return self._metadata.file_to_info(node)

    async def list_trash(self, session: AsyncSession, user_id: int) -> list[FileInfo]:
        """Trashed nodes whose parent is not trashed, newest first.

        A trashed folder stands for its whole subtree, so its descendants
        are not listed separately.
        """
        parent = aliased(FileNode)
        result = await session.execute(
            select(FileNode)
            .outerjoin(parent, FileNode.parent_id == parent.id)
            .where(
                FileNode.user_id == user_id,
                FileNode.trashed == True,  # noqa: E712
                or_(parent.id.is_(None), parent.trashed == False),  # type: ignore[union-attr]  # noqa: E712
            )
            .order_by(FileNode.trashed_at.desc(), FileNode.id.desc())  # type: ignore[union-attr]
        )
        return [self._metadata.file_to_info(f) for f in result.scalars().all()]

    async def permanent_delete(
        self, session: AsyncSession, user_id: int, file_id: int
    ) -> DeleteResult:
        """Delete *file_id* and all descendants (deepest first), with their shares."""
        await self._metadata.get_owned(session, user_id, file_id)

        parents = await load_parent_map(session, user_id)
        ids = subtree_postorder(file_id, invert(parents))

        blobs = await session.execute(
            select(FileNode.id, FileNode.blob_name).where(
                FileNode.id.in_(ids),  # type: ignore[union-attr]
                FileNode.category != FileCategory.FOLDER.value,
                FileNode.blob_name != "",
            )
        )
        by_id = {row[0]: row[1] for row in blobs.all()}
        blob_names = [by_id[i] for i in ids if i in by_id]

        await self._delete_shares_cb(session, ids)
        await session.execute(
            delete(FileNode).where(FileNode.id.in_(ids))  # type: ignore[union-attr]
        )
        await session.flush()

        logger.info("Permanently deleted %d node(s) under %s for user %s", len(ids), file_id, user_id)
        return DeleteResult(file_id=file_id, deleted_ids=ids, blob_names=blob_names)
