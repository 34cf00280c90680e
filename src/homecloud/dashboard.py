"""DashboardService — read-only storage statistics for one user."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlmodel import select

from homecloud.fs.query import NodeQuery
from homecloud.fs.types import CategoryStats, DashboardStats
from homecloud.models.files import FileNode

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from homecloud.fs.metadata import MetadataService
    from homecloud.fs.sharing import SharingService

RECENT_UPLOADS = 5


class DashboardService:
    """Aggregates over the file tree; never writes."""

    def __init__(self, metadata: MetadataService, sharing: SharingService) -> None:
        self._metadata = metadata
        self._sharing = sharing

    async def stats(self, session: AsyncSession, user_id: int) -> DashboardStats:
        files = NodeQuery(user_id=user_id, folders=False).conditions()
        folders = NodeQuery(user_id=user_id, folders=True).conditions()

        totals = await session.execute(
            select(func.count(), func.coalesce(func.sum(FileNode.size_bytes), 0))
            .select_from(FileNode)
            .where(*files)
        )
        total_files, total_storage = totals.one()

        folder_count = await session.execute(
            select(func.count()).select_from(FileNode).where(*folders)
        )

        grouped = await session.execute(
            select(
                FileNode.category,
                func.count(),
                func.coalesce(func.sum(FileNode.size_bytes), 0),
            )
            .where(*files)
            .group_by(FileNode.category)
        )
        by_type = {
            category: CategoryStats(count=int(count), size=int(size))
            for category, count, size in grouped.all()
        }

        recent = await session.execute(
            select(FileNode)
            .where(*files)
            .order_by(FileNode.created_at.desc(), FileNode.id.desc())  # type: ignore[union-attr]
            .limit(RECENT_UPLOADS)
        )
        shared_by_me, shared_with_me = await self._sharing.count_for_user(session, user_id)

        return DashboardStats(
            total_files=int(total_files),
            total_storage=int(total_storage),
            total_folders=int(folder_count.scalar_one()),
            by_type=by_type,
            recent_files=[self._metadata.file_to_info(f) for f in recent.scalars().all()],
            shared_by_me=shared_by_me,
            shared_with_me=shared_with_me,
        )
