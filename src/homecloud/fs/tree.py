"""FileTree — the per-user file tree engine, stateless, session per call."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .directories import DirectoryService
from .metadata import MetadataService
from .operations import (
    DEFAULT_RECENT_LIMIT,
    list_dir,
    list_recent,
    move_node,
    register_upload,
    rename_node,
    toggle_star,
)
from .sharing import SharingService
from .trash import TrashService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from .types import DeleteResult, FileInfo, ListResult


class FileTree:
    """Hierarchical file/folder metadata for every user.

    This class holds only composed services.  It has no session factory
    and no mutable state; each method receives the session of the
    caller's transaction and flushes without committing.  Every method is
    scoped by ``user_id``: a node owned by someone else behaves exactly
    like a missing one.
    """

    def __init__(self, sharing: SharingService | None = None) -> None:
        self.metadata = MetadataService()
        self.sharing = sharing or SharingService(self.metadata)
        self.directories = DirectoryService(self.metadata)
        self.trash_service = TrashService(self.metadata, self.sharing.delete_for_files)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_dir(
        self,
        session: AsyncSession,
        user_id: int,
        parent_id: int | None = None,
        *,
        starred_only: bool = False,
    ) -> ListResult:
        return await list_dir(
            session, user_id, parent_id, starred_only, metadata=self.metadata
        )

    async def list_recent(
        self, session: AsyncSession, user_id: int, limit: int = DEFAULT_RECENT_LIMIT
    ) -> list[FileInfo]:
        return await list_recent(session, user_id, limit, metadata=self.metadata)

    async def list_trash(self, session: AsyncSession, user_id: int) -> list[FileInfo]:
        return await self.trash_service.list_trash(session, user_id)

    async def get_file(self, session: AsyncSession, user_id: int, file_id: int) -> FileInfo:
        """An owned, non-trashed node."""
        node = await self.metadata.get_owned(session, user_id, file_id, trashed=False)
        return self.metadata.file_to_info(node)

    async def get_blob_name(self, session: AsyncSession, user_id: int, file_id: int) -> str:
        node = await self.metadata.get_owned(session, user_id, file_id, trashed=False)
        return node.blob_name

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_folder(
        self,
        session: AsyncSession,
        user_id: int,
        name: str,
        parent_id: int | None = None,
    ) -> FileInfo:
        return await self.directories.create_folder(session, user_id, name, parent_id)

    async def register_upload(
        self,
        session: AsyncSession,
        user_id: int,
        parent_id: int | None,
        original_name: str,
        blob_name: str,
        size_bytes: int,
        mime_type: str | None,
    ) -> FileInfo:
        return await register_upload(
            session,
            user_id,
            parent_id,
            original_name,
            blob_name,
            size_bytes,
            mime_type,
            metadata=self.metadata,
        )

    async def rename(
        self, session: AsyncSession, user_id: int, file_id: int, new_name: str
    ) -> FileInfo:
        return await rename_node(session, user_id, file_id, new_name, metadata=self.metadata)

    async def toggle_star(self, session: AsyncSession, user_id: int, file_id: int) -> FileInfo:
        return await toggle_star(session, user_id, file_id, metadata=self.metadata)

    async def move(
        self,
        session: AsyncSession,
        user_id: int,
        file_id: int,
        new_parent_id: int | None = None,
    ) -> FileInfo:
        return await move_node(session, user_id, file_id, new_parent_id, metadata=self.metadata)

    async def trash(self, session: AsyncSession, user_id: int, file_id: int) -> FileInfo:
        return await self.trash_service.trash(session, user_id, file_id)

    async def restore(self, session: AsyncSession, user_id: int, file_id: int) -> FileInfo:
        return await self.trash_service.restore(session, user_id, file_id)

    async def permanent_delete(
        self, session: AsyncSession, user_id: int, file_id: int
    ) -> DeleteResult:
        return await self.trash_service.permanent_delete(session, user_id, file_id)
