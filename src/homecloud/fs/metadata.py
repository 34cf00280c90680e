"""MetadataService — owned-record lookup, name checks, info conversion."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import select

from homecloud.exceptions import ConflictError, NotFoundError, ValidationError
from homecloud.models.files import FileCategory, FileNode

from .query import NodeQuery
from .types import Breadcrumb, FileInfo

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

ARCHIVE_MARKERS = ("zip", "rar", "tar", "7z", "gzip", "bzip", "x-xz", "compressed")


def classify_mime_type(mime_type: str | None) -> FileCategory:
    """Map a MIME type to a :class:`FileCategory`.

    Examples:
        classify_mime_type("image/png") -> IMAGE
        classify_mime_type("application/pdf") -> DOCUMENT
        classify_mime_type("application/zip") -> ARCHIVE
        classify_mime_type(None) -> DOCUMENT
    """
    if not mime_type:
        return FileCategory.DOCUMENT
    mime_type = mime_type.lower()
    if mime_type.startswith("image/"):
        return FileCategory.IMAGE
    if mime_type.startswith("video/"):
        return FileCategory.VIDEO
    if mime_type.startswith("audio/"):
        return FileCategory.AUDIO
    if "pdf" in mime_type:
        return FileCategory.DOCUMENT
    if any(marker in mime_type for marker in ARCHIVE_MARKERS):
        return FileCategory.ARCHIVE
    return FileCategory.DOCUMENT


def clean_name(name: str | None) -> str:
    """Trim *name*; raise ``ValidationError`` if nothing is left."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Name is required")
    return cleaned


class MetadataService:
    """Stateless helpers shared by the tree, trash and sharing services."""

    async def find(self, session: AsyncSession, query: NodeQuery) -> list[FileNode]:
        result = await session.execute(select(FileNode).where(*query.conditions()))
        return list(result.scalars().all())

    async def get_owned(
        self,
        session: AsyncSession,
        user_id: int,
        file_id: int,
        *,
        trashed: bool | None = None,
    ) -> FileNode:
        """Return *file_id* if *user_id* owns it, else raise ``NotFoundError``.

        A node owned by someone else is reported exactly like a missing one.
        """
        query = select(FileNode).where(
            FileNode.id == file_id,
            FileNode.user_id == user_id,
        )
        if trashed is not None:
            query = query.where(FileNode.trashed == trashed)
        result = await session.execute(query)
        node = result.scalar_one_or_none()
        if node is None:
            if trashed:
                raise NotFoundError(f"File not found in trash: {file_id}")
            raise NotFoundError(f"File not found: {file_id}")
        return node

    async def get_owned_folder(
        self, session: AsyncSession, user_id: int, folder_id: int
    ) -> FileNode:
        """Return an owned, non-trashed folder or raise ``NotFoundError``."""
        result = await session.execute(
            select(FileNode).where(
                FileNode.id == folder_id,
                FileNode.user_id == user_id,
                FileNode.category == FileCategory.FOLDER.value,
                FileNode.trashed == False,  # noqa: E712
            )
        )
        folder = result.scalar_one_or_none()
        if folder is None:
            raise NotFoundError(f"Folder not found: {folder_id}")
        return folder

    async def ensure_name_free(
        self,
        session: AsyncSession,
        user_id: int,
        parent_id: int | None,
        name: str,
        *,
        exclude_id: int | None = None,
    ) -> None:
        """Raise ``ConflictError`` if a non-trashed sibling already has *name*."""
        query = NodeQuery.siblings(user_id, parent_id, name, exclude_id=exclude_id)
        result = await session.execute(
            select(FileNode.id).where(*query.conditions()).limit(1)
        )
        if result.first() is not None:
            raise ConflictError(f"An item named {name!r} already exists here")

    async def breadcrumbs(
        self, session: AsyncSession, user_id: int, folder_id: int | None
    ) -> list[Breadcrumb]:
        """Walk parent pointers from *folder_id* to the root, outermost first.

        Stops quietly at a missing or foreign record and at a revisited id.
        """
        crumbs: list[Breadcrumb] = []
        seen: set[int] = set()
        current = folder_id
        while current is not None and current not in seen:
            seen.add(current)
            result = await session.execute(
                select(FileNode.id, FileNode.name, FileNode.parent_id).where(
                    FileNode.id == current,
                    FileNode.user_id == user_id,
                )
            )
            row = result.first()
            if row is None:
                break
            crumbs.append(Breadcrumb(id=row[0], name=row[1]))
            current = row[2]
        crumbs.reverse()
        return crumbs

    @staticmethod
    def file_to_info(f: FileNode) -> FileInfo:
        """Convert a file record to FileInfo."""
        assert f.id is not None
        return FileInfo(
            id=f.id,
            name=f.name,
            category=f.category,
            parent_id=f.parent_id,
            size_bytes=f.size_bytes,
            mime_type=f.mime_type,
            starred=f.starred,
            trashed=f.trashed,
            trashed_at=f.trashed_at,
            created_at=f.created_at,
            modified_at=f.modified_at,
        )
