"""Standalone orchestration functions for file tree operations.

Each function takes a session and the ``MetadataService`` and works on
one user's tree.  All of them flush but never commit.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import case
from sqlmodel import select

from homecloud.exceptions import ValidationError
from homecloud.models.files import FileCategory, FileNode

from .metadata import classify_mime_type, clean_name
from .query import NodeQuery
from .types import FileInfo, ListResult
from .walk import load_parent_map, would_create_cycle

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from .metadata import MetadataService

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 20

_FOLDERS_FIRST = case((FileNode.category == FileCategory.FOLDER.value, 0), else_=1)


async def list_dir(
    session: AsyncSession,
    user_id: int,
    parent_id: int | None = None,
    starred_only: bool = False,
    *,
    metadata: MetadataService,
) -> ListResult:
    """List non-trashed entries, folders first, then by name.

    With *starred_only* every starred item in the tree is listed and
    *parent_id* only drives the breadcrumbs.
    """
    if starred_only:
        query = NodeQuery(user_id=user_id, starred=True)
    else:
        query = NodeQuery.children(user_id, parent_id)

    result = await session.execute(
        select(FileNode)
        .where(*query.conditions())
        .order_by(_FOLDERS_FIRST, FileNode.name, FileNode.id)
    )
    entries = [metadata.file_to_info(f) for f in result.scalars().all()]
    breadcrumbs = await metadata.breadcrumbs(session, user_id, parent_id)

    return ListResult(entries=entries, breadcrumbs=breadcrumbs, parent_id=parent_id)


async def list_recent(
    session: AsyncSession,
    user_id: int,
    limit: int = DEFAULT_RECENT_LIMIT,
    *,
    metadata: MetadataService,
) -> list[FileInfo]:
    """Most recently modified non-trashed files (folders excluded)."""
    query = NodeQuery(user_id=user_id, folders=False)
    result = await session.execute(
        select(FileNode)
        .where(*query.conditions())
        .order_by(FileNode.modified_at.desc(), FileNode.id.desc())  # type: ignore[union-attr]
        .limit(max(0, limit))
    )
    return [metadata.file_to_info(f) for f in result.scalars().all()]


async def register_upload(
    session: AsyncSession,
    user_id: int,
    parent_id: int | None,
    original_name: str,
    blob_name: str,
    size_bytes: int,
    mime_type: str | None,
    *,
    metadata: MetadataService,
) -> FileInfo:
    """Record a blob that the Blob Store already persisted.

    On any error the caller owns cleanup of *blob_name*.
    """
    name = clean_name(original_name)
    if not blob_name:
        raise ValidationError("Uploaded file has no blob")
    if size_bytes < 0:
        raise ValidationError("File size cannot be negative")
    if parent_id is not None:
        await metadata.get_owned_folder(session, user_id, parent_id)
    await metadata.ensure_name_free(session, user_id, parent_id, name)

    node = FileNode(
        user_id=user_id,
        name=name,
        blob_name=blob_name,
        category=classify_mime_type(mime_type).value,
        size_bytes=size_bytes,
        mime_type=mime_type,
        parent_id=parent_id,
    )
    session.add(node)
    await session.flush()
    logger.debug("Registered upload %s (%r, %d bytes) for user %s", node.id, name, size_bytes, user_id)
    return metadata.file_to_info(node)


async def rename_node(
    session: AsyncSession,
    user_id: int,
    file_id: int,
    new_name: str,
    *,
    metadata: MetadataService,
) -> FileInfo:
    """Rename *file_id*; siblings must not already use the name."""
    node = await metadata.get_owned(session, user_id, file_id)
    name = clean_name(new_name)
    await metadata.ensure_name_free(session, user_id, node.parent_id, name, exclude_id=node.id)

    node.name = name
    node.modified_at = datetime.now(UTC)
    await session.flush()
    return metadata.file_to_info(node)


async def toggle_star(
    session: AsyncSession,
    user_id: int,
    file_id: int,
    *,
    metadata: MetadataService,
) -> FileInfo:
    """Flip the starred flag of *file_id*."""
    node = await metadata.get_owned(session, user_id, file_id)
    node.starred = not node.starred
    await session.flush()
    return metadata.file_to_info(node)


async def move_node(
    session: AsyncSession,
    user_id: int,
    file_id: int,
    new_parent_id: int | None,
    *,
    metadata: MetadataService,
) -> FileInfo:
    """Move *file_id* under *new_parent_id* (root when ``None``).

    Rejects moving a folder into itself or any of its descendants, and
    moving onto a name already used at the destination.
    """
    node = await metadata.get_owned(session, user_id, file_id)

    if new_parent_id is not None:
        if new_parent_id == node.id:
            raise ValidationError("Cannot move a folder into itself")
        await metadata.get_owned_folder(session, user_id, new_parent_id)
        parents = await load_parent_map(session, user_id)
        if would_create_cycle(file_id, new_parent_id, parents):
            raise ValidationError("Cannot move a folder into one of its subfolders")

    if not node.trashed:
        await metadata.ensure_name_free(
            session, user_id, new_parent_id, node.name, exclude_id=node.id
        )

    node.parent_id = new_parent_id
    node.modified_at = datetime.now(UTC)
    await session.flush()
    logger.debug("Moved %s under %s for user %s", file_id, new_parent_id, user_id)
    return metadata.file_to_info(node)
