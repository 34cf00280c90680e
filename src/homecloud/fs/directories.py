"""DirectoryService — folder creation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from homecloud.models.files import FileCategory, FileNode

from .metadata import clean_name

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from .metadata import MetadataService
    from .types import FileInfo

logger = logging.getLogger(__name__)


class DirectoryService:
    """Creates folders after validating name, parent and siblings."""

    def __init__(self, metadata: MetadataService) -> None:
        self._metadata = metadata

    async def create_folder(
        self,
        session: AsyncSession,
        user_id: int,
        name: str,
        parent_id: int | None = None,
    ) -> FileInfo:
        """Create a folder named *name* under *parent_id* (root when ``None``).

        Flushes but does not commit.
        """
        name = clean_name(name)
        if parent_id is not None:
            await self._metadata.get_owned_folder(session, user_id, parent_id)
        await self._metadata.ensure_name_free(session, user_id, parent_id, name)

        folder = FileNode(
            user_id=user_id,
            name=name,
            blob_name="",
            category=FileCategory.FOLDER.value,
            size_bytes=0,
            parent_id=parent_id,
        )
        session.add(folder)
        await session.flush()
        logger.debug("Created folder %s (%r) for user %s", folder.id, name, user_id)
        return self._metadata.file_to_info(folder)
