"""FileNode model — one row per file or folder in a user's tree.

Folders carry ``category == "folder"``, zero size and an empty
``blob_name``.  ``parent_id`` is ``None`` at the root of a user's tree.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class FileCategory(str, Enum):
    """Coarse content family used for icons, filters and statistics."""

    FOLDER = "folder"
    DOCUMENT = "document"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    ARCHIVE = "archive"


class FileNode(SQLModel, table=True):
    """Metadata record for a file or folder."""

    __tablename__ = "files"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", index=True)
    name: str
    blob_name: str = Field(default="")
    category: str = Field(default=FileCategory.DOCUMENT.value)
    size_bytes: int = Field(default=0)
    mime_type: str | None = Field(default=None)
    parent_id: int | None = Field(
        default=None, foreign_key="files.id", ondelete="CASCADE", index=True
    )
    starred: bool = Field(default=False)
    trashed: bool = Field(default=False, index=True)
    trashed_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    modified_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )

    @property
    def is_folder(self) -> bool:
        return self.category == FileCategory.FOLDER.value
