"""Result types: FileInfo, ListResult, ShareInfo, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path


@dataclass
class FileInfo:
    """File/folder metadata."""

    id: int
    name: str
    category: str
    parent_id: int | None = None
    size_bytes: int = 0
    mime_type: str | None = None
    starred: bool = False
    trashed: bool = False
    trashed_at: datetime | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None

    @property
    def is_folder(self) -> bool:
        return self.category == "folder"


@dataclass(frozen=True, slots=True)
class Breadcrumb:
    """One step of the path from the root to a folder."""

    id: int
    name: str


@dataclass
class ListResult:
    """Result of a directory listing."""

    entries: list[FileInfo] = field(default_factory=list)
    breadcrumbs: list[Breadcrumb] = field(default_factory=list)
    parent_id: int | None = None


@dataclass
class DeleteResult:
    """Result of a permanent delete.

    ``deleted_ids`` is in deletion order (descendants before ancestors).
    ``blob_names`` are the blobs the caller must release once the
    metadata change is committed.
    """

    file_id: int
    deleted_ids: list[int] = field(default_factory=list)
    blob_names: list[str] = field(default_factory=list)

    @property
    def total_deleted(self) -> int:
        return len(self.deleted_ids)


@dataclass
class ShareInfo:
    """Share joined with display fields of its file and users."""

    id: int
    file_id: int
    permission: str
    token: str
    shared_by: int
    shared_with: int | None = None
    file_name: str = ""
    file_category: str = ""
    file_size: int = 0
    mime_type: str | None = None
    shared_by_name: str | None = None
    shared_with_name: str | None = None
    shared_with_email: str | None = None
    created_at: datetime | None = None

    @property
    def is_public(self) -> bool:
        return self.shared_with is None


@dataclass
class ShareResult:
    """Result of a share create.  ``created`` is False when it already existed."""

    share: ShareInfo
    created: bool = True


@dataclass(frozen=True, slots=True)
class PublicShare:
    """What an anonymous holder of a share token may see."""

    token: str
    file_id: int
    name: str
    category: str
    size_bytes: int
    mime_type: str | None
    permission: str
    owner_id: int
    owner_name: str
    blob_name: str


@dataclass(frozen=True, slots=True)
class BlobRef:
    """A blob written to the store."""

    name: str
    size: int


@dataclass(frozen=True, slots=True)
class BlobDownload:
    """Everything a transport needs to stream a blob back to a client.

    Attributes:
        path: Physical location of the blob.
        filename: Original display name.
        mime_type: Content type (``application/octet-stream`` when unknown).
        size_bytes: Recorded size.
        inline: True for in-browser preview, False for attachment download.
    """

    path: Path
    filename: str
    mime_type: str
    size_bytes: int
    inline: bool = False

    @property
    def disposition(self) -> str:
        kind = "inline" if self.inline else "attachment"
        return f'{kind}; filename="{self.filename}"'


@dataclass(frozen=True, slots=True)
class CategoryStats:
    count: int = 0
    size: int = 0


@dataclass
class DashboardStats:
    """Per-user storage statistics."""

    total_files: int = 0
    total_storage: int = 0
    total_folders: int = 0
    by_type: dict[str, CategoryStats] = field(default_factory=dict)
    recent_files: list[FileInfo] = field(default_factory=list)
    shared_by_me: int = 0
    shared_with_me: int = 0


@dataclass
class UserInfo:
    """Public user fields (never the password hash)."""

    id: int
    username: str
    email: str
    is_admin: bool = False
    created_at: datetime | None = None
