"""File tree, trash, sharing and blob storage for homecloud."""

from homecloud.fs.blobs import LocalBlobStore
from homecloud.fs.permissions import SharePermission
from homecloud.fs.query import NodeQuery, ParentFilter
from homecloud.fs.sharing import SharingService
from homecloud.fs.tree import FileTree
from homecloud.fs.types import (
    BlobDownload,
    BlobRef,
    Breadcrumb,
    CategoryStats,
    DashboardStats,
    DeleteResult,
    FileInfo,
    ListResult,
    PublicShare,
    ShareInfo,
    ShareResult,
    UserInfo,
)

__all__ = [
    "BlobDownload",
    "BlobRef",
    "Breadcrumb",
    "CategoryStats",
    "DashboardStats",
    "DeleteResult",
    "FileInfo",
    "FileTree",
    "ListResult",
    "LocalBlobStore",
    "NodeQuery",
    "ParentFilter",
    "PublicShare",
    "SharePermission",
    "ShareInfo",
    "ShareResult",
    "SharingService",
    "UserInfo",
]
