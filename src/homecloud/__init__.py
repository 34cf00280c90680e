"""homecloud: a self-hosted personal cloud storage core.

Per-user file trees with trash and restore, sharing by user or public
link, token-authenticated identities and local blob storage.
"""

__version__ = "0.1.0"

from homecloud._cloud import HomeCloud, LoginResult
from homecloud.auth import AuthorizationGate, Identity, can_delete_user, require_admin
from homecloud.config import Settings, get_settings
from homecloud.exceptions import (
    AuthError,
    ConflictError,
    ForbiddenError,
    HomeCloudError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from homecloud.fs.types import (
    BlobDownload,
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
from homecloud.models import FileCategory, FileNode, Share, User

__all__ = [
    "AuthError",
    "AuthorizationGate",
    "BlobDownload",
    "Breadcrumb",
    "CategoryStats",
    "ConflictError",
    "DashboardStats",
    "DeleteResult",
    "FileCategory",
    "FileInfo",
    "FileNode",
    "ForbiddenError",
    "HomeCloud",
    "HomeCloudError",
    "Identity",
    "ListResult",
    "LoginResult",
    "NotFoundError",
    "PublicShare",
    "Settings",
    "Share",
    "ShareInfo",
    "ShareResult",
    "StorageError",
    "User",
    "UserInfo",
    "ValidationError",
    "can_delete_user",
    "get_settings",
    "require_admin",
    "__version__",
]
