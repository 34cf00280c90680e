"""SQLModel database models for homecloud."""

from homecloud.models.files import FileCategory, FileNode
from homecloud.models.shares import Share
from homecloud.models.users import User

__all__ = [
    "FileCategory",
    "FileNode",
    "Share",
    "User",
]
