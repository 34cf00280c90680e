"""Custom exception hierarchy for homecloud.

Every error carries a stable ``reason`` string that a transport layer can
map to a status code without inspecting the message.
"""


class HomeCloudError(Exception):
    """Base exception for all homecloud errors."""

    reason = "error"


class ValidationError(HomeCloudError):
    """Raised when input has a bad shape or value (blank name, cycle, self-share)."""

    reason = "invalid"


class ConflictError(HomeCloudError):
    """Raised when a write would duplicate an existing name or identity."""

    reason = "conflict"


class NotFoundError(HomeCloudError):
    """Raised when a resource does not exist or is not owned by the caller."""

    reason = "not_found"


class AuthError(HomeCloudError):
    """Raised when a credential is missing, invalid, expired, or invalidated."""

    reason = "unauthorized"


class ForbiddenError(HomeCloudError):
    """Raised when an authenticated caller is not permitted to act."""

    reason = "forbidden"


class StorageError(HomeCloudError):
    """Raised on blob storage failures (disk I/O, timeouts)."""

    reason = "storage_error"
