"""Authentication, authorization and the identity store."""

from homecloud.auth.gate import (
    SUPER_ADMIN_ID,
    AuthorizationGate,
    Identity,
    can_delete_user,
    require_admin,
)
from homecloud.auth.passwords import hash_password, verify_password
from homecloud.auth.tokens import TokenClaims, TokenCodec, extract_bearer
from homecloud.auth.users import UserService

__all__ = [
    "SUPER_ADMIN_ID",
    "AuthorizationGate",
    "Identity",
    "TokenClaims",
    "TokenCodec",
    "UserService",
    "can_delete_user",
    "extract_bearer",
    "hash_password",
    "require_admin",
    "verify_password",
]
