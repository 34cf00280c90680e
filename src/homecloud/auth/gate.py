"""AuthorizationGate — credential to identity, and role rules.

``can_delete_user`` is the single authoritative user-deletion rule; any
UI affordance built on top of it is only a hint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from homecloud.exceptions import AuthError, ForbiddenError
from homecloud.models.users import User

from .tokens import extract_bearer

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from .tokens import TokenCodec

logger = logging.getLogger(__name__)

SUPER_ADMIN_ID = 1


@dataclass(frozen=True, slots=True)
class Identity:
    """An authenticated caller."""

    id: int
    username: str
    email: str
    is_admin: bool = False

    @classmethod
    def from_user(cls, user: User) -> Identity:
        assert user.id is not None
        return cls(id=user.id, username=user.username, email=user.email, is_admin=user.is_admin)


def require_admin(identity: Identity) -> None:
    """Raise ``ForbiddenError`` unless *identity* is an administrator."""
    if not identity.is_admin:
        raise ForbiddenError("Admin access required")


def can_delete_user(
    caller: Identity | User,
    target: Identity | User,
    super_admin_id: int = SUPER_ADMIN_ID,
) -> bool:
    """Whether *caller* may delete *target*.

    - Nobody deletes themselves.
    - The Super Admin is never deleted.
    - Only the Super Admin deletes other admins.
    """
    if caller.id == target.id:
        return False
    if target.id == super_admin_id:
        return False
    if target.is_admin and caller.id != super_admin_id:
        return False
    return True


class AuthorizationGate:
    """Turns bearer credentials into identities.

    A credential is valid only while its embedded token generation equals
    the user's current ``token_version``; bumping the counter revokes all
    older credentials without a revocation list.
    """

    def __init__(self, codec: TokenCodec) -> None:
        self._codec = codec

    def issue(self, user: User) -> str:
        assert user.id is not None
        return self._codec.issue(user.id, user.token_version)

    async def authenticate(self, session: AsyncSession, credential: str | None) -> Identity:
        token = extract_bearer(credential)
        claims = self._codec.decode(token)

        user = await session.get(User, claims.user_id)
        if user is None:
            raise AuthError("User not found")
        if claims.token_version != user.token_version:
            logger.debug("Rejected invalidated token for user %s", user.id)
            raise AuthError("Token expired or invalidated")
        return Identity.from_user(user)
