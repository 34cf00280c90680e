"""UserService — the identity store: setup, login, profile, admin management."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, or_
from sqlmodel import select

from homecloud.exceptions import (
    AuthError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from homecloud.fs.types import UserInfo
from homecloud.models.files import FileNode
from homecloud.models.shares import Share
from homecloud.models.users import User

from .gate import SUPER_ADMIN_ID, Identity, can_delete_user
from .passwords import DEFAULT_ROUNDS, hash_password, verify_password

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

MAX_PASSWORD_BYTES = 72  # bcrypt input limit


def user_to_info(user: User) -> UserInfo:
    assert user.id is not None
    return UserInfo(
        id=user.id,
        username=user.username,
        email=user.email,
        is_admin=user.is_admin,
        created_at=user.created_at,
    )


def _require(value: str | None, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} is required")
    return cleaned


class UserService:
    """User records and the rules around them.

    Flushes but never commits; the facade owns the transaction.
    """

    def __init__(
        self,
        *,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
        min_password_length: int = 6,
    ) -> None:
        self.bcrypt_rounds = bcrypt_rounds
        self.min_password_length = min_password_length

    def _check_password(self, password: str | None) -> str:
        if not password or len(password) < self.min_password_length:
            raise ValidationError(
                f"Password must be at least {self.min_password_length} characters"
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return password

    async def prepare_password(self, password: str) -> str:
        """Validate *password* and hash it in a worker thread."""
        password = self._check_password(password)
        return await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)

    async def _verify(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(verify_password, password, password_hash)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def count(self, session: AsyncSession) -> int:
        result = await session.execute(select(func.count()).select_from(User))
        return int(result.scalar_one())

    async def setup_required(self, session: AsyncSession) -> bool:
        return await self.count(session) == 0

    async def get(self, session: AsyncSession, user_id: int) -> User:
        user = await session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        return user

    async def super_admin_id(self, session: AsyncSession) -> int:
        """Lowest user id; falls back to 1 on an empty store."""
        result = await session.execute(select(func.min(User.id)))
        lowest = result.scalar_one_or_none()
        return lowest if lowest is not None else SUPER_ADMIN_ID

    async def list_users(self, session: AsyncSession) -> list[UserInfo]:
        result = await session.execute(
            select(User).order_by(User.created_at.desc(), User.id.desc())  # type: ignore[union-attr]
        )
        return [user_to_info(u) for u in result.scalars().all()]

    async def _ensure_unique(
        self,
        session: AsyncSession,
        *,
        username: str | None = None,
        email: str | None = None,
        exclude_id: int | None = None,
    ) -> None:
        conditions = []
        if username is not None:
            conditions.append(User.username == username)
        if email is not None:
            conditions.append(User.email == email)
        if not conditions:
            return
        query = select(User).where(or_(*conditions))
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        result = await session.execute(query.limit(1))
        clash = result.scalar_one_or_none()
        if clash is None:
            return
        if email is not None and clash.email == email:
            raise ConflictError("Email already in use")
        raise ConflictError("Username already in use")

    # ------------------------------------------------------------------
    # Creation and login
    # ------------------------------------------------------------------

    async def create_user(
        self,
        session: AsyncSession,
        username: str,
        email: str,
        password: str,
        *,
        is_admin: bool = False,
        password_hash: str | None = None,
    ) -> User:
        """Create a user. Flushes but does not commit.

        *password_hash* lets the caller hash ahead of time, outside any lock.
        """
        username = _require(username, "Username")
        email = _require(email, "Email")
        password = self._check_password(password)
        await self._ensure_unique(session, username=username, email=email)
        if password_hash is None:
            password_hash = await self.prepare_password(password)

        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            is_admin=is_admin,
        )
        session.add(user)
        await session.flush()
        logger.info("Created user %s (%s, admin=%s)", user.id, username, is_admin)
        return user

    async def setup(
        self,
        session: AsyncSession,
        username: str,
        email: str,
        password: str,
        *,
        password_hash: str | None = None,
    ) -> User:
        """Create the first account, always an administrator."""
        if not await self.setup_required(session):
            raise ForbiddenError("Setup already completed")
        return await self.create_user(
            session, username, email, password, is_admin=True, password_hash=password_hash
        )

    async def login(self, session: AsyncSession, email: str, password: str) -> User:
        """Return the user matching *email* and *password* or raise ``AuthError``."""
        email = _require(email, "Email")
        if not password:
            raise ValidationError("Password is required")
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None or not await self._verify(password, user.password_hash):
            raise AuthError("Invalid email or password")
        return user

    # ------------------------------------------------------------------
    # Self-service changes
    # ------------------------------------------------------------------

    async def update_profile(
        self,
        session: AsyncSession,
        user_id: int,
        *,
        username: str | None = None,
        email: str | None = None,
    ) -> User:
        username = (username or "").strip() or None
        email = (email or "").strip() or None
        if username is None and email is None:
            raise ValidationError("No fields to update")

        user = await self.get(session, user_id)
        await self._ensure_unique(session, username=username, email=email, exclude_id=user_id)
        if username is not None:
            user.username = username
        if email is not None:
            user.email = email
        await session.flush()
        return user

    async def change_password(
        self,
        session: AsyncSession,
        user_id: int,
        current_password: str,
        new_password: str,
        *,
        new_password_hash: str | None = None,
    ) -> User:
        """Replace the password and revoke every credential issued so far."""
        if not current_password:
            raise ValidationError("Current password is required")
        new_password = self._check_password(new_password)
        user = await self.get(session, user_id)
        if not await self._verify(current_password, user.password_hash):
            raise AuthError("Current password is incorrect")

        if new_password_hash is None:
            new_password_hash = await self.prepare_password(new_password)
        user.password_hash = new_password_hash
        user.token_version += 1
        await session.flush()
        logger.info("Password changed for user %s; tokens invalidated", user_id)
        return user

    async def invalidate_tokens(self, session: AsyncSession, user_id: int) -> User:
        """Bump the token generation ("log out everywhere")."""
        user = await self.get(session, user_id)
        user.token_version += 1
        await session.flush()
        logger.info("Invalidated all tokens for user %s", user_id)
        return user

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def delete_user(self, session: AsyncSession, caller: Identity, target_id: int) -> User:
        """Delete *target_id* with its files and shares.

        The caller's role is checked here, not only at the presentation
        layer.  Blob cleanup is left to the caller.
        """
        target = await self.get(session, target_id)
        super_admin = await self.super_admin_id(session)
        if not can_delete_user(caller, target, super_admin):
            if caller.id == target.id:
                raise ForbiddenError("Cannot delete your own account")
            if target.id == super_admin:
                raise ForbiddenError("Cannot delete the Super Admin")
            raise ForbiddenError("Only the Super Admin can delete other admins")

        owned_files = select(FileNode.id).where(FileNode.user_id == target_id)
        await session.execute(
            delete(Share).where(
                or_(
                    Share.shared_by == target_id,
                    Share.shared_with == target_id,
                    Share.file_id.in_(owned_files),  # type: ignore[union-attr]
                )
            )
        )
        await session.execute(delete(FileNode).where(FileNode.user_id == target_id))
        await session.delete(target)
        await session.flush()
        logger.info("User %s deleted user %s", caller.id, target_id)
        return target
