"""SharingService — share CRUD and public token resolution.

Stateless service that receives a session at call time, following the
MetadataService pattern.  Every share row carries a random token; public
links are shares with no recipient.
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING

from sqlalchemy import delete, func
from sqlalchemy.orm import aliased
from sqlmodel import select

from homecloud.exceptions import NotFoundError, ValidationError
from homecloud.models.files import FileCategory, FileNode
from homecloud.models.shares import Share
from homecloud.models.users import User

from .permissions import SharePermission
from .types import PublicShare, ShareInfo, ShareResult, UserInfo

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

    from .metadata import MetadataService

logger = logging.getLogger(__name__)

TOKEN_BYTES = 16  # 128 bits, hex-encoded to 32 characters


def generate_share_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


_owner = aliased(User)
_recipient = aliased(User)


def _joined() -> Select:
    return (
        select(Share, FileNode, _owner, _recipient)
        .join(FileNode, Share.file_id == FileNode.id)  # type: ignore[arg-type]
        .join(_owner, Share.shared_by == _owner.id)  # type: ignore[arg-type]
        .outerjoin(_recipient, Share.shared_with == _recipient.id)  # type: ignore[arg-type]
    )


def _to_info(share: Share, file: FileNode, owner: User, recipient: User | None) -> ShareInfo:
    assert share.id is not None
    return ShareInfo(
        id=share.id,
        file_id=share.file_id,
        permission=share.permission,
        token=share.token,
        shared_by=share.shared_by,
        shared_with=share.shared_with,
        file_name=file.name,
        file_category=file.category,
        file_size=file.size_bytes,
        mime_type=file.mime_type,
        shared_by_name=owner.username,
        shared_with_name=recipient.username if recipient is not None else None,
        shared_with_email=recipient.email if recipient is not None else None,
        created_at=share.created_at,
    )


class SharingService:
    """Manages shares between an owner and a recipient or the public.

    At most one share exists per ``(file, owner, recipient)``; creating it
    again returns the existing row with ``created=False``.
    """

    def __init__(self, metadata: MetadataService) -> None:
        self._metadata = metadata

    async def create_share(
        self,
        session: AsyncSession,
        owner_id: int,
        file_id: int,
        recipient_id: int,
        permission: str = SharePermission.VIEW.value,
    ) -> ShareResult:
        """Share *file_id* with *recipient_id*. Flushes but does not commit."""
        level = SharePermission.parse(permission)
        if recipient_id == owner_id:
            raise ValidationError("Cannot share with yourself")
        await self._metadata.get_owned(session, owner_id, file_id)
        recipient = await session.get(User, recipient_id)
        if recipient is None:
            raise NotFoundError(f"User not found: {recipient_id}")
        return await self._get_or_create(session, owner_id, file_id, recipient_id, level)

    async def create_public_link(
        self,
        session: AsyncSession,
        owner_id: int,
        file_id: int,
        permission: str = SharePermission.VIEW.value,
    ) -> ShareResult:
        """Create (or return) the recipient-less share of *file_id*."""
        level = SharePermission.parse(permission)
        await self._metadata.get_owned(session, owner_id, file_id)
        return await self._get_or_create(session, owner_id, file_id, None, level)

    async def _get_or_create(
        self,
        session: AsyncSession,
        owner_id: int,
        file_id: int,
        recipient_id: int | None,
        level: SharePermission,
    ) -> ShareResult:
        recipient_clause = (
            Share.shared_with.is_(None)  # type: ignore[union-attr]
            if recipient_id is None
            else Share.shared_with == recipient_id
        )
        result = await session.execute(
            select(Share.id).where(
                Share.file_id == file_id,
                Share.shared_by == owner_id,
                recipient_clause,
            )
        )
        existing_id = result.scalar_one_or_none()
        if existing_id is not None:
            return ShareResult(share=await self._get_info(session, existing_id), created=False)

        share = Share(
            file_id=file_id,
            shared_by=owner_id,
            shared_with=recipient_id,
            permission=level.value,
            token=generate_share_token(),
        )
        session.add(share)
        await session.flush()
        assert share.id is not None
        logger.info(
            "User %s shared file %s with %s (%s)",
            owner_id,
            file_id,
            recipient_id if recipient_id is not None else "public",
            level.value,
        )
        return ShareResult(share=await self._get_info(session, share.id), created=True)

    async def _get_info(self, session: AsyncSession, share_id: int) -> ShareInfo:
        result = await session.execute(_joined().where(Share.id == share_id))
        row = result.one()
        return _to_info(*row)

    async def revoke_share(self, session: AsyncSession, owner_id: int, share_id: int) -> None:
        """Delete a share created by *owner_id*."""
        result = await session.execute(
            select(Share).where(Share.id == share_id, Share.shared_by == owner_id)
        )
        share = result.scalar_one_or_none()
        if share is None:
            raise NotFoundError(f"Share not found: {share_id}")
        await session.delete(share)
        await session.flush()
        logger.info("User %s revoked share %s", owner_id, share_id)

    async def list_my_shares(self, session: AsyncSession, owner_id: int) -> list[ShareInfo]:
        """Shares created by *owner_id*, newest first."""
        result = await session.execute(
            _joined()
            .where(Share.shared_by == owner_id)
            .order_by(Share.created_at.desc(), Share.id.desc())  # type: ignore[union-attr]
        )
        return [_to_info(*row) for row in result.all()]

    async def list_shared_with_me(
        self, session: AsyncSession, recipient_id: int
    ) -> list[ShareInfo]:
        """Shares addressed to *recipient_id*, newest first; trashed files hidden."""
        result = await session.execute(
            _joined()
            .where(
                Share.shared_with == recipient_id,
                FileNode.trashed == False,  # noqa: E712
            )
            .order_by(Share.created_at.desc(), Share.id.desc())  # type: ignore[union-attr]
        )
        return [_to_info(*row) for row in result.all()]

    async def resolve_public_token(self, session: AsyncSession, token: str) -> PublicShare:
        """Resolve a share token without any caller identity.

        Folders and trashed files do not resolve.
        """
        if not token:
            raise NotFoundError("Share link not found")
        result = await session.execute(
            select(Share, FileNode, User)
            .join(FileNode, Share.file_id == FileNode.id)  # type: ignore[arg-type]
            .join(User, FileNode.user_id == User.id)  # type: ignore[arg-type]
            .where(
                Share.token == token,
                FileNode.category != FileCategory.FOLDER.value,
                FileNode.trashed == False,  # noqa: E712
            )
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Share link not found")
        share, file, owner = row
        assert file.id is not None and owner.id is not None
        return PublicShare(
            token=share.token,
            file_id=file.id,
            name=file.name,
            category=file.category,
            size_bytes=file.size_bytes,
            mime_type=file.mime_type,
            permission=share.permission,
            owner_id=owner.id,
            owner_name=owner.username,
            blob_name=file.blob_name,
        )

    async def list_shareable_users(self, session: AsyncSession, caller_id: int) -> list[UserInfo]:
        """Every user except *caller_id*, by username."""
        result = await session.execute(
            select(User).where(User.id != caller_id).order_by(User.username)
        )
        return [
            UserInfo(id=u.id, username=u.username, email=u.email)  # type: ignore[arg-type]
            for u in result.scalars().all()
        ]

    async def delete_for_files(self, session: AsyncSession, file_ids: list[int]) -> int:
        """Remove every share on *file_ids*. Returns the number removed."""
        if not file_ids:
            return 0
        result = await session.execute(
            delete(Share).where(Share.file_id.in_(file_ids))  # type: ignore[union-attr]
        )
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def count_for_user(self, session: AsyncSession, user_id: int) -> tuple[int, int]:
        """Return ``(shared_by_me, shared_with_me)`` counts."""
        by_me = await session.execute(
            select(func.count()).select_from(Share).where(Share.shared_by == user_id)
        )
        with_me = await session.execute(
            select(func.count()).select_from(Share).where(Share.shared_with == user_id)
        )
        return int(by_me.scalar_one()), int(with_me.scalar_one())
