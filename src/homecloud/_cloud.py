"""HomeCloud — async facade wiring identity, file tree, sharing and blob storage."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, BinaryIO

from homecloud.auth.gate import AuthorizationGate, Identity, require_admin
from homecloud.auth.tokens import TokenCodec
from homecloud.auth.users import UserService, user_to_info
from homecloud.config import Settings, get_settings
from homecloud.dashboard import DashboardService
from homecloud.database import create_engine, create_session_factory, create_tables
from homecloud.exceptions import NotFoundError, ValidationError
from homecloud.fs.blobs import LocalBlobStore, blob_suffix
from homecloud.fs.tree import FileTree
from homecloud.fs.types import BlobDownload
from homecloud.models.files import FileCategory

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from homecloud.fs.types import (
        BlobRef,
        DashboardStats,
        DeleteResult,
        FileInfo,
        ListResult,
        PublicShare,
        ShareInfo,
        ShareResult,
        UserInfo,
    )

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
MAX_BATCH_FILES = 10


@dataclass(frozen=True, slots=True)
class LoginResult:
    """A freshly issued credential and the user it belongs to."""

    token: str
    user: UserInfo


class HomeCloud:
    """Async facade for a single homecloud instance.

    Every public method runs in its own session and transaction (commit on
    success, rollback on error) while holding one ``asyncio.Lock``, so
    check-then-write sequences such as the sibling-name check cannot
    interleave.  Blob I/O for uploads happens outside the lock; blob
    release after a delete happens only once the metadata change is
    committed.

    Usage::

        async with HomeCloud(Settings(storage_dir=tmp)) as cloud:
            await cloud.setup("admin", "admin@example.com", "secret123")
            login = await cloud.login("admin@example.com", "secret123")
            me = await cloud.authenticate(f"Bearer {login.token}")
            await cloud.create_folder(me, "Photos")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._owns_engine = engine is None
        self._engine = engine or create_engine(
            self.settings.database_url, echo=self.settings.echo_sql
        )
        self._session_factory = create_session_factory(self._engine)
        self._lock = asyncio.Lock()
        self._closed = False

        self.tree = FileTree()
        self.users = UserService(
            bcrypt_rounds=self.settings.bcrypt_rounds,
            min_password_length=self.settings.min_password_length,
        )
        self.gate = AuthorizationGate(
            TokenCodec(
                self.settings.secret_key.get_secret_value(),
                self.settings.token_ttl_seconds,
            )
        )
        self.blobs = LocalBlobStore(
            self.settings.storage_dir,
            max_blob_size=self.settings.max_upload_bytes,
            timeout=self.settings.blob_timeout_seconds,
        )
        self.dashboard_service = DashboardService(self.tree.metadata, self.tree.sharing)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create tables and the storage directory."""
        if self.settings.uses_default_secret:
            logger.warning(
                "Running with the default secret key; set HOMECLOUD_SECRET_KEY"
            )
        await create_tables(self._engine)
        await self.blobs.open()
        logger.debug("HomeCloud ready (storage at %s)", self.blobs.root)

    async def close(self) -> None:
        """Dispose the engine if this instance created it."""
        if self._closed:
            return
        self._closed = True
        if self._owns_engine:
            await self._engine.dispose()

    async def __aenter__(self) -> HomeCloud:
        await self.open()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession]:
        """Yield a session inside the write lock; commit on success, roll back on error."""
        async with self._lock:
            session = self._session_factory()
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def _release_blobs(self, user_id: int, names: list[str]) -> None:
        for name in names:
            try:
                await self.blobs.release(user_id, name)
            except Exception:
                logger.warning(
                    "Failed to release blob %s of user %s", name, user_id, exc_info=True
                )

    # ------------------------------------------------------------------
    # Setup and authentication
    # ------------------------------------------------------------------

    async def setup_required(self) -> bool:
        async with self._session() as session:
            return await self.users.setup_required(session)

    async def setup(self, username: str, email: str, password: str) -> LoginResult:
        """Create the first (administrator) account and log it in."""
        password_hash = await self.users.prepare_password(password)
        async with self._session() as session:
            user = await self.users.setup(
                session, username, email, password, password_hash=password_hash
            )
            token = self.gate.issue(user)
            info = user_to_info(user)
        logger.info("Initial setup completed by %s", info.username)
        return LoginResult(token=token, user=info)

    async def login(self, email: str, password: str) -> LoginResult:
        async with self._session() as session:
            user = await self.users.login(session, email, password)
            return LoginResult(token=self.gate.issue(user), user=user_to_info(user))

    async def authenticate(self, credential: str | None) -> Identity:
        """Resolve ``"Bearer <token>"`` (or a bare token) to the calling identity."""
        async with self._session() as session:
            return await self.gate.authenticate(session, credential)

    async def me(self, identity: Identity) -> UserInfo:
        async with self._session() as session:
            return user_to_info(await self.users.get(session, identity.id))

    async def update_profile(
        self,
        identity: Identity,
        *,
        username: str | None = None,
        email: str | None = None,
    ) -> UserInfo:
        async with self._session() as session:
            user = await self.users.update_profile(
                session, identity.id, username=username, email=email
            )
            return user_to_info(user)

    async def change_password(
        self, identity: Identity, current_password: str, new_password: str
    ) -> LoginResult:
        """Change the password; every earlier token stops working.

        Returns a fresh credential so the caller stays logged in.
        """
        new_hash = await self.users.prepare_password(new_password)
        async with self._session() as session:
            user = await self.users.change_password(
                session,
                identity.id,
                current_password,
                new_password,
                new_password_hash=new_hash,
            )
            return LoginResult(token=self.gate.issue(user), user=user_to_info(user))

    async def logout_all(self, identity: Identity) -> None:
        async with self._session() as session:
            await self.users.invalidate_tokens(session, identity.id)

    # ------------------------------------------------------------------
    # User administration
    # ------------------------------------------------------------------

    async def list_users(self, identity: Identity) -> list[UserInfo]:
        require_admin(identity)
        async with self._session() as session:
            return await self.users.list_users(session)

    async def create_user(
        self,
        identity: Identity,
        username: str,
        email: str,
        password: str,
        *,
        is_admin: bool = False,
    ) -> UserInfo:
        require_admin(identity)
        password_hash = await self.users.prepare_password(password)
        async with self._session() as session:
            user = await self.users.create_user(
                session,
                username,
                email,
                password,
                is_admin=is_admin,
                password_hash=password_hash,
            )
            return user_to_info(user)

    async def delete_user(self, identity: Identity, target_id: int) -> None:
        """Delete a user with all their files, shares and blobs."""
        require_admin(identity)
        async with self._session() as session:
            await self.users.delete_user(session, identity, target_id)
        try:
            await self.blobs.release_owner(target_id)
        except Exception:
            logger.warning("Failed to release blobs of user %s", target_id, exc_info=True)

    # ------------------------------------------------------------------
    # File tree reads
    # ------------------------------------------------------------------

    async def list_dir(
        self,
        identity: Identity,
        parent_id: int | None = None,
        *,
        starred_only: bool = False,
    ) -> ListResult:
        async with self._session() as session:
            return await self.tree.list_dir(
                session, identity.id, parent_id, starred_only=starred_only
            )

    async def list_trash(self, identity: Identity) -> list[FileInfo]:
        async with self._session() as session:
            return await self.tree.list_trash(session, identity.id)

    async def list_recent(self, identity: Identity, limit: int | None = None) -> list[FileInfo]:
        async with self._session() as session:
            return await self.tree.list_recent(
                session,
                identity.id,
                self.settings.recent_limit if limit is None else limit,
            )

    async def dashboard(self, identity: Identity) -> DashboardStats:
        async with self._session() as session:
            return await self.dashboard_service.stats(session, identity.id)

    # ------------------------------------------------------------------
    # File tree writes
    # ------------------------------------------------------------------

    async def create_folder(
        self, identity: Identity, name: str, parent_id: int | None = None
    ) -> FileInfo:
        async with self._session() as session:
            return await self.tree.create_folder(session, identity.id, name, parent_id)

    async def upload(
        self,
        identity: Identity,
        filename: str,
        data: bytes | BinaryIO,
        *,
        parent_id: int | None = None,
        mime_type: str | None = None,
    ) -> FileInfo:
        """Store *data* as a new file named *filename*.

        The blob is written first; if the metadata cannot be registered it
        is released again before the error propagates.
        """
        if not filename or not filename.strip():
            raise ValidationError("Name is required")
        if mime_type is None:
            mime_type, _ = mimetypes.guess_type(filename)

        blob = await self.blobs.write(identity.id, data, suffix=blob_suffix(filename))
        try:
            async with self._session() as session:
                return await self.tree.register_upload(
                    session,
                    identity.id,
                    parent_id,
                    filename,
                    blob.name,
                    blob.size,
                    mime_type,
                )
        except Exception:
            await self._release_blobs(identity.id, [blob.name])
            raise

    async def upload_many(
        self,
        identity: Identity,
        files: Sequence[tuple[str, bytes | BinaryIO]],
        *,
        parent_id: int | None = None,
    ) -> list[FileInfo]:
        """Store up to ``MAX_BATCH_FILES`` files in one folder, all or nothing.

        Every blob is written before any metadata is registered, and all
        registrations share one transaction.  If any step fails, no file is
        recorded and every blob written so far is released.
        """
        if not files:
            raise ValidationError("No files provided")
        if len(files) > MAX_BATCH_FILES:
            raise ValidationError(f"At most {MAX_BATCH_FILES} files per upload")
        for filename, _ in files:
            if not filename or not filename.strip():
                raise ValidationError("Name is required")

        written: list[tuple[str, BlobRef]] = []
        try:
            for filename, data in files:
                blob = await self.blobs.write(identity.id, data, suffix=blob_suffix(filename))
                written.append((filename, blob))
            async with self._session() as session:
                infos = []
                for filename, blob in written:
                    mime_type, _ = mimetypes.guess_type(filename)
                    infos.append(
                        await self.tree.register_upload(
                            session,
                            identity.id,
                            parent_id,
                            filename,
                            blob.name,
                            blob.size,
                            mime_type,
                        )
                    )
        except Exception:
            await self._release_blobs(identity.id, [blob.name for _, blob in written])
            raise
        logger.info("User %s uploaded %d files", identity.id, len(infos))
        return infos

    async def rename(self, identity: Identity, file_id: int, new_name: str) -> FileInfo:
        async with self._session() as session:
            return await self.tree.rename(session, identity.id, file_id, new_name)

    async def toggle_star(self, identity: Identity, file_id: int) -> FileInfo:
        async with self._session() as session:
            return await self.tree.toggle_star(session, identity.id, file_id)

    async def move(
        self, identity: Identity, file_id: int, new_parent_id: int | None = None
    ) -> FileInfo:
        async with self._session() as session:
            return await self.tree.move(session, identity.id, file_id, new_parent_id)

    async def trash(self, identity: Identity, file_id: int) -> FileInfo:
        async with self._session() as session:
            return await self.tree.trash(session, identity.id, file_id)

    async def restore(self, identity: Identity, file_id: int) -> FileInfo:
        async with self._session() as session:
            return await self.tree.restore(session, identity.id, file_id)

    async def permanent_delete(self, identity: Identity, file_id: int) -> DeleteResult:
        async with self._session() as session:
            result = await self.tree.permanent_delete(session, identity.id, file_id)
        await self._release_blobs(identity.id, result.blob_names)
        return result

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def _open_blob(
        self,
        owner_id: int,
        blob_name: str,
        filename: str,
        mime_type: str | None,
        size_bytes: int,
        *,
        inline: bool,
    ) -> BlobDownload:
        if not blob_name or not await self.blobs.exists(owner_id, blob_name):
            raise NotFoundError(f"File content missing: {filename}")
        return BlobDownload(
            path=self.blobs.path(owner_id, blob_name),
            filename=filename,
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            size_bytes=size_bytes,
            inline=inline,
        )

    async def _owned_file(self, identity: Identity, file_id: int, *, inline: bool) -> BlobDownload:
        async with self._session() as session:
            info = await self.tree.get_file(session, identity.id, file_id)
            if info.is_folder:
                raise ValidationError("Folders cannot be downloaded")
            if inline and info.category != FileCategory.IMAGE.value:
                raise ValidationError("Preview is only available for images")
            blob_name = await self.tree.get_blob_name(session, identity.id, file_id)
        return await self._open_blob(
            identity.id, blob_name, info.name, info.mime_type, info.size_bytes, inline=inline
        )

    async def download(self, identity: Identity, file_id: int) -> BlobDownload:
        return await self._owned_file(identity, file_id, inline=False)

    async def preview(self, identity: Identity, file_id: int) -> BlobDownload:
        return await self._owned_file(identity, file_id, inline=True)

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    async def create_share(
        self, identity: Identity, file_id: int, recipient_id: int, permission: str = "view"
    ) -> ShareResult:
        async with self._session() as session:
            return await self.tree.sharing.create_share(
                session, identity.id, file_id, recipient_id, permission
            )

    async def create_public_link(
        self, identity: Identity, file_id: int, permission: str = "view"
    ) -> ShareResult:
        async with self._session() as session:
            return await self.tree.sharing.create_public_link(
                session, identity.id, file_id, permission
            )

    async def revoke_share(self, identity: Identity, share_id: int) -> None:
        async with self._session() as session:
            await self.tree.sharing.revoke_share(session, identity.id, share_id)

    async def list_my_shares(self, identity: Identity) -> list[ShareInfo]:
        async with self._session() as session:
            return await self.tree.sharing.list_my_shares(session, identity.id)

    async def list_shared_with_me(self, identity: Identity) -> list[ShareInfo]:
        async with self._session() as session:
            return await self.tree.sharing.list_shared_with_me(session, identity.id)

    async def list_shareable_users(self, identity: Identity) -> list[UserInfo]:
        async with self._session() as session:
            return await self.tree.sharing.list_shareable_users(session, identity.id)

    async def resolve_public(self, token: str) -> PublicShare:
        """Resolve a share token; no identity involved."""
        async with self._session() as session:
            return await self.tree.sharing.resolve_public_token(session, token)

    async def open_public(self, token: str, *, inline: bool = False) -> BlobDownload:
        """Open the file behind a share token for download or inline preview."""
        shared = await self.resolve_public(token)
        return await self._open_blob(
            shared.owner_id,
            shared.blob_name,
            shared.name,
            shared.mime_type,
            shared.size_bytes,
            inline=inline,
        )
