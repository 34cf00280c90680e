"""LocalBlobStore — physical file bytes on local disk, one directory per user."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
import tempfile
import threading
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from homecloud.exceptions import NotFoundError, StorageError, ValidationError

from .types import BlobRef

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import TypeVar

    T = TypeVar("T")

logger = logging.getLogger(__name__)

DEFAULT_MAX_BLOB_SIZE = 100 * 1024 * 1024  # 100MB
DEFAULT_TIMEOUT = 30.0
CHUNK_SIZE = 1024 * 1024
MAX_SUFFIX_LENGTH = 16


def blob_suffix(filename: str) -> str:
    """Return a safe extension for a blob name derived from *filename*.

    Examples:
        blob_suffix("report.PDF") -> ".pdf"
        blob_suffix("archive") -> ""
        blob_suffix("evil.ex/e") -> ""
    """
    suffix = Path(filename).suffix.lower()
    if len(suffix) > MAX_SUFFIX_LENGTH or not suffix[1:].isalnum():
        return ""
    return suffix


def _log_abandoned(worker: asyncio.Task[object]) -> None:
    if worker.cancelled():
        return
    exc = worker.exception()
    if exc is not None:
        logger.debug("Timed-out blob operation ended with %r", exc)


class LocalBlobStore:
    """Stores blobs under ``{root}/{user_id}/{uuid}{ext}``.

    The original filename is never used on disk; it lives only in the
    FileNode metadata.  Every disk operation runs in a worker thread and is
    bounded by *timeout* seconds; ``OSError`` and timeouts surface as
    ``StorageError``.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        max_blob_size: int = DEFAULT_MAX_BLOB_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.root = Path(root).resolve()
        self.max_blob_size = max_blob_size
        self.timeout = timeout

    # =========================================================================
    # Path Resolution & Security
    # =========================================================================

    def _user_dir(self, user_id: int) -> Path:
        return self.root / str(int(user_id))

    def path(self, user_id: int, name: str) -> Path:
        """Resolve a blob name to its physical path.

        Rejects names that would escape the user's directory.
        """
        if not name or name in (".", "..") or "/" in name or "\\" in name or "\0" in name:
            raise NotFoundError(f"Invalid blob name: {name!r}")
        user_dir = self._user_dir(user_id)
        resolved = (user_dir / name).resolve()
        try:
            resolved.relative_to(user_dir.resolve())
        except ValueError:
            raise NotFoundError(f"Invalid blob name: {name!r}") from None
        return resolved

    # =========================================================================
    # Thread offload
    # =========================================================================

    async def _run(
        self,
        func: Callable[..., T],
        *args: object,
        on_timeout: Callable[[asyncio.Task[T]], None] | None = None,
    ) -> T:
        """Run *func* in a worker thread, bounded by ``self.timeout``.

        A thread cannot be interrupted, so on timeout the worker keeps
        running.  *on_timeout* receives its task and is responsible for
        undoing whatever the worker still completes.
        """
        worker = asyncio.ensure_future(asyncio.to_thread(func, *args))
        try:
            return await asyncio.wait_for(asyncio.shield(worker), self.timeout)
        except TimeoutError as e:
            worker.add_done_callback(_log_abandoned)
            if on_timeout is not None:
                on_timeout(worker)
            raise StorageError(f"Blob storage timed out after {self.timeout}s") from e
        except OSError as e:
            raise StorageError(f"Blob storage failed: {e}") from e

    # =========================================================================
    # Operations
    # =========================================================================

    async def open(self) -> None:
        """Create the storage root if needed."""
        await self._run(lambda: self.root.mkdir(parents=True, exist_ok=True))

    async def write(
        self, user_id: int, data: bytes | BinaryIO, *, suffix: str = ""
    ) -> BlobRef:
        """Persist *data* as a new blob. Atomic via tempfile + replace.

        A partially written blob is removed before the error propagates.
        On timeout the worker is told to stop at its next chunk, and a blob
        it still manages to finish is deleted once the worker returns.
        """
        name = f"{uuid.uuid4().hex}{suffix}"
        target = self.path(user_id, name)
        limit = self.max_blob_size
        abandoned = threading.Event()

        def _check_abandoned() -> None:
            if abandoned.is_set():
                raise StorageError(f"Blob write abandoned: {name}")

        def _write() -> int:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), suffix=".part")
            try:
                size = 0
                with os.fdopen(fd, "wb") as f:
                    if isinstance(data, (bytes, bytearray, memoryview)):
                        size = len(data)
                        if size > limit:
                            raise ValidationError(f"File too large ({size:,} bytes, limit {limit:,})")
                        f.write(data)
                    else:
                        while chunk := data.read(CHUNK_SIZE):
                            _check_abandoned()
                            size += len(chunk)
                            if size > limit:
                                raise ValidationError(f"File too large (limit {limit:,} bytes)")
                            f.write(chunk)
                _check_abandoned()
                Path(tmp_path).replace(target)
            except BaseException:
                with contextlib.suppress(OSError):
                    Path(tmp_path).unlink()
                raise
            return size

        def _discard(worker: asyncio.Task[int]) -> None:
            if worker.cancelled() or worker.exception() is not None:
                return
            try:
                target.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove abandoned blob %s", target, exc_info=True)
            else:
                logger.debug("Removed abandoned blob %s for user %s", name, user_id)

        def _abandon(worker: asyncio.Task[int]) -> None:
            abandoned.set()
            worker.add_done_callback(_discard)

        size = await self._run(_write, on_timeout=_abandon)
        logger.debug("Wrote blob %s for user %s (%d bytes)", name, user_id, size)
        return BlobRef(name=name, size=size)

    async def exists(self, user_id: int, name: str) -> bool:
        try:
            target = self.path(user_id, name)
        except NotFoundError:
            return False
        return await self._run(target.is_file)

    async def release(self, user_id: int, name: str) -> bool:
        """Delete a blob. A missing blob is not an error; returns whether one was removed."""
        target = self.path(user_id, name)

        def _unlink() -> bool:
            try:
                target.unlink()
            except FileNotFoundError:
                return False
            return True

        removed = await self._run(_unlink)
        if removed:
            logger.debug("Released blob %s for user %s", name, user_id)
        return removed

    async def release_owner(self, user_id: int) -> bool:
        """Delete every blob of *user_id*. Returns whether the directory existed."""
        user_dir = self._user_dir(user_id)

        def _rmtree() -> bool:
            if not user_dir.exists():
                return False
            shutil.rmtree(user_dir)
            return True

        return await self._run(_rmtree)
