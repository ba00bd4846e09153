"""
Content-addressed PDF storage.

Layout: <root>/<hex(sha256(bytes))>.pdf

Writes go to a temporary file in the same directory and are promoted with
os.replace(), so a reader never sees a partial file at the final path. A
per-digest lock serializes concurrent imports of identical bytes within this
process; across processes the rename is atomic and both writers produce the
same content.
"""

import asyncio
import hashlib
import logging
import os
import uuid
from pathlib import Path
from typing import Optional

from paperlib.ingest.models import StoredFile

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".import-"
TEMP_SUFFIX = ".tmp"


def compute_content_hash(data: bytes) -> str:
    """Hex sha256 of `data`."""
    return hashlib.sha256(data).hexdigest()


def cleanup_temp(path: Optional[Path]) -> bool:
    """
    Best-effort removal of a scratch file.

    Never raises; failures are logged.

    Returns:
        True if a file was removed
    """
    if path is None:
        return False

    try:
        Path(path).unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Failed to remove temporary file {path}: {e}")
        return False


class ContentStore:
    """
    Idempotent, content-addressed file store.

    Every persist() takes a claim on its digest that the caller gives back
    with commit() (the import succeeded) or discard() (it did not). A file
    written by a discarded import is removed only once no other import
    holds a claim on it and none has committed it.

    Usage:
        store = ContentStore(Path("~/.paperlib/files"))
        stored = await store.persist(pdf_bytes)
        stored.path     # .../<sha256>.pdf
        stored.created  # False if the bytes were already stored
        store.commit(stored)
    """

    def __init__(self, root: Path, suffix: str = ".pdf"):
        self.root = Path(root).expanduser()
        self.suffix = suffix
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

        # digest -> number of imports holding it
        self._claims: dict[str, int] = {}
        # created by an import that was discarded; removed at the last release
        self._orphaned: set[str] = set()
        # committed by at least one import; never removed
        self._committed: set[str] = set()

    def path_for(self, content_hash: str) -> Path:
        return self.root / f"{content_hash}{self.suffix}"

    def exists(self, content_hash: str) -> bool:
        return self.path_for(content_hash).exists()

    def claims(self, content_hash: str) -> int:
        """Number of imports currently holding `content_hash`."""
        return self._claims.get(content_hash, 0)

    async def persist(self, data: bytes, content_hash: Optional[str] = None) -> StoredFile:
        """
        Store `data` under its digest and claim it.

        If the calling task is cancelled while the file is being written,
        the write is allowed to finish and its file is removed before
        CancelledError propagates.

        Args:
            data: Document bytes
            content_hash: Precomputed sha256 hex, if the caller already has it

        Returns:
            StoredFile describing the final path
        """
        digest = content_hash or compute_content_hash(data)
        lock = self._locks.setdefault(digest, asyncio.Lock())
        self._users[digest] = self._users.get(digest, 0) + 1

        try:
            async with lock:
                final_path = self.path_for(digest)

                if final_path.exists():
                    logger.debug(f"Dedup hit: {final_path.name}")
                    self._claim(digest)
                    return StoredFile(final_path, digest, len(data), created=False)

                write = asyncio.ensure_future(asyncio.to_thread(self._write_atomic, data, final_path))
                try:
                    await asyncio.shield(write)
                except asyncio.CancelledError:
                    await _wait_for_write(write)
                    if not write.cancelled() and write.exception() is None and digest not in self._claims:
                        cleanup_temp(final_path)
                        logger.info(f"Removed {final_path.name} written by a cancelled import")
                    raise

                self._claim(digest)
                logger.info(f"Stored {len(data):,} bytes as {final_path.name}")
                return StoredFile(final_path, digest, len(data), created=True)
        finally:
            self._users[digest] -= 1
            if self._users[digest] == 0:
                del self._users[digest]
                del self._locks[digest]

    def _write_atomic(self, data: bytes, final_path: Path):
        self.root.mkdir(parents=True, exist_ok=True)
        temp_path = self.root / f"{TEMP_PREFIX}{uuid.uuid4().hex}{TEMP_SUFFIX}"

        try:
            with open(temp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, final_path)
        finally:
            cleanup_temp(temp_path)

    def _claim(self, digest: str):
        self._claims[digest] = self._claims.get(digest, 0) + 1

    def _release(self, digest: str) -> bool:
        remaining = self._claims.get(digest, 0) - 1
        if remaining > 0:
            self._claims[digest] = remaining
            return False

        self._claims.pop(digest, None)
        orphaned = digest in self._orphaned and digest not in self._committed
        self._orphaned.discard(digest)
        self._committed.discard(digest)
        if not orphaned:
            return False

        path = self.path_for(digest)
        removed = cleanup_temp(path)
        if removed:
            logger.info(f"Discarded {path.name}")
        return removed

    def commit(self, stored: StoredFile):
        """Release a claim for an import that succeeded; the file is kept."""
        self._committed.add(stored.content_hash)
        self._release(stored.content_hash)

    def discard(self, stored: StoredFile) -> bool:
        """
        Release a claim for an import that failed or was cancelled.

        A file this import created is removed once the last claim on it is
        released, unless another import committed it meanwhile. Files that
        already existed are left alone because another record may point at
        them.

        Returns:
            True if the file was removed by this call
        """
        if stored.created:
            self._orphaned.add(stored.content_hash)
        return self._release(stored.content_hash)


async def _wait_for_write(write: asyncio.Future):
    """Wait for a threaded write to finish, ignoring further cancellation."""
    while not write.done():
        try:
            await asyncio.shield(write)
        except asyncio.CancelledError:
            continue
        except Exception:
            break
