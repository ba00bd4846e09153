"""
Cooperative cancellation for imports.

Each import owns one CancellationToken. The orchestrator checks it between
stages, and awaited network or parsing work is raced against it with
run_cancellable() so a cancelled import resolves promptly instead of waiting
for the slow operation to finish.
"""

import asyncio
import logging
from typing import Awaitable, TypeVar

from paperlib.ingest.errors import DownloadCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    One-shot cancellation signal.

    Usage:
        token = CancellationToken()
        ...
        token.cancel()
        token.raise_if_cancelled()  # -> DownloadCancelled
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason = "Import cancelled"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Import cancelled") -> bool:
        """Signal cancellation. Returns False if already cancelled."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise DownloadCancelled(self.reason)

    async def wait(self):
        await self._event.wait()


async def run_cancellable(awaitable: Awaitable[T], token: CancellationToken) -> T:
    """
    Await `awaitable`, abandoning it as soon as `token` fires.

    The underlying task is cancelled (closing any open HTTP connection) and
    DownloadCancelled is raised. A token that fires after the work finished
    but before this returns still wins: the result is discarded.
    """
    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise DownloadCancelled(token.reason)

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())

    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()

    if token.cancelled:
        if not work.done():
            work.cancel()
        # Drain so a late exception from the work is not reported as unretrieved
        outcome = await asyncio.gather(work, return_exceptions=True)
        if outcome and isinstance(outcome[0], Exception):
            logger.debug(f"Work finished with {outcome[0]!r} after cancellation")
        raise DownloadCancelled(token.reason)

    return work.result()
