from __future__ import annotations

import asyncio

from locsync.core.errors import SyncCancelled


class SyncControl:
    """Pause and cancellation flags consulted between pages and batches.

    Work already issued (a page request or a batch call) always runs to
    completion; the flags only take effect at the next checkpoint. Must be
    used from the event loop running the sync.
    """

    def __init__(self):
        self._running = asyncio.Event()
        self._running.set()
        self._cancelled = False

    @property
    def paused(self) -> bool:
        return not self._running.is_set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def pause(self):
        self._running.clear()

    def resume(self):
        self._running.set()

    def cancel(self):
        self._cancelled = True
        # Wake a paused run so it can observe the cancellation.
        self._running.set()

    async def checkpoint(self, where: str = ""):
        if self._cancelled:
            raise SyncCancelled(f"sync_cancelled at={where or '-'}")
        if not self._running.is_set():
            await self._running.wait()
            if self._cancelled:
                raise SyncCancelled(f"sync_cancelled at={where or '-'}")
