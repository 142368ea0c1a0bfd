"""Periodic TTL eviction for the notification mailbox."""

import asyncio

from hookrelay.common.logging import logger
from hookrelay.mailbox.store import NotificationStore


class EvictionSweeper:
    """Cancellable background loop calling `NotificationStore.sweep`."""

    def __init__(self, store: NotificationStore, interval_seconds: float = 300.0) -> None:
        self.store = store
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    def run_once(self) -> int:
        removed = self.store.sweep()
        if removed:
            logger.info("mailbox sweep removed=%s", removed)
        return removed

    async def run_forever(self) -> None:
        """Sweep every interval; errors in one pass are logged and the loop continues."""

        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("mailbox sweep failed: %s", exc)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
