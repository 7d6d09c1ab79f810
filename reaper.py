import asyncio
from datetime import timedelta
from typing import List, Optional

from backend import RoomStore
from constants import REAPER_INTERVAL_SECONDS, ROOM_RETENTION_SECONDS, STATUS_LOG_INTERVAL_SECONDS
from logging_config import get_logger
from sessions import SessionRegistry

logger = get_logger(__name__)


class Reaper:
    """Hourly sweep deleting rooms that are empty and older than the retention window.

    Empty rooms are normally deleted as soon as the last member leaves; this
    only catches the ones that slipped through.
    """

    def __init__(self, store: RoomStore, interval: float = REAPER_INTERVAL_SECONDS,
                 retention: float = ROOM_RETENTION_SECONDS):
        self.store = store
        self.interval = interval
        self.retention = timedelta(seconds=retention)
        self._task: Optional[asyncio.Task] = None

    async def sweep(self) -> List[str]:
        deleted = []
        for code in self.store.codes():
            async with self.store.locked(code):
                room = self.store.get(code)
                if room is None or room.users:
                    continue
                age = self.store.clock() - room.created_at
                if age > self.retention and self.store.delete_if_empty(code):
                    deleted.append(code)
                    logger.info(f"Reaper deleted stale empty room {code} (age {age})")
        if deleted:
            logger.info(f"Reaper sweep removed {len(deleted)} rooms, {self.store.list_active()} remain")
        else:
            logger.debug("Reaper sweep found nothing to remove")
        return deleted

    async def run(self):
        logger.info(f"Reaper started: interval {self.interval}s, retention {self.retention}")
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Reaper sweep failed: {e}", exc_info=True)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reaper stopped")


async def log_status_periodically(store: RoomStore, registry: SessionRegistry,
                                  interval: float = STATUS_LOG_INTERVAL_SECONDS):
    while True:
        await asyncio.sleep(interval)
        try:
            logger.info(f"Status: {store.list_active()} rooms, {store.connection_count()} members, {len(registry)} sessions")
        except Exception as e:
            logger.error(f"Status log failed: {e}", exc_info=True)
