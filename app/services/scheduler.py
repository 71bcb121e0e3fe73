import asyncio
import contextlib
import logging
from typing import Optional

from app.services.providers.registry import ProviderRegistry
from app.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Runs a batch sync every ``interval_hours`` on the application's event loop."""

    def __init__(self, engine: SyncEngine, registry: ProviderRegistry, interval_hours: float):
        self.engine = engine
        self.registry = registry
        self.interval_seconds = max(0.0, float(interval_hours or 0) * 3600)
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.interval_seconds <= 0:
            logger.info("Sync scheduler disabled (SYNC_INTERVAL_HOURS=0)")
            return
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("Sync scheduler active: every %sh", self.interval_seconds / 3600)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def tick(self) -> None:
        logger.info("Scheduled sync started")
        try:
            await self.engine.run_all(self.registry.adapters())
        except Exception:
            logger.exception("Scheduled sync failed")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.tick()
