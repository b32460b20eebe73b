"""Background loop that fires periodic sync events at the active controller."""

import asyncio

from .controller import Registration
from .logging_config import get_logger

logger = get_logger(__name__)


class PeriodicSyncScheduler:
    """Refresh cached content on an interval while the gateway runs."""

    def __init__(self, registration: Registration, interval_sec: float, tag: str = "content-sync") -> None:
        self.registration = registration
        self.interval_sec = interval_sec
        self.tag = tag

        self.task: asyncio.Task | None = None
        self.running = False
        self.runs = 0

    async def start(self) -> None:
        """Start the periodic sync loop."""
        if self.running:
            return

        self.running = True
        self.task = asyncio.create_task(self._sync_loop())
        logger.info(f"Periodic sync started (every {self.interval_sec}s, tag={self.tag})")

    async def stop(self) -> None:
        """Stop the periodic sync loop."""
        if not self.running:
            return

        logger.info("Stopping periodic sync...")
        self.running = False

        if self.task:
            self.task.cancel()
            try:
                await asyncio.wait_for(self.task, timeout=5.0)
            except asyncio.CancelledError:
                pass
            except asyncio.TimeoutError:
                logger.warning("Periodic sync task did not stop within timeout")

        logger.info("Periodic sync stopped")

    async def run_once(self) -> None:
        await self.registration.periodic_sync(self.tag)
        self.runs += 1

    async def _sync_loop(self) -> None:
        """Background loop for refreshing the API partition."""
        while self.running:
            try:
                await asyncio.sleep(self.interval_sec)
                await self.run_once()
            except asyncio.CancelledError:
                logger.info("Periodic sync loop cancelled")
                break
            except Exception as e:
                logger.error(f"Error in periodic sync loop: {e}")

    def get_stats(self) -> dict:
        return {"running": self.running, "runs": self.runs, "interval_sec": self.interval_sec}
