"""Fire-and-forget background work with its own error boundary."""

import asyncio
from collections.abc import Awaitable

from .logging_config import get_logger

logger = get_logger(__name__)


class BackgroundTasks:
    """Keeps references to detached tasks and logs their failures.

    A failure never reaches whoever spawned the task; it is only visible in
    the logs and in `get_stats()`.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self.completed = 0
        self.failed = 0

    def spawn(self, coro: Awaitable, name: str) -> asyncio.Task:
        """Schedule a coroutine to run in the background."""
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.failed += 1
            logger.debug(f"[SW] Background task {task.get_name()} failed: {error!r}")
        else:
            self.completed += 1

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait for every task spawned so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self, timeout: float = 5.0) -> None:
        """Cancel outstanding tasks."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            try:
                await asyncio.wait_for(asyncio.gather(*tasks, return_exceptions=True), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"{len(tasks)} background tasks did not stop within timeout")

    def get_stats(self) -> dict:
        return {"pending": self.pending, "completed": self.completed, "failed": self.failed}
