"""
Detached background work

Write-behind persistence runs here so response latency never includes
store latency. The response is not coupled to these tasks: nobody awaits
them and their errors only reach the log.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Set

from call_ingest.core.logging import get_logger

logger = get_logger(__name__)


class BackgroundTaskRunner:
    """Spawns fire-and-forget tasks and keeps them alive until they finish"""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self._spawned = 0
        self._failed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, work: Callable[[], Awaitable[object]], name: str) -> asyncio.Task:
        """
        Schedule work on the running loop without waiting for it

        Args:
            work: Zero-argument callable returning an awaitable
            name: Label used in logs

        Returns:
            The created task (callers normally ignore it)
        """
        task = asyncio.create_task(self._run(work, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._spawned += 1
        return task

    async def _run(self, work: Callable[[], Awaitable[object]], name: str) -> None:
        try:
            await work()
        except asyncio.CancelledError:
            logger.warning(f"Background task {name} cancelled")
            raise
        except Exception as e:
            self._failed += 1
            logger.error(f"Background task {name} failed: {e}", exc_info=True)

    async def drain(self, timeout: Optional[float] = None) -> int:
        """
        Wait for pending tasks, cancelling whatever is left after timeout

        Returns:
            Number of tasks that had to be cancelled
        """
        if not self._tasks:
            return 0

        pending = list(self._tasks)
        _, still_pending = await asyncio.wait(pending, timeout=timeout)

        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            logger.warning(f"Cancelled {len(still_pending)} background task(s) at shutdown")
        return len(still_pending)

    def stats(self) -> dict:
        return {
            "pending": self.pending,
            "spawned": self._spawned,
            "failed": self._failed,
        }
