"""
Tracking of in-flight background work.

Inbound events are acknowledged immediately and handled in background
tasks. On shutdown the tracker stops accepting new work and waits for the
running tasks to drain.
"""
import asyncio
import logging
from typing import Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class TaskTracker:

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()
        self._closing = False

    @property
    def closing(self) -> bool:
        return self._closing

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        if self._closing:
            coro.close()
            raise RuntimeError("TaskTracker is closing; not accepting new work")

        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} was cancelled")
            return

        error = task.exception()
        if error is not None:
            logger.error(
                f"Background task {task.get_name()} failed: {error}",
                exc_info=(type(error), error, error.__traceback__)
            )

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Stop accepting work and wait for running tasks.

        Tasks still running after ``timeout`` are cancelled.

        Returns:
            True if every task finished on its own
        """
        self._closing = True

        if not self._tasks:
            return True

        pending_count = len(self._tasks)
        logger.info(f"Waiting for {pending_count} in-flight task(s) to finish...")

        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)

        if pending:
            logger.warning(f"{len(pending)} task(s) did not finish in time, cancelling...")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            return False

        logger.info(f"✓ {len(done)} in-flight task(s) drained")
        return True


__all__ = ['TaskTracker']
