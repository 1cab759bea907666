"""
Task lifecycle management for detached background work.

Jobs scheduled on behalf of the synchronization protocol outlive the request
that triggered them. ``TaskManager`` keeps a strong reference to each task
until it finishes, logs failures, and cancels whatever is left on shutdown.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from loguru import logger


class TaskManager:
    """Tracks background tasks so they are neither garbage collected nor leaked."""

    def __init__(self, name: str = "TaskManager") -> None:
        self.name = name
        self.tasks: set[asyncio.Task[Any]] = set()
        self._shutdown_requested = False

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown_requested

    def create_task(
        self, coro: Coroutine[Any, Any, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Create and track a background task."""
        if self._shutdown_requested:
            coro.close()
            raise RuntimeError("Cannot create tasks after shutdown requested")

        task = asyncio.create_task(coro, name=name)
        self.tasks.add(task)
        task.add_done_callback(self._task_completed)
        return task

    def _task_completed(self, task: asyncio.Task[Any]) -> None:
        self.tasks.discard(task)
        task_name = task.get_name() or "unnamed"
        if task.cancelled():
            logger.debug(f"[{self.name}] Task {task_name} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"[{self.name}] Task {task_name} failed: {error!r}")

    async def wait_idle(self, timeout: float | None = None) -> None:
        """Wait until every currently tracked task has finished."""
        pending = [task for task in self.tasks if not task.done()]
        if pending:
            await asyncio.wait(pending, timeout=timeout)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Cancel all tracked tasks and wait for them to unwind."""
        if self._shutdown_requested:
            return
        self._shutdown_requested = True

        pending = [task for task in self.tasks if not task.done()]
        if not pending:
            logger.debug(f"[{self.name}] No tasks to shutdown")
            return

        logger.info(f"[{self.name}] Shutting down {len(pending)} background tasks")
        for task in pending:
            task.cancel()

        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            logger.warning(f"[{self.name}] Task did not stop in time: {task.get_name()}")

        self.tasks.clear()

    def reopen(self) -> None:
        """Accept new tasks again after a shutdown."""
        if self._shutdown_requested:
            logger.debug(f"[{self.name}] Accepting tasks again")
        self._shutdown_requested = False

    def __len__(self) -> int:
        return len(self.tasks)

    def __bool__(self) -> bool:
        return bool(self.tasks)
