"""
Pluggable execution of fire-and-forget asynchronous jobs.

A job is a zero-argument callable returning an awaitable. Schedulers run jobs
detached from the caller: ``schedule`` returns immediately and never hands the
job's result or error back. Hosts with their own concurrency runtime can
provide any object satisfying ``AsyncScheduler``.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable, TypeAlias

from loguru import logger

from .task_manager import TaskManager

AsyncJob: TypeAlias = Callable[[], Awaitable[Any]]


@runtime_checkable
class AsyncScheduler(Protocol):
    """Anything able to run an async job independently of the caller."""

    def schedule(self, job: AsyncJob) -> None: ...


class TaskScheduler:
    """Runs each job as its own task on the running event loop."""

    def __init__(self, name: str = "metricshare-jobs") -> None:
        self._task_manager = TaskManager(name)

    @property
    def task_manager(self) -> TaskManager:
        return self._task_manager

    def schedule(self, job: AsyncJob) -> None:
        if self._task_manager.is_shut_down:
            logger.warning(
                f"[{self._task_manager.name}] Dropping job scheduled after shutdown"
            )
            return
        self._task_manager.create_task(_run_job(job))

    async def wait_idle(self, timeout: float | None = None) -> None:
        await self._task_manager.wait_idle(timeout)

    async def shutdown(self, timeout: float = 5.0) -> None:
        await self._task_manager.shutdown(timeout)

    def reopen(self) -> None:
        self._task_manager.reopen()


class DeferredScheduler:
    """
    Queues jobs and runs them only when ``run_pending`` is awaited.

    Used where the caller needs deterministic control over when detached work
    happens, most notably in tests.
    """

    def __init__(self) -> None:
        self._queue: deque[AsyncJob] = deque()
        self.completed = 0
        self.failed = 0

    def schedule(self, job: AsyncJob) -> None:
        self._queue.append(job)

    def __len__(self) -> int:
        return len(self._queue)

    async def run_pending(self) -> int:
        """Run queued jobs, including ones queued while draining; return the count."""
        executed = 0
        while self._queue:
            job = self._queue.popleft()
            executed += 1
            try:
                await job()
            except Exception as e:
                self.failed += 1
                logger.warning(f"[DeferredScheduler] Job failed: {e!r}")
            else:
                self.completed += 1
        return executed


async def _run_job(job: AsyncJob) -> None:
    try:
        await job()
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"Scheduled job failed: {e!r}")
