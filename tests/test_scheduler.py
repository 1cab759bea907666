"""Tests for job scheduling and background task management."""

import asyncio

import pytest

from metricshare.core.scheduler import AsyncScheduler, DeferredScheduler, TaskScheduler
from metricshare.core.task_manager import TaskManager


class TestTaskManager:
    async def test_tracks_until_done(self):
        manager = TaskManager("test")
        release = asyncio.Event()

        async def job() -> None:
            await release.wait()

        manager.create_task(job(), name="waiting")
        assert len(manager) == 1 and manager

        release.set()
        await manager.wait_idle(timeout=1.0)
        await asyncio.sleep(0)
        assert len(manager) == 0

    async def test_shutdown_cancels_pending(self):
        manager = TaskManager("test")
        task = manager.create_task(asyncio.sleep(60))

        await manager.shutdown(timeout=1.0)

        assert task.cancelled()
        assert manager.is_shut_down
        assert not manager

    async def test_no_tasks_after_shutdown(self):
        manager = TaskManager("test")
        await manager.shutdown()
        with pytest.raises(RuntimeError):
            manager.create_task(asyncio.sleep(0))

    async def test_failed_task_is_released(self):
        manager = TaskManager("test")

        async def failing() -> None:
            raise ValueError("boom")

        manager.create_task(failing())
        await manager.wait_idle(timeout=1.0)
        await asyncio.sleep(0)
        assert len(manager) == 0


class TestTaskScheduler:
    async def test_schedule_returns_before_job_runs(self):
        scheduler = TaskScheduler()
        ran: list[str] = []

        async def job() -> None:
            ran.append("job")

        scheduler.schedule(job)
        assert ran == []

        await scheduler.wait_idle(timeout=1.0)
        assert ran == ["job"]
        await scheduler.shutdown()

    async def test_job_errors_do_not_propagate(self):
        scheduler = TaskScheduler()

        async def failing() -> None:
            raise RuntimeError("detached failure")

        scheduler.schedule(failing)
        await scheduler.wait_idle(timeout=1.0)
        assert len(scheduler.task_manager) == 0
        await scheduler.shutdown()

    async def test_jobs_after_shutdown_are_dropped(self):
        scheduler = TaskScheduler()
        await scheduler.shutdown()
        ran: list[str] = []

        async def job() -> None:
            ran.append("job")

        scheduler.schedule(job)
        await asyncio.sleep(0)
        assert ran == []

    async def test_reopen_accepts_jobs_again(self):
        scheduler = TaskScheduler()
        await scheduler.shutdown()
        scheduler.reopen()
        ran: list[str] = []

        async def job() -> None:
            ran.append("job")

        scheduler.schedule(job)
        await scheduler.wait_idle(timeout=1.0)
        assert ran == ["job"]
        await scheduler.shutdown()

    def test_satisfies_protocol(self):
        assert isinstance(TaskScheduler(), AsyncScheduler)
        assert isinstance(DeferredScheduler(), AsyncScheduler)


class TestDeferredScheduler:
    async def test_runs_only_when_drained(self):
        scheduler = DeferredScheduler()
        ran: list[int] = []

        async def job() -> None:
            ran.append(1)

        scheduler.schedule(job)
        scheduler.schedule(job)
        assert len(scheduler) == 2 and ran == []

        assert await scheduler.run_pending() == 2
        assert ran == [1, 1]
        assert scheduler.completed == 2

    async def test_jobs_queued_while_draining_run_too(self):
        scheduler = DeferredScheduler()
        ran: list[str] = []

        async def second() -> None:
            ran.append("second")

        async def first() -> None:
            ran.append("first")
            scheduler.schedule(second)

        scheduler.schedule(first)
        assert await scheduler.run_pending() == 2
        assert ran == ["first", "second"]

    async def test_failures_are_counted(self):
        scheduler = DeferredScheduler()

        async def failing() -> None:
            raise RuntimeError("boom")

        scheduler.schedule(failing)
        assert await scheduler.run_pending() == 1
        assert scheduler.failed == 1
        assert scheduler.completed == 0
