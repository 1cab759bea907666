"""
Metric synchronization between cooperating instances.

Two flows share nothing but the metric they concern:

- Push-notify: a local metric forwards every accepted update as a bodiless
  push request to a peer. Sending happens on the scheduler, never on the
  write path, and failures are only logged.
- Pull catch-up: a push request (or a manual trigger) for a metric with a
  registered binding runs the catch-up loop, which asks the peer for
  everything newer than the local metric's last timestamp until the peer has
  nothing new.

Catch-up stops on an empty batch or on a batch whose newest timestamp does not
move past the cursor, so repeated or overlapping windows cannot loop forever.
Errors abort the current run; the next notification is the retry.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from threading import RLock
from typing import Protocol, TypeAlias

import aiohttp
from loguru import logger

from metricshare.core.config import DEFAULT_NOTIFICATION_TIMEOUT
from metricshare.core.metric_store import Metric, MetricObserver, Unsubscribe
from metricshare.core.model import (
    DISTANT_PAST,
    MetricShareError,
    PreconditionFailed,
    TimestampedValue,
)
from metricshare.core.scheduler import AsyncScheduler, TaskScheduler
from metricshare.datastructures.metric_identity import metric_fingerprint
from metricshare.datastructures.type_aliases import (
    DurationSeconds,
    MetricId,
    MetricIdHash,
    Timestamp,
)

from .remote import RemoteMetricObserver

PullFunction: TypeAlias = Callable[[], Awaitable[bool]]
Clock: TypeAlias = Callable[[], Timestamp]


class RemoteHistorySource(Protocol):
    """Where the catch-up loop reads remote values from."""

    async def history(
        self, start: Timestamp, end: Timestamp, limit: int | None = None
    ) -> list[TimestampedValue]: ...


@dataclass(frozen=True, slots=True)
class CatchUpResult:
    """Outcome of one catch-up run."""

    batches: int
    values_received: int
    values_added: int


async def catch_up(
    metric: Metric,
    remote: RemoteHistorySource,
    *,
    clock: Clock = time.time,
) -> CatchUpResult:
    """
    Bring ``metric`` up to date with ``remote``.

    Raises whatever the remote or the metric raise; callers decide how to
    report it.
    """
    cursor = await metric.last_update()
    if cursor is None:
        cursor = DISTANT_PAST

    batches = 0
    received = 0
    added = 0
    while True:
        batch = await remote.history(cursor, clock())
        batches += 1
        received += len(batch)
        added += await metric.update(batch)
        if not batch:
            break
        newest = max(value.timestamp for value in batch)
        if newest <= cursor:
            break
        cursor = newest
        logger.debug(f"[{metric.id}] Received {len(batch)} values from remote")

    return CatchUpResult(batches=batches, values_received=received, values_added=added)


class SynchronizationRegistry:
    """
    Maps local metric identifiers to the function pulling their remote updates.

    The first binding registered for a metric stays in place; later
    registrations for the same metric are ignored.
    """

    def __init__(self) -> None:
        self._bindings: dict[MetricId, PullFunction] = {}
        self._lock = RLock()

    def register(self, metric_id: MetricId, pull: PullFunction) -> bool:
        """Add a binding; return False if the metric already had one."""
        with self._lock:
            if metric_id in self._bindings:
                return False
            self._bindings[metric_id] = pull
            return True

    def get(self, metric_id: MetricId) -> PullFunction | None:
        with self._lock:
            return self._bindings.get(metric_id)

    def metric_ids(self) -> list[MetricId]:
        with self._lock:
            return list(self._bindings)

    def __contains__(self, metric_id: object) -> bool:
        with self._lock:
            return metric_id in self._bindings

    def __len__(self) -> int:
        with self._lock:
            return len(self._bindings)


class MetricSynchronizer:
    """Owns the bindings and outbound forwarders of one instance."""

    def __init__(
        self,
        *,
        scheduler: AsyncScheduler | None = None,
        registry: SynchronizationRegistry | None = None,
        observer: MetricObserver | None = None,
        notification_timeout: DurationSeconds = DEFAULT_NOTIFICATION_TIMEOUT,
        clock: Clock = time.time,
    ) -> None:
        self._owns_scheduler = scheduler is None
        self.scheduler: AsyncScheduler = (
            scheduler if scheduler is not None else TaskScheduler()
        )
        self.registry = registry if registry is not None else SynchronizationRegistry()
        self.observer = observer
        self.notification_timeout = notification_timeout
        self._clock = clock

    def open(self) -> None:
        """Accept jobs again after ``close``; injected schedulers are left alone."""
        if self._owns_scheduler and isinstance(self.scheduler, TaskScheduler):
            self.scheduler.reopen()

    async def close(self) -> None:
        """Cancel pending jobs of the scheduler this synchronizer created."""
        if self._owns_scheduler and isinstance(self.scheduler, TaskScheduler):
            await self.scheduler.shutdown()

    async def _report(self, message: str) -> None:
        if self.observer is not None:
            await self.observer.log(message, "WARNING")
        else:
            logger.warning(message)

    # Inbound

    def allow_updates(self, remote: RemoteHistorySource, metric: Metric) -> bool:
        """
        Let ``metric`` mirror ``remote``.

        Marks the metric as updatable by remotes. A push request for it then
        makes this instance pull all new values from ``remote``. Returns False,
        and changes nothing, if the metric is already bound.
        """

        async def pull() -> bool:
            return await self._update(metric, remote)

        if not self.registry.register(metric.id, pull):
            logger.debug(f"[{metric.id}] Already bound to a remote, keeping first")
            return False
        metric.can_be_updated_by_remote = True
        return True

    async def update_metric_from_remote(self, metric_id: MetricId) -> bool:
        """Run the catch-up for a bound metric now; False if unbound or failed."""
        pull = self.registry.get(metric_id)
        if pull is None:
            return False
        return await pull()

    def trigger_update(self, metric: Metric) -> None:
        """
        Schedule a catch-up for ``metric`` and return immediately.

        Raises ``PreconditionFailed`` before scheduling anything when the
        metric has no binding or is not updatable by remotes.
        """
        pull = self.registry.get(metric.id)
        if pull is None or not metric.can_be_updated_by_remote:
            raise PreconditionFailed(f"Metric {metric.id} is not updated by a remote")
        self.scheduler.schedule(pull)

    async def _update(self, metric: Metric, remote: RemoteHistorySource) -> bool:
        try:
            result = await catch_up(metric, remote, clock=self._clock)
        except (MetricShareError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            await self._report(f"[{metric.id}] Failed to update from remote: {e!r}")
            return False
        if result.values_added:
            logger.info(
                f"[{metric.id}] Added {result.values_added} values from remote "
                f"in {result.batches} requests"
            )
        return True

    # Outbound

    def push_updates(
        self,
        metric: Metric,
        remote: RemoteMetricObserver,
        remote_metric_id: MetricId | None = None,
        timeout: DurationSeconds | None = None,
    ) -> Unsubscribe:
        """
        Notify ``remote`` whenever ``metric`` changes.

        ``remote_metric_id`` names the metric on the remote if it differs from
        the local id. ``timeout`` overrides ``notification_timeout`` for these
        requests. Returns a handle that stops the forwarding.
        """
        remote_hash = metric_fingerprint(remote_metric_id or metric.id)
        request_timeout = timeout or self.notification_timeout

        def on_change(_: TimestampedValue) -> None:
            async def send() -> None:
                await self._notify(metric, remote, remote_hash, request_timeout)

            self.scheduler.schedule(send)

        return metric.on_change(on_change)

    async def _notify(
        self,
        metric: Metric,
        remote: RemoteMetricObserver,
        remote_hash: MetricIdHash,
        timeout: DurationSeconds,
    ) -> None:
        client = remote.client(timeout=timeout)
        try:
            await client.notify(remote_hash, timeout=timeout)
        except MetricShareError as e:
            await self._report(
                f"[{metric.id}] Failed to push value to {remote.remote_url}: "
                f"Response {e.status}"
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            await self._report(
                f"[{metric.id}] Failed to push value to {remote.remote_url}: {e!r}"
            )
