"""
In-memory metric storage.

The provider and the synchronization protocol only need a small surface of the
storage engine, captured by ``MetricObserver``. ``InMemoryMetricObserver`` and
``Metric`` are the reference implementation: ordered history per metric, an
idempotent append, and explicit change subscriptions.
"""

from __future__ import annotations

import bisect
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Protocol, runtime_checkable, TypeAlias

from loguru import logger

from metricshare.datastructures.metric_identity import metric_fingerprint
from metricshare.datastructures.type_aliases import (
    MetricDescription,
    MetricId,
    MetricIdHash,
    MetricName,
    Timestamp,
)

from .model import (
    ExtendedMetricInfo,
    MetricInfo,
    MetricNotFound,
    MetricType,
    TimestampedValue,
)

ChangeListener: TypeAlias = Callable[[TimestampedValue], None]
Unsubscribe: TypeAlias = Callable[[], None]


@dataclass(eq=False, slots=True)
class Metric:
    """A single time series with an ordered, append-only history."""

    id: MetricId
    data_type: MetricType = MetricType.STRING
    name: MetricName | None = None
    description: MetricDescription | None = None
    can_be_updated_by_remote: bool = False
    id_hash: MetricIdHash = field(init=False)
    _values: list[TimestampedValue] = field(default_factory=list, init=False)
    _timestamps: list[Timestamp] = field(default_factory=list, init=False)
    _listeners: dict[int, ChangeListener] = field(default_factory=dict, init=False)
    _next_listener_id: int = field(default=0, init=False)
    _lock: RLock = field(default_factory=RLock, init=False)

    def __post_init__(self) -> None:
        self.id_hash = metric_fingerprint(self.id)

    @property
    def info(self) -> MetricInfo:
        return MetricInfo(
            id=self.id,
            data_type=self.data_type,
            name=self.name,
            description=self.description,
        )

    def on_change(self, listener: ChangeListener) -> Unsubscribe:
        """Call ``listener`` with the newest value after every accepted update.

        Returns a handle that removes the listener again.
        """
        with self._lock:
            listener_id = self._next_listener_id
            self._next_listener_id += 1
            self._listeners[listener_id] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(listener_id, None)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    async def record(self, value: Any, timestamp: Timestamp | None = None) -> bool:
        """Record one value, stamped with the current time unless given."""
        stamped = TimestampedValue(
            value=value, timestamp=time.time() if timestamp is None else timestamp
        )
        return await self.update([stamped]) == 1

    async def update(self, values: Iterable[TimestampedValue]) -> int:
        """
        Append values newer than the last stored one; return how many were kept.

        Values at or before the newest stored timestamp are dropped, which makes
        repeated or overlapping batches harmless.
        """
        accepted: list[TimestampedValue] = []
        with self._lock:
            for value in sorted(values, key=lambda item: item.timestamp):
                if self._timestamps and value.timestamp <= self._timestamps[-1]:
                    continue
                self._values.append(value)
                self._timestamps.append(value.timestamp)
                accepted.append(value)
            listeners = list(self._listeners.values())

        if accepted:
            newest = accepted[-1]
            for listener in listeners:
                try:
                    listener(newest)
                except Exception as e:
                    logger.warning(f"[{self.id}] Change listener failed: {e!r}")
        return len(accepted)

    async def last_value(self) -> TimestampedValue | None:
        with self._lock:
            return self._values[-1] if self._values else None

    async def last_update(self) -> Timestamp | None:
        with self._lock:
            return self._timestamps[-1] if self._timestamps else None

    async def history(
        self, start: Timestamp, end: Timestamp, limit: int | None = None
    ) -> list[TimestampedValue]:
        """Values within the closed range, ordered from ``start`` towards ``end``."""
        low, high = (start, end) if start <= end else (end, start)
        with self._lock:
            first = bisect.bisect_left(self._timestamps, low)
            last = bisect.bisect_right(self._timestamps, high)
            selected = self._values[first:last]
        if start > end:
            selected.reverse()
        if limit is not None:
            selected = selected[:limit]
        return selected

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)


@runtime_checkable
class MetricObserver(Protocol):
    """The storage operations the provider and synchronizer depend on."""

    def get_metric(self, metric_id: MetricId) -> Metric: ...

    def get_metric_by_hash(self, metric_hash: MetricIdHash) -> Metric: ...

    def metric_hashes(self) -> list[MetricIdHash]: ...

    def list_of_recorded_metrics(self) -> dict[MetricIdHash, MetricInfo]: ...

    async def last_values_of_all(self) -> dict[MetricIdHash, TimestampedValue]: ...

    async def extended_data_of_all(self) -> dict[MetricIdHash, ExtendedMetricInfo]: ...

    async def log(self, message: str, level: str = "INFO") -> None: ...


class InMemoryMetricObserver:
    """Holds metrics in process memory, keyed by identifier and fingerprint."""

    def __init__(self, log_metric_id: MetricId | None = "log") -> None:
        self._metrics: dict[MetricIdHash, Metric] = {}
        self._lock = RLock()
        self.log_metric: Metric | None = None
        if log_metric_id is not None:
            self.log_metric = self.add_metric(
                log_metric_id,
                MetricType.STRING,
                name="Log",
                description="Log messages of the metric observer",
            )

    def add_metric(
        self,
        metric_id: MetricId,
        data_type: MetricType = MetricType.STRING,
        *,
        name: MetricName | None = None,
        description: MetricDescription | None = None,
    ) -> Metric:
        """Register a metric, or return the existing one with the same id."""
        metric_hash = metric_fingerprint(metric_id)
        with self._lock:
            existing = self._metrics.get(metric_hash)
            if existing is not None:
                if existing.data_type != data_type:
                    raise ValueError(
                        f"Metric {metric_id} already registered as {existing.data_type}"
                    )
                return existing
            metric = Metric(
                metric_id, data_type, name=name, description=description
            )
            self._metrics[metric_hash] = metric
        logger.debug(f"[{metric_id}] Registered metric as {metric_hash}")
        return metric

    def get_metric(self, metric_id: MetricId) -> Metric:
        return self.get_metric_by_hash(metric_fingerprint(metric_id))

    def get_metric_by_hash(self, metric_hash: MetricIdHash) -> Metric:
        with self._lock:
            metric = self._metrics.get(metric_hash)
        if metric is None:
            raise MetricNotFound(f"No metric with fingerprint {metric_hash}")
        return metric

    def _snapshot(self) -> list[Metric]:
        with self._lock:
            return list(self._metrics.values())

    def metric_hashes(self) -> list[MetricIdHash]:
        return [metric.id_hash for metric in self._snapshot()]

    def list_of_recorded_metrics(self) -> dict[MetricIdHash, MetricInfo]:
        return {metric.id_hash: metric.info for metric in self._snapshot()}

    async def last_values_of_all(self) -> dict[MetricIdHash, TimestampedValue]:
        values: dict[MetricIdHash, TimestampedValue] = {}
        for metric in self._snapshot():
            last = await metric.last_value()
            if last is not None:
                values[metric.id_hash] = last
        return values

    async def extended_data_of_all(self) -> dict[MetricIdHash, ExtendedMetricInfo]:
        return {
            metric.id_hash: ExtendedMetricInfo(
                info=metric.info, last=await metric.last_value()
            )
            for metric in self._snapshot()
        }

    async def log(self, message: str, level: str = "INFO") -> None:
        """Record a line on the log metric and mirror it to loguru."""
        logger.log(level, message)
        if self.log_metric is not None:
            await self.log_metric.record(message)

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)
