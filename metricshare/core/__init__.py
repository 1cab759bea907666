"""
metricshare core module.

Wire models, the route contract, storage, scheduling and the ambient
configuration, logging and serialization helpers.
"""

from .config import MetricShareSettings
from .metric_store import InMemoryMetricObserver, Metric, MetricObserver
from .model import (
    DISTANT_FUTURE,
    DISTANT_PAST,
    AccessDenied,
    BadRequest,
    ExtendedMetricInfo,
    FailedToDecode,
    FailedToEncode,
    MetricHistoryRequest,
    MetricInfo,
    MetricNotFound,
    MetricShareError,
    MetricType,
    NoValueAvailable,
    PreconditionFailed,
    TimestampedValue,
)
from .routes import RoutePrefix, Scope, ServerRoute
from .scheduler import AsyncScheduler, DeferredScheduler, TaskScheduler
from .serialization import JsonSerializer, Serializer
from .task_manager import TaskManager

__all__ = [
    "DISTANT_FUTURE",
    "DISTANT_PAST",
    "AccessDenied",
    "AsyncScheduler",
    "BadRequest",
    "DeferredScheduler",
    "ExtendedMetricInfo",
    "FailedToDecode",
    "FailedToEncode",
    "InMemoryMetricObserver",
    "JsonSerializer",
    "Metric",
    "MetricHistoryRequest",
    "MetricInfo",
    "MetricNotFound",
    "MetricObserver",
    "MetricShareError",
    "MetricShareSettings",
    "MetricType",
    "NoValueAvailable",
    "PreconditionFailed",
    "RoutePrefix",
    "Scope",
    "Serializer",
    "ServerRoute",
    "TaskManager",
    "TaskScheduler",
    "TimestampedValue",
]
