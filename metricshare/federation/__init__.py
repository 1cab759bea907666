"""
Metric synchronization between instances.

``RemoteMetricObserver`` addresses a peer. ``MetricSynchronizer`` forwards
local changes to peers and pulls the values peers announce.
"""

from .remote import RemoteMetricObserver
from .sync import (
    CatchUpResult,
    MetricSynchronizer,
    PullFunction,
    RemoteHistorySource,
    SynchronizationRegistry,
    catch_up,
)

__all__ = [
    "CatchUpResult",
    "MetricSynchronizer",
    "PullFunction",
    "RemoteHistorySource",
    "RemoteMetricObserver",
    "SynchronizationRegistry",
    "catch_up",
]
