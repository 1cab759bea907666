"""
metricshare client module.

Client-side access to the metric routes of a remote instance.
"""

from __future__ import annotations

from .client import (
    MetricShareClient,
    RemoteMetric,
    RequestAccessProvider,
    TokenAccessProvider,
)

__all__ = [
    "MetricShareClient",
    "RemoteMetric",
    "RequestAccessProvider",
    "TokenAccessProvider",
]
