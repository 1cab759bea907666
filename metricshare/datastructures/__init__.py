"""
metricshare datastructures.

Small, dependency-free building blocks shared by the access control,
synchronization and server layers.
"""

from __future__ import annotations

from .metric_identity import (
    FINGERPRINT_LENGTH,
    fingerprint_all,
    is_valid_fingerprint,
    metric_fingerprint,
)
from .type_aliases import (
    AccessTokenString,
    DurationSeconds,
    MetricId,
    MetricIdHash,
    Timestamp,
    UrlString,
)

__all__ = [
    "FINGERPRINT_LENGTH",
    "fingerprint_all",
    "is_valid_fingerprint",
    "metric_fingerprint",
    "AccessTokenString",
    "DurationSeconds",
    "MetricId",
    "MetricIdHash",
    "Timestamp",
    "UrlString",
]
