"""
Semantic type aliases for metricshare datastructures.

These aliases replace raw str/float types with names that say what a value
means on the wire, so signatures read as documentation.
"""

from typing import TypeAlias

# Time and timestamp types
Timestamp: TypeAlias = float  # seconds since the Unix epoch
DurationSeconds: TypeAlias = float

# Metric identity types
MetricId: TypeAlias = str  # raw identifier, never exposed on the wire
MetricIdHash: TypeAlias = str  # fingerprint, lowercase hex
MetricName: TypeAlias = str
MetricDescription: TypeAlias = str

# Access control types
AccessTokenString: TypeAlias = str

# Network types
PortNumber: TypeAlias = int
UrlString: TypeAlias = str
RoutePath: TypeAlias = str
