"""
metricshare - authorized HTTP access to recorded metrics.

A process records time series internally; metricshare exposes them to remote
callers and keeps metrics synchronized between cooperating instances.

## Architecture

- **core**: wire models, route contract, in-memory storage, scheduling
- **access**: shared secrets, scoped tokens and the authorization decision
- **server**: the aiohttp application serving the route contract
- **client**: typed access to the routes of a remote instance
- **federation**: push-notify and pull catch-up between instances

## Quick Start

```python
from metricshare import InMemoryMetricObserver, create_metric_provider

observer = InMemoryMetricObserver()
provider = create_metric_provider(observer, "my-secret")
await provider.start()
await observer.log("ready")
```
"""

from .access import AccessTokenManager, ScopedAccessToken, SharedSecret
from .client import MetricShareClient, RemoteMetric, TokenAccessProvider
from .core import (
    DISTANT_FUTURE,
    DISTANT_PAST,
    InMemoryMetricObserver,
    Metric,
    MetricShareError,
    MetricShareSettings,
    MetricType,
    Scope,
    ServerRoute,
    TimestampedValue,
)
from .datastructures import metric_fingerprint
from .federation import MetricSynchronizer, RemoteMetricObserver
from .server import MetricProvider, create_metric_provider

__version__ = "0.1.0"

__all__ = [
    "DISTANT_FUTURE",
    "DISTANT_PAST",
    "AccessTokenManager",
    "InMemoryMetricObserver",
    "Metric",
    "MetricProvider",
    "MetricShareClient",
    "MetricShareError",
    "MetricShareSettings",
    "MetricSynchronizer",
    "MetricType",
    "RemoteMetric",
    "RemoteMetricObserver",
    "Scope",
    "ScopedAccessToken",
    "ServerRoute",
    "SharedSecret",
    "TimestampedValue",
    "TokenAccessProvider",
    "create_metric_provider",
    "metric_fingerprint",
]
