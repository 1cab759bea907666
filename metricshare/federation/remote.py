"""Links to peer instances taking part in metric synchronization."""

from __future__ import annotations

from dataclasses import dataclass, field

from metricshare.client.client import (
    DEFAULT_REQUEST_TIMEOUT,
    MetricShareClient,
    RemoteMetric,
    RequestAccessProvider,
    TokenAccessProvider,
)
from metricshare.datastructures.type_aliases import (
    AccessTokenString,
    DurationSeconds,
    MetricId,
    UrlString,
)


@dataclass(frozen=True, slots=True)
class RemoteMetricObserver:
    """
    A peer instance, addressed by the URL of its metric routes.

    ``remote_url`` is where the peer's server runs plus the route prefix it was
    configured with, e.g. ``http://peer:8080/metrics``. Two links to the same
    URL are the same link, whatever credentials they carry.
    """

    remote_url: UrlString
    access_provider: RequestAccessProvider = field(compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "remote_url", self.remote_url.rstrip("/"))

    @classmethod
    def with_token(
        cls, remote_url: UrlString, access_token: AccessTokenString
    ) -> RemoteMetricObserver:
        return cls(remote_url, TokenAccessProvider(access_token))

    def client(
        self, timeout: DurationSeconds = DEFAULT_REQUEST_TIMEOUT
    ) -> MetricShareClient:
        return MetricShareClient(
            base_url=self.remote_url,
            access_provider=self.access_provider,
            timeout=timeout,
        )

    def metric(self, metric_id: MetricId) -> RemoteMetric:
        """The metric with ``metric_id`` on this peer."""
        return self.client().metric(metric_id)
