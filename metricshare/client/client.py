"""
HTTP client for the metric routes of a remote instance.

Each call is a POST to ``{base_url}/{route}``; ``base_url`` already contains
the remote's route prefix. Credentials are attached by a
``RequestAccessProvider`` so callers can plug in their own scheme.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import aiohttp
import orjson
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from metricshare.core.model import (
    DISTANT_FUTURE,
    DISTANT_PAST,
    ExtendedMetricInfo,
    FailedToDecode,
    MetricHistoryRequest,
    MetricInfo,
    TimestampedValue,
    error_for_status,
)
from metricshare.core.routes import ACCESS_TOKEN_HEADER, ServerRoute
from metricshare.core.serialization import JsonSerializer, Serializer
from metricshare.datastructures.metric_identity import metric_fingerprint
from metricshare.datastructures.type_aliases import (
    AccessTokenString,
    DurationSeconds,
    MetricId,
    MetricIdHash,
    Timestamp,
    UrlString,
)

DEFAULT_REQUEST_TIMEOUT: DurationSeconds = 10.0

_VALUE = TypeAdapter(TimestampedValue)
_VALUE_LIST = TypeAdapter(list[TimestampedValue])
_INFO_LIST = TypeAdapter(list[MetricInfo])
_VALUE_MAP = TypeAdapter(dict[MetricIdHash, TimestampedValue])
_EXTENDED_MAP = TypeAdapter(dict[MetricIdHash, ExtendedMetricInfo])


@runtime_checkable
class RequestAccessProvider(Protocol):
    """Adds whatever credentials a remote expects to an outgoing request."""

    def add_access_data(self, headers: dict[str, str], route: ServerRoute) -> None: ...


@dataclass(frozen=True, slots=True)
class TokenAccessProvider:
    """Sends a fixed secret in the access token header."""

    access_token: AccessTokenString

    def add_access_data(self, headers: dict[str, str], route: ServerRoute) -> None:
        headers[ACCESS_TOKEN_HEADER] = self.access_token


@dataclass(slots=True)
class MetricShareClient:
    """Typed access to every route of a remote metric provider."""

    base_url: UrlString
    access_provider: RequestAccessProvider
    timeout: DurationSeconds = DEFAULT_REQUEST_TIMEOUT
    serializer: Serializer = field(default_factory=JsonSerializer)
    session: aiohttp.ClientSession | None = None

    def url_for(self, route: ServerRoute) -> UrlString:
        return f"{self.base_url.rstrip('/')}/{route.path}"

    async def request(
        self,
        route: ServerRoute,
        body: bytes | None = None,
        *,
        timeout: DurationSeconds | None = None,
    ) -> bytes:
        """POST to a route and return the response body.

        Raises the matching ``MetricShareError`` for any status other than 200.
        Transport failures propagate as ``aiohttp.ClientError`` or
        ``TimeoutError``.
        """
        headers: dict[str, str] = {}
        self.access_provider.add_access_data(headers, route)
        if body is not None:
            headers["Content-Type"] = self.serializer.content_type
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.timeout)
        url = self.url_for(route)

        if self.session is not None:
            return await self._send(self.session, url, route, headers, body, client_timeout)
        async with aiohttp.ClientSession() as session:
            return await self._send(session, url, route, headers, body, client_timeout)

    async def _send(
        self,
        session: aiohttp.ClientSession,
        url: UrlString,
        route: ServerRoute,
        headers: dict[str, str],
        body: bytes | None,
        timeout: aiohttp.ClientTimeout,
    ) -> bytes:
        async with session.post(
            url, data=body, headers=headers, timeout=timeout
        ) as response:
            payload = await response.read()
            if response.status != 200:
                logger.debug(
                    f"Request to {route.prefix.value} failed with status {response.status}"
                )
                raise error_for_status(
                    response.status, f"{url} answered {response.status}"
                )
            return payload

    def _decode(self, payload: bytes, adapter: TypeAdapter[Any]) -> Any:
        try:
            return adapter.validate_python(self.serializer.deserialize(payload))
        except (ValidationError, orjson.JSONDecodeError, ValueError) as e:
            raise FailedToDecode(f"Invalid response body: {e}") from e

    async def list_metrics(self) -> list[MetricInfo]:
        payload = await self.request(ServerRoute.metric_list())
        return self._decode(payload, _INFO_LIST)

    async def all_last_values(self) -> dict[MetricIdHash, TimestampedValue]:
        payload = await self.request(ServerRoute.all_last_values())
        return self._decode(payload, _VALUE_MAP)

    async def extended_list(self) -> dict[MetricIdHash, ExtendedMetricInfo]:
        payload = await self.request(ServerRoute.extended_info_list())
        return self._decode(payload, _EXTENDED_MAP)

    async def last_value(self, metric_id: MetricId) -> TimestampedValue:
        route = ServerRoute.last_value(metric_fingerprint(metric_id))
        return self._decode(await self.request(route), _VALUE)

    async def history(
        self,
        metric_id: MetricId,
        start: Timestamp = DISTANT_PAST,
        end: Timestamp = DISTANT_FUTURE,
        limit: int | None = None,
    ) -> list[TimestampedValue]:
        route = ServerRoute.metric_history(metric_fingerprint(metric_id))
        range_request = MetricHistoryRequest(start=start, end=end, limit=limit)
        body = self.serializer.serialize(range_request)
        return self._decode(await self.request(route, body), _VALUE_LIST)

    async def push(
        self, metric_id: MetricId, values: Sequence[TimestampedValue]
    ) -> None:
        """Write values directly into a remotely-updatable metric."""
        route = ServerRoute.push_value_to_metric(metric_fingerprint(metric_id))
        await self.request(route, self.serializer.serialize(list(values)))

    async def notify(
        self, metric_hash: MetricIdHash, *, timeout: DurationSeconds | None = None
    ) -> None:
        """Tell the remote that new values exist for the metric with this fingerprint."""
        await self.request(ServerRoute.push_value_to_metric(metric_hash), timeout=timeout)

    def metric(self, metric_id: MetricId) -> RemoteMetric:
        return RemoteMetric(client=self, metric_id=metric_id)


@dataclass(frozen=True, slots=True)
class RemoteMetric:
    """A single metric hosted by a remote instance."""

    client: MetricShareClient
    metric_id: MetricId

    @property
    def id_hash(self) -> MetricIdHash:
        return metric_fingerprint(self.metric_id)

    async def last_value(self) -> TimestampedValue:
        return await self.client.last_value(self.metric_id)

    async def history(
        self, start: Timestamp, end: Timestamp, limit: int | None = None
    ) -> list[TimestampedValue]:
        return await self.client.history(self.metric_id, start, end, limit)
