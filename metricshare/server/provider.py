"""
HTTP endpoints exposing recorded metrics to remote callers.

``MetricProvider`` binds the route contract to an aiohttp application. Every
handler resolves the credential and the target fingerprint, asks the access
manager which metrics may be released, and only then reads from storage.
Handlers raise ``MetricShareError`` subclasses; the error middleware turns them
into bodiless responses carrying the matching status, so a denied request
never reveals which check failed.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from aiohttp import web
from loguru import logger
from pydantic import TypeAdapter

from metricshare.access.tokens import MetricAccessManager, as_access_manager
from metricshare.core.config import MetricShareSettings
from metricshare.core.metric_store import Metric, MetricObserver, Unsubscribe
from metricshare.core.model import (
    AccessDenied,
    BadRequest,
    FailedToDecode,
    FailedToEncode,
    MetricHistoryRequest,
    MetricShareError,
    NoValueAvailable,
    PreconditionFailed,
    TimestampedValue,
)
from metricshare.core.routes import (
    ACCESS_TOKEN_HEADER,
    HASH_PARAMETER_NAME,
    RoutePrefix,
    ServerRoute,
)
from metricshare.core.scheduler import AsyncScheduler
from metricshare.core.serialization import JsonSerializer, Serializer
from metricshare.datastructures.metric_identity import is_valid_fingerprint
from metricshare.datastructures.type_aliases import (
    AccessTokenString,
    MetricId,
    MetricIdHash,
    PortNumber,
    RoutePath,
    UrlString,
)
from metricshare.federation.remote import RemoteMetricObserver
from metricshare.federation.sync import MetricSynchronizer, RemoteHistorySource

Handler: TypeAlias = Callable[[web.Request], Awaitable[web.StreamResponse]]

_PUSHED_VALUES = TypeAdapter(list[TimestampedValue])
_HISTORY_REQUEST = TypeAdapter(MetricHistoryRequest)


@dataclass
class MetricProvider:
    """
    Serves the metrics of an observer over HTTP.

    The provider also owns the synchronizer of this instance, so that inbound
    push requests can trigger the catch-up registered for a metric.
    """

    observer: MetricObserver
    access_manager: MetricAccessManager
    settings: MetricShareSettings = field(default_factory=MetricShareSettings)
    synchronizer: MetricSynchronizer | None = None
    serializer: Serializer = field(default_factory=JsonSerializer)

    # Web server components
    app: web.Application = field(init=False)
    runner: web.AppRunner | None = field(default=None, init=False)
    site: web.TCPSite | None = field(default=None, init=False)
    _port: PortNumber = field(init=False)

    def __post_init__(self) -> None:
        self.access_manager = as_access_manager(self.access_manager)
        if self.synchronizer is None:
            self.synchronizer = MetricSynchronizer(
                observer=self.observer,
                notification_timeout=self.settings.remote_notification_timeout,
            )
        self._port = self.settings.port
        self.app = web.Application()
        self._setup_routes()
        self._setup_middleware()

    @property
    def route_prefix(self) -> str:
        return self.settings.route_prefix

    @property
    def port(self) -> PortNumber:
        """The bound port once started, the configured one before."""
        return self._port

    @property
    def base_url(self) -> UrlString:
        """URL a peer uses to reach these routes, prefix included."""
        url = f"http://{self.settings.host}:{self._port}"
        return f"{url}/{self.route_prefix}" if self.route_prefix else url

    def path_for(self, prefix: RoutePrefix) -> RoutePath:
        base = f"/{self.route_prefix}/" if self.route_prefix else "/"
        return base + prefix.path_pattern()

    def _setup_routes(self) -> None:
        """Register the route contract; fixed paths before parameterized ones."""
        handlers: list[tuple[RoutePrefix, Handler]] = [
            (RoutePrefix.GET_METRIC_LIST, self._get_metric_list),
            (RoutePrefix.ALL_LAST_VALUES, self._get_all_last_values),
            (RoutePrefix.EXTENDED_INFO_LIST, self._get_extended_info_list),
            (RoutePrefix.LAST_VALUE, self._get_last_value),
            (RoutePrefix.METRIC_HISTORY, self._get_metric_history),
            (RoutePrefix.PUSH_VALUE_TO_METRIC, self._push_value_to_metric),
        ]
        for prefix, handler in handlers:
            self.app.router.add_post(self.path_for(prefix), handler)

    def _setup_middleware(self) -> None:
        @web.middleware
        async def logging_middleware(
            request: web.Request, handler: Handler
        ) -> web.StreamResponse:
            start_time = time.time()
            response = await handler(request)
            duration_ms = (time.time() - start_time) * 1000.0
            logger.debug(
                f"{request.method} {request.path} -> {response.status} "
                f"({duration_ms:.1f}ms)"
            )
            return response

        @web.middleware
        async def error_middleware(
            request: web.Request, handler: Handler
        ) -> web.StreamResponse:
            try:
                return await handler(request)
            except MetricShareError as e:
                return web.Response(status=e.status)

        self.app.middlewares.append(logging_middleware)
        self.app.middlewares.append(error_middleware)

    async def start(self) -> None:
        """Start serving; falls back to an ephemeral port if ours is taken."""
        self.synchronizer.open()
        try:
            await self._start_server()
        except OSError as e:
            if self._port == 0:
                logger.error(f"Failed to start metric provider: {e}")
                raise
            logger.warning(
                f"Port {self._port} unavailable: {e}. Falling back to an ephemeral port."
            )
            await self._cleanup_runner()
            self._port = 0
            await self._start_server()

    async def _start_server(self) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        self.site = web.TCPSite(self.runner, host=self.settings.host, port=self._port)
        await self.site.start()

        if self._port == 0 and self.site._server and self.site._server.sockets:
            self._port = self.site._server.sockets[0].getsockname()[1]

        logger.info(f"[{self.settings.name}] Serving metrics on {self.base_url}")

    async def _cleanup_runner(self) -> None:
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
        self.site = None

    async def stop(self) -> None:
        """Stop serving and cancel pending synchronization jobs."""
        if self.site is not None:
            await self.site.stop()
        await self._cleanup_runner()

        await self.synchronizer.close()
        logger.debug(f"[{self.settings.name}] Metric provider stopped")

    # Synchronization

    def allow_updates(self, remote: RemoteHistorySource, metric: Metric) -> bool:
        """Let push requests for ``metric`` pull new values from ``remote``."""
        return self.synchronizer.allow_updates(remote, metric)

    async def update_metric_from_remote(self, metric_id: MetricId) -> bool:
        return await self.synchronizer.update_metric_from_remote(metric_id)

    def push_updates(
        self,
        metric: Metric,
        remote: RemoteMetricObserver,
        remote_metric_id: MetricId | None = None,
        timeout: float | None = None,
    ) -> Unsubscribe:
        """Notify ``remote`` about every new value of ``metric``."""
        return self.synchronizer.push_updates(metric, remote, remote_metric_id, timeout)

    @property
    def scheduler(self) -> AsyncScheduler:
        return self.synchronizer.scheduler

    # Request helpers

    def _access_token(self, request: web.Request) -> AccessTokenString:
        token = request.headers.get(ACCESS_TOKEN_HEADER)
        if token is None:
            raise BadRequest("Missing access token")
        return token

    def _metric_hash(self, request: web.Request) -> MetricIdHash:
        metric_hash = request.match_info.get(HASH_PARAMETER_NAME, "")
        if not is_valid_fingerprint(metric_hash):
            raise BadRequest("Invalid metric fingerprint")
        return metric_hash

    def _allowed_metrics(
        self, request: web.Request, prefix: RoutePrefix
    ) -> set[MetricIdHash]:
        token = self._access_token(request)
        route = ServerRoute(prefix)
        candidates: Sequence[MetricIdHash] = self.observer.metric_hashes()
        return set(self.access_manager.get_allowed_metrics(token, route, candidates))

    def _authorized_metric(self, request: web.Request, prefix: RoutePrefix) -> Metric:
        """Authorize a single-metric route, then resolve its metric."""
        token = self._access_token(request)
        metric_hash = self._metric_hash(request)
        route = ServerRoute(prefix, metric_hash)
        allowed = self.access_manager.get_allowed_metrics(token, route, [metric_hash])
        if metric_hash not in allowed:
            raise AccessDenied()
        return self.observer.get_metric_by_hash(metric_hash)

    def _encode(self, data: Any) -> web.Response:
        try:
            body = self.serializer.serialize(data)
        except TypeError as e:
            logger.error(f"Failed to encode response: {e!r}")
            raise FailedToEncode() from e
        return web.Response(body=body, content_type=self.serializer.content_type)

    async def _decode(self, request: web.Request, adapter: TypeAdapter[Any]) -> Any:
        body = await request.read()
        try:
            return adapter.validate_python(self.serializer.deserialize(body))
        except ValueError as e:
            logger.warning(f"Failed to decode request body: {e!r}")
            raise FailedToDecode(f"Invalid request body: {e}") from e

    # Route handlers

    async def _get_metric_list(self, request: web.Request) -> web.Response:
        allowed = self._allowed_metrics(request, RoutePrefix.GET_METRIC_LIST)
        infos = self.observer.list_of_recorded_metrics()
        return self._encode(
            [info for metric_hash, info in infos.items() if metric_hash in allowed]
        )

    async def _get_all_last_values(self, request: web.Request) -> web.Response:
        allowed = self._allowed_metrics(request, RoutePrefix.ALL_LAST_VALUES)
        values = await self.observer.last_values_of_all()
        return self._encode(
            {
                metric_hash: value
                for metric_hash, value in values.items()
                if metric_hash in allowed
            }
        )

    async def _get_extended_info_list(self, request: web.Request) -> web.Response:
        allowed = self._allowed_metrics(request, RoutePrefix.EXTENDED_INFO_LIST)
        extended = await self.observer.extended_data_of_all()
        return self._encode(
            {
                metric_hash: data
                for metric_hash, data in extended.items()
                if metric_hash in allowed
            }
        )

    async def _get_last_value(self, request: web.Request) -> web.Response:
        metric = self._authorized_metric(request, RoutePrefix.LAST_VALUE)
        last = await metric.last_value()
        if last is None:
            raise NoValueAvailable()
        return self._encode(last)

    async def _get_metric_history(self, request: web.Request) -> web.Response:
        metric = self._authorized_metric(request, RoutePrefix.METRIC_HISTORY)
        range_request = await self._decode(request, _HISTORY_REQUEST)
        values = await metric.history(
            range_request.start, range_request.end, range_request.limit
        )
        return self._encode(values)

    async def _push_value_to_metric(self, request: web.Request) -> web.Response:
        """
        Accept new values for a metric updated by a remote.

        Without a body (or with an empty list) this only announces that the
        remote has new values, and the registered catch-up is scheduled. A
        body with values is written to the metric directly.
        """
        metric = self._authorized_metric(request, RoutePrefix.PUSH_VALUE_TO_METRIC)
        values: list[TimestampedValue] = []
        if (await request.read()).strip():
            values = await self._decode(request, _PUSHED_VALUES)

        if not values:
            self.synchronizer.trigger_update(metric)
            return web.Response()

        if not metric.can_be_updated_by_remote:
            raise PreconditionFailed(f"Metric {metric.id} is not updated by a remote")
        added = await metric.update(values)
        logger.debug(f"[{metric.id}] Accepted {added} of {len(values)} pushed values")
        return web.Response()


def create_metric_provider(
    observer: MetricObserver,
    access_manager: Any,
    settings: MetricShareSettings | None = None,
    scheduler: AsyncScheduler | None = None,
    serializer: Serializer | None = None,
) -> MetricProvider:
    """Create a metric provider, accepting plain secrets as ``access_manager``."""

    settings = settings or MetricShareSettings()
    synchronizer = MetricSynchronizer(
        scheduler=scheduler,
        observer=observer,
        notification_timeout=settings.remote_notification_timeout,
    )
    return MetricProvider(
        observer=observer,
        access_manager=as_access_manager(access_manager),
        settings=settings,
        synchronizer=synchronizer,
        serializer=serializer or JsonSerializer(),
    )
