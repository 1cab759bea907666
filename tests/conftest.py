"""Pytest configuration and fixtures for metricshare testing.

Providers are served through aiohttp's in-process test server, so route tests
exercise the real middleware and dispatch without binding fixed ports.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any, TypeAlias

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer
from loguru import logger

from metricshare.core.config import MetricShareSettings
from metricshare.core.metric_store import InMemoryMetricObserver
from metricshare.core.routes import ACCESS_TOKEN_HEADER, ServerRoute
from metricshare.core.scheduler import DeferredScheduler
from metricshare.server.provider import MetricProvider, create_metric_provider

SHARED_SECRET = "shared-secret"

ProviderFactory: TypeAlias = Callable[..., Awaitable[tuple[MetricProvider, TestClient]]]


@pytest.fixture(autouse=True)
def restore_logging():
    """Drop handlers added by a test so later tests never write to closed streams."""
    yield
    logger.remove()
    logger.add(lambda message: None, level="DEBUG")


@pytest.fixture
def settings() -> MetricShareSettings:
    return MetricShareSettings(
        host="127.0.0.1", port=0, name="test-provider", route_prefix="metrics"
    )


@pytest.fixture
def observer() -> InMemoryMetricObserver:
    return InMemoryMetricObserver()


@pytest.fixture
def scheduler() -> DeferredScheduler:
    return DeferredScheduler()


@pytest_asyncio.fixture
async def make_provider(
    settings: MetricShareSettings,
) -> AsyncGenerator[ProviderFactory]:
    """Build providers served by in-process test servers, closed after the test."""
    clients: list[TestClient] = []

    async def factory(
        observer: InMemoryMetricObserver,
        access_manager: Any = SHARED_SECRET,
        scheduler: DeferredScheduler | None = None,
    ) -> tuple[MetricProvider, TestClient]:
        provider = create_metric_provider(
            observer, access_manager, settings=settings, scheduler=scheduler
        )
        client = TestClient(TestServer(provider.app))
        await client.start_server()
        clients.append(client)
        return provider, client

    yield factory

    for client in clients:
        await client.close()


async def post_route(
    client: TestClient,
    route: ServerRoute,
    token: str | None = SHARED_SECRET,
    body: bytes | None = None,
    prefix: str = "metrics",
):
    """POST to a route of a provider under test and return the response."""
    headers = {} if token is None else {ACCESS_TOKEN_HEADER: token}
    return await client.post(f"/{prefix}/{route.path}", data=body, headers=headers)
