"""
Property-based tests for the authorization engine and catch-up loop.

Key Test Areas:
- Allow/deny rule of scoped tokens for arbitrary metric sets
- Scope superset rule, independent of the order scopes are granted in
- Filtering on multi-metric routes returns exactly the passing subset
- Catch-up brings a metric fully up to date for any batch size
"""

import asyncio

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from metricshare.access.records import ScopedAccessTokenRecord
from metricshare.access.tokens import ScopedAccessToken
from metricshare.core.metric_store import Metric
from metricshare.core.model import AccessDenied, MetricType, TimestampedValue
from metricshare.core.routes import RoutePrefix, Scope, ServerRoute
from metricshare.datastructures.metric_identity import metric_fingerprint
from metricshare.federation.sync import catch_up

# Test Strategies

metric_ids = st.text(
    alphabet=st.characters(min_codepoint=33, max_codepoint=0x2FFF), min_size=1, max_size=12
)
metric_id_sets = st.frozensets(metric_ids, max_size=6)
scope_sets = st.frozensets(st.sampled_from(list(Scope)))
secrets = st.text(min_size=1, max_size=24)


@st.composite
def scoped_tokens(draw):
    return ScopedAccessToken(
        token=draw(secrets),
        permissions=draw(scope_sets),
        accessible_metrics=draw(metric_id_sets),
        inaccessible_metrics=draw(metric_id_sets),
    )


def single_route(prefix: RoutePrefix, metric_id: str) -> ServerRoute:
    return ServerRoute(prefix, metric_fingerprint(metric_id))


class TestScopedTokenProperties:
    @given(
        allowed=metric_id_sets, denied=metric_id_sets, candidate=metric_ids
    )
    def test_allow_deny_rule(self, allowed, denied, candidate):
        token = ScopedAccessToken("t", set(Scope), allowed, denied)
        effective_allow = allowed - denied
        expected = candidate not in denied and (
            not effective_allow or candidate in effective_allow
        )
        assert token.allows_metric(candidate) == expected

    @given(allowed=metric_id_sets, denied=metric_id_sets)
    def test_deny_always_wins(self, allowed, denied):
        token = ScopedAccessToken("t", set(Scope), allowed, denied)
        assert not token.accessible_metrics & token.inaccessible_metrics
        for metric_id in denied:
            assert not token.allows_metric(metric_id)

    @given(granted=st.lists(st.sampled_from(list(Scope))), prefix=st.sampled_from(list(RoutePrefix)))
    def test_scope_superset_rule_ignores_order(self, granted, prefix):
        route = (
            ServerRoute(prefix, metric_fingerprint("m"))
            if prefix.targets_single_metric
            else ServerRoute(prefix)
        )
        forward = ScopedAccessToken("t", permissions=granted)
        backward = ScopedAccessToken("t", permissions=list(reversed(granted)))
        expected = prefix.required_scopes <= set(granted)
        assert forward.has_permission(route) == expected
        assert backward.has_permission(route) == expected

    @given(token=scoped_tokens(), candidates=st.lists(metric_ids, max_size=10))
    def test_multi_metric_routes_filter_exactly(self, token, candidates):
        hashes = [metric_fingerprint(metric_id) for metric_id in candidates]
        route = ServerRoute.metric_list()
        if Scope.LIST not in token.permissions:
            with pytest.raises(AccessDenied):
                token.get_allowed_metrics(token.token, route, hashes)
            return
        granted = token.get_allowed_metrics(token.token, route, hashes)
        assert granted == [h for h in hashes if token.allows_access(h)]

    @given(token=scoped_tokens(), presented=secrets, metric_id=metric_ids)
    def test_wrong_secret_never_grants(self, token, presented, metric_id):
        route = single_route(RoutePrefix.LAST_VALUE, metric_id)
        if presented == token.token:
            return
        with pytest.raises(AccessDenied):
            token.get_allowed_metrics(presented, route, [route.metric_hash])

    @given(token=scoped_tokens())
    def test_record_round_trip(self, token):
        encoded = token.to_record().to_json()
        decoded = ScopedAccessTokenRecord.model_validate_json(encoded)
        assert ScopedAccessToken.from_record(decoded) == token


class PagedHistory:
    def __init__(self, values: list[TimestampedValue], batch_size: int) -> None:
        self.values = values
        self.batch_size = batch_size

    async def history(self, start, end, limit=None):
        selected = [v for v in self.values if start <= v.timestamp <= end]
        return selected[: self.batch_size]


class TestCatchUpProperties:
    @settings(max_examples=50, suppress_health_check=[HealthCheck.too_slow])
    @given(
        timestamps=st.lists(
            st.integers(min_value=1, max_value=10_000), unique=True, max_size=60
        ),
        local_count=st.integers(min_value=0, max_value=20),
        batch_size=st.integers(min_value=2, max_value=25),
    )
    def test_catch_up_reaches_remote_state(self, timestamps, local_count, batch_size):
        remote_values = [
            TimestampedValue(value=t, timestamp=float(t)) for t in sorted(timestamps)
        ]

        async def run() -> list[TimestampedValue]:
            metric = Metric("m", MetricType.INTEGER)
            await metric.update(remote_values[:local_count])
            await catch_up(
                metric, PagedHistory(remote_values, batch_size), clock=lambda: 20_000.0
            )
            return await metric.history(0.0, 20_000.0)

        assert asyncio.run(run()) == remote_values
