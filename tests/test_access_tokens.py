"""Tests for credentials and the authorization decision."""

import pytest

from metricshare.access.tokens import (
    AccessTokenManager,
    MetricAccessManager,
    ScopedAccessToken,
    SharedSecret,
    as_access_manager,
    secrets_match,
)
from metricshare.core.model import AccessDenied
from metricshare.core.routes import Scope, ServerRoute
from metricshare.datastructures.metric_identity import metric_fingerprint

LOG = metric_fingerprint("log")
OTHER = metric_fingerprint("other")
THIRD = metric_fingerprint("third")
ALL_METRICS = [LOG, OTHER, THIRD]


class TestSharedSecret:
    def test_grants_every_route_and_metric(self):
        secret = SharedSecret("abc")
        for route in (
            ServerRoute.metric_list(),
            ServerRoute.all_last_values(),
            ServerRoute.extended_info_list(),
        ):
            assert secret.get_allowed_metrics("abc", route, ALL_METRICS) == ALL_METRICS
        route = ServerRoute.push_value_to_metric(LOG)
        assert secret.get_allowed_metrics("abc", route, [LOG]) == [LOG]

    def test_wrong_secret_is_denied(self):
        with pytest.raises(AccessDenied):
            SharedSecret("abc").get_allowed_metrics(
                "abd", ServerRoute.metric_list(), ALL_METRICS
            )

    def test_secret_matching_is_exact(self):
        assert secrets_match("abc", "abc")
        assert not secrets_match("abc", "ABC")
        assert not secrets_match("abc", "abc ")
        assert not secrets_match("", "abc")


class TestScopedAccessToken:
    def test_empty_allow_set_allows_all_but_denied(self):
        token = ScopedAccessToken(
            "t", permissions={Scope.LIST}, inaccessible_metrics={"other"}
        )
        assert token.allows_metric("log")
        assert token.allows_metric("third")
        assert not token.allows_metric("other")

    def test_allow_set_limits_access(self):
        token = ScopedAccessToken("t", accessible_metrics={"log"})
        assert token.allows_access(LOG)
        assert not token.allows_access(OTHER)

    def test_deny_wins_at_construction(self):
        token = ScopedAccessToken(
            "t",
            permissions={Scope.LAST},
            accessible_metrics={"log", "other"},
            inaccessible_metrics={"other"},
        )
        assert token.accessible_metrics == {"log"}
        assert not token.allows_metric("other")
        assert token.allows_metric("log")

    def test_scopes_are_coerced_from_strings(self):
        token = ScopedAccessToken("t", permissions={"list", "last"})
        assert token.permissions == {Scope.LIST, Scope.LAST}

    def test_invalid_scope_is_rejected(self):
        with pytest.raises(ValueError):
            ScopedAccessToken("t", permissions={"admin"})

    def test_last_scope_grants_single_value_only(self):
        token = ScopedAccessToken("t", permissions={Scope.LAST})
        assert token.has_permission(ServerRoute.last_value(LOG))
        assert not token.has_permission(ServerRoute.all_last_values())
        assert not token.has_permission(ServerRoute.extended_info_list())
        assert not token.has_permission(ServerRoute.metric_list())

    def test_overview_routes_need_list_and_last(self):
        list_only = ScopedAccessToken("t", permissions={Scope.LIST})
        both = ScopedAccessToken("t", permissions={Scope.LAST, Scope.LIST})
        for route in (ServerRoute.all_last_values(), ServerRoute.extended_info_list()):
            assert not list_only.has_permission(route)
            assert both.has_permission(route)

    def test_single_metric_routes_check_the_metric(self):
        token = ScopedAccessToken(
            "t", permissions={Scope.HISTORY}, accessible_metrics={"log"}
        )
        assert token.has_permission(ServerRoute.metric_history(LOG))
        assert not token.has_permission(ServerRoute.metric_history(OTHER))
        with pytest.raises(AccessDenied):
            token.get_allowed_metrics("t", ServerRoute.metric_history(OTHER), [OTHER])

    def test_list_routes_filter_candidates(self):
        token = ScopedAccessToken(
            "t",
            permissions={Scope.LIST, Scope.LAST},
            inaccessible_metrics={"other"},
        )
        allowed = token.get_allowed_metrics(
            "t", ServerRoute.all_last_values(), ALL_METRICS
        )
        assert allowed == [LOG, THIRD]

    def test_empty_result_is_success(self):
        token = ScopedAccessToken(
            "t", permissions={Scope.LIST}, accessible_metrics={"missing"}
        )
        assert token.get_allowed_metrics("t", ServerRoute.metric_list(), ALL_METRICS) == []

    def test_secret_checked_before_scopes(self):
        token = ScopedAccessToken("t", permissions=set(Scope))
        with pytest.raises(AccessDenied):
            token.get_allowed_metrics("x", ServerRoute.metric_list(), ALL_METRICS)

    def test_missing_scope_is_denied(self):
        token = ScopedAccessToken("t", permissions={Scope.LAST})
        with pytest.raises(AccessDenied):
            token.get_allowed_metrics("t", ServerRoute.push_value_to_metric(LOG), [LOG])

    def test_record_round_trip(self):
        token = ScopedAccessToken(
            "t",
            permissions={Scope.LAST, Scope.PUSH},
            accessible_metrics={"log"},
            inaccessible_metrics={"other"},
        )
        assert ScopedAccessToken.from_record(token.to_record()) == token


class TestAccessTokenManager:
    def test_matching_member_decides(self):
        manager = AccessTokenManager(
            [
                SharedSecret("admin"),
                ScopedAccessToken("reader", permissions={Scope.LAST}),
            ]
        )
        route = ServerRoute.metric_list()
        assert manager.get_allowed_metrics("admin", route, ALL_METRICS) == ALL_METRICS
        with pytest.raises(AccessDenied):
            manager.get_allowed_metrics("reader", route, ALL_METRICS)
        with pytest.raises(AccessDenied):
            manager.get_allowed_metrics("unknown", route, ALL_METRICS)

    def test_add_and_remove(self):
        manager = AccessTokenManager()
        route = ServerRoute.last_value(LOG)
        with pytest.raises(AccessDenied):
            manager.get_allowed_metrics("abc", route, [LOG])

        token = ScopedAccessToken("abc", permissions={Scope.LAST})
        manager.add(token)
        assert token in manager
        assert "abc" in manager
        assert len(manager) == 1
        assert manager.get_allowed_metrics("abc", route, [LOG]) == [LOG]

        assert manager.remove("abc")
        assert not manager.remove(token)
        assert len(manager) == 0

    def test_add_replaces_identical_secret(self):
        manager = AccessTokenManager([ScopedAccessToken("abc")])
        manager.add(SharedSecret("abc"))
        assert len(manager) == 1
        assert isinstance(manager.get_token("abc"), SharedSecret)


class TestAsAccessManager:
    def test_string_becomes_shared_secret(self):
        assert as_access_manager("abc") == SharedSecret("abc")

    def test_manager_is_kept(self):
        token = ScopedAccessToken("t")
        assert as_access_manager(token) is token
        assert isinstance(token, MetricAccessManager)

    def test_iterable_becomes_collection(self):
        manager = as_access_manager(["a", ScopedAccessToken("b")])
        assert isinstance(manager, AccessTokenManager)
        assert len(manager) == 2

    def test_unusable_value(self):
        with pytest.raises(TypeError):
            as_access_manager(42)
