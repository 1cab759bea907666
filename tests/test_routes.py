"""Tests for the route contract."""

import pytest

from metricshare.core.routes import REQUIRED_SCOPES, RoutePrefix, Scope, ServerRoute
from metricshare.datastructures.metric_identity import metric_fingerprint

LOG_HASH = metric_fingerprint("log")


class TestRoutePrefix:
    def test_every_operation_has_required_scopes(self):
        assert set(REQUIRED_SCOPES) == set(RoutePrefix)

    def test_combined_scopes_for_overview_routes(self):
        both = frozenset({Scope.LIST, Scope.LAST})
        assert RoutePrefix.ALL_LAST_VALUES.required_scopes == both
        assert RoutePrefix.EXTENDED_INFO_LIST.required_scopes == both
        assert RoutePrefix.GET_METRIC_LIST.required_scopes == {Scope.LIST}
        assert RoutePrefix.LAST_VALUE.required_scopes == {Scope.LAST}
        assert RoutePrefix.METRIC_HISTORY.required_scopes == {Scope.HISTORY}
        assert RoutePrefix.PUSH_VALUE_TO_METRIC.required_scopes == {Scope.PUSH}

    def test_path_patterns(self):
        assert RoutePrefix.GET_METRIC_LIST.path_pattern() == "list"
        assert RoutePrefix.ALL_LAST_VALUES.path_pattern() == "last/all"
        assert RoutePrefix.EXTENDED_INFO_LIST.path_pattern() == "list/extended"
        assert RoutePrefix.LAST_VALUE.path_pattern() == "last/{hash}"
        assert RoutePrefix.METRIC_HISTORY.path_pattern() == "history/{hash}"
        assert RoutePrefix.PUSH_VALUE_TO_METRIC.path_pattern() == "push/{hash}"


class TestServerRoute:
    def test_single_metric_paths(self):
        assert ServerRoute.last_value(LOG_HASH).path == f"last/{LOG_HASH}"
        assert ServerRoute.metric_history(LOG_HASH).path == f"history/{LOG_HASH}"
        assert ServerRoute.push_value_to_metric(LOG_HASH).path == f"push/{LOG_HASH}"

    def test_overview_paths(self):
        assert ServerRoute.metric_list().path == "list"
        assert ServerRoute.all_last_values().path == "last/all"
        assert ServerRoute.extended_info_list().path == "list/extended"

    def test_hash_presence_is_checked(self):
        with pytest.raises(ValueError):
            ServerRoute(RoutePrefix.LAST_VALUE)
        with pytest.raises(ValueError):
            ServerRoute(RoutePrefix.GET_METRIC_LIST, LOG_HASH)

    def test_with_hash(self):
        route = RoutePrefix.METRIC_HISTORY.with_hash(LOG_HASH)
        assert route == ServerRoute.metric_history(LOG_HASH)
        assert route.required_scopes == {Scope.HISTORY}
