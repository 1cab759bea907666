"""
The route contract: the fixed set of operations exposed over HTTP.

Every operation is a POST under a configurable prefix. Operations that target
one metric carry its fingerprint as the last path segment. Each operation
requires a set of scopes; the scopes form a set, not a hierarchy.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from metricshare.datastructures.type_aliases import MetricIdHash, RoutePath

ACCESS_TOKEN_HEADER = "token"
HASH_PARAMETER_NAME = "hash"


class Scope(StrEnum):
    """Named capabilities a scoped access token may hold."""

    LIST = "list"
    LAST = "last"
    HISTORY = "history"
    PUSH = "push"


class RoutePrefix(StrEnum):
    """Operations of the route contract, valued by their fixed path part."""

    GET_METRIC_LIST = "list"
    ALL_LAST_VALUES = "last/all"
    EXTENDED_INFO_LIST = "list/extended"
    LAST_VALUE = "last"
    METRIC_HISTORY = "history"
    PUSH_VALUE_TO_METRIC = "push"

    @property
    def targets_single_metric(self) -> bool:
        return self in _SINGLE_METRIC_PREFIXES

    @property
    def required_scopes(self) -> frozenset[Scope]:
        return REQUIRED_SCOPES[self]

    def path_pattern(self) -> RoutePath:
        """Path below the route prefix, as an aiohttp resource pattern."""
        if self.targets_single_metric:
            return f"{self.value}/{{{HASH_PARAMETER_NAME}}}"
        return self.value

    def with_hash(self, metric_hash: MetricIdHash) -> ServerRoute:
        return ServerRoute(self, metric_hash)


_SINGLE_METRIC_PREFIXES = frozenset(
    {
        RoutePrefix.LAST_VALUE,
        RoutePrefix.METRIC_HISTORY,
        RoutePrefix.PUSH_VALUE_TO_METRIC,
    }
)

# last/all and list/extended reveal both the metric list and the values, so
# they need both scopes at once.
REQUIRED_SCOPES: dict[RoutePrefix, frozenset[Scope]] = {
    RoutePrefix.GET_METRIC_LIST: frozenset({Scope.LIST}),
    RoutePrefix.LAST_VALUE: frozenset({Scope.LAST}),
    RoutePrefix.ALL_LAST_VALUES: frozenset({Scope.LAST, Scope.LIST}),
    RoutePrefix.EXTENDED_INFO_LIST: frozenset({Scope.LAST, Scope.LIST}),
    RoutePrefix.METRIC_HISTORY: frozenset({Scope.HISTORY}),
    RoutePrefix.PUSH_VALUE_TO_METRIC: frozenset({Scope.PUSH}),
}


@dataclass(frozen=True, slots=True)
class ServerRoute:
    """A concrete operation, including its target metric where it has one."""

    prefix: RoutePrefix
    metric_hash: MetricIdHash | None = None

    def __post_init__(self) -> None:
        if self.prefix.targets_single_metric and self.metric_hash is None:
            raise ValueError(f"Route {self.prefix.value} requires a metric hash")
        if not self.prefix.targets_single_metric and self.metric_hash is not None:
            raise ValueError(f"Route {self.prefix.value} takes no metric hash")

    @classmethod
    def metric_list(cls) -> ServerRoute:
        return cls(RoutePrefix.GET_METRIC_LIST)

    @classmethod
    def all_last_values(cls) -> ServerRoute:
        return cls(RoutePrefix.ALL_LAST_VALUES)

    @classmethod
    def extended_info_list(cls) -> ServerRoute:
        return cls(RoutePrefix.EXTENDED_INFO_LIST)

    @classmethod
    def last_value(cls, metric_hash: MetricIdHash) -> ServerRoute:
        return cls(RoutePrefix.LAST_VALUE, metric_hash)

    @classmethod
    def metric_history(cls, metric_hash: MetricIdHash) -> ServerRoute:
        return cls(RoutePrefix.METRIC_HISTORY, metric_hash)

    @classmethod
    def push_value_to_metric(cls, metric_hash: MetricIdHash) -> ServerRoute:
        return cls(RoutePrefix.PUSH_VALUE_TO_METRIC, metric_hash)

    @property
    def required_scopes(self) -> frozenset[Scope]:
        return self.prefix.required_scopes

    @property
    def path(self) -> RoutePath:
        """Path of the route relative to the route prefix."""
        if self.metric_hash is None:
            return self.prefix.value
        return f"{self.prefix.value}/{self.metric_hash}"
