"""
Credentials and the authorization decision.

Every credential answers the same question through ``MetricAccessManager``:
given the secret presented with a request, the requested route and the
candidate metric fingerprints, which of them may be released? A credential
raises ``AccessDenied`` when the secret does not match or the route is not
permitted; for list-type routes it filters the candidates instead.

Three independent credentials are provided:

- ``SharedSecret``: one secret granting every route and metric.
- ``ScopedAccessToken``: a secret limited to scopes and an allow/deny set.
- ``AccessTokenManager``: a mutable collection of the above; the member whose
  secret matches decides with its own rule.
"""

from __future__ import annotations

import hmac
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from metricshare.core.model import AccessDenied
from metricshare.core.routes import Scope, ServerRoute
from metricshare.datastructures.metric_identity import (
    fingerprint_all,
    metric_fingerprint,
)
from metricshare.datastructures.type_aliases import (
    AccessTokenString,
    MetricId,
    MetricIdHash,
)

from .records import ScopedAccessTokenRecord


@runtime_checkable
class MetricAccessManager(Protocol):
    """Decides which metrics a request may access."""

    def get_allowed_metrics(
        self,
        access_token: AccessTokenString,
        route: ServerRoute,
        metrics: Sequence[MetricIdHash],
    ) -> list[MetricIdHash]: ...


@runtime_checkable
class GenericAccessToken(Protocol):
    """A single credential identified by its secret string."""

    @property
    def token(self) -> AccessTokenString: ...

    def allowed_metrics(
        self, route: ServerRoute, metrics: Sequence[MetricIdHash]
    ) -> list[MetricIdHash]: ...


def secrets_match(presented: AccessTokenString, expected: AccessTokenString) -> bool:
    """Exact comparison of two secrets, in constant time."""
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


@dataclass(frozen=True, slots=True)
class SharedSecret:
    """A bare secret granting every route and every metric."""

    token: AccessTokenString

    def allowed_metrics(
        self, route: ServerRoute, metrics: Sequence[MetricIdHash]
    ) -> list[MetricIdHash]:
        return list(metrics)

    def get_allowed_metrics(
        self,
        access_token: AccessTokenString,
        route: ServerRoute,
        metrics: Sequence[MetricIdHash],
    ) -> list[MetricIdHash]:
        if not secrets_match(access_token, self.token):
            raise AccessDenied()
        return self.allowed_metrics(route, metrics)


@dataclass(frozen=True, slots=True)
class ScopedAccessToken:
    """
    A secret limited to a set of scopes and an allow/deny set of metrics.

    The metric sets hold raw identifiers. An empty ``accessible_metrics`` set
    allows every metric not listed in ``inaccessible_metrics``. An identifier
    present in both sets is dropped from ``accessible_metrics`` when the token
    is built, so the deny set always wins.
    """

    token: AccessTokenString
    permissions: frozenset[Scope] = frozenset()
    accessible_metrics: frozenset[MetricId] = frozenset()
    inaccessible_metrics: frozenset[MetricId] = frozenset()
    _accessible_hashes: frozenset[MetricIdHash] = field(
        init=False, repr=False, compare=False
    )
    _inaccessible_hashes: frozenset[MetricIdHash] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        permissions = frozenset(Scope(scope) for scope in self.permissions)
        inaccessible = frozenset(self.inaccessible_metrics)
        accessible = frozenset(self.accessible_metrics) - inaccessible
        object.__setattr__(self, "permissions", permissions)
        object.__setattr__(self, "accessible_metrics", accessible)
        object.__setattr__(self, "inaccessible_metrics", inaccessible)
        object.__setattr__(self, "_accessible_hashes", fingerprint_all(accessible))
        object.__setattr__(
            self, "_inaccessible_hashes", fingerprint_all(inaccessible)
        )

    def allows_access(self, metric_hash: MetricIdHash) -> bool:
        """Apply the allow/deny rule to a metric fingerprint."""
        if metric_hash in self._inaccessible_hashes:
            return False
        return not self._accessible_hashes or metric_hash in self._accessible_hashes

    def allows_metric(self, metric_id: MetricId) -> bool:
        return self.allows_access(metric_fingerprint(metric_id))

    def has_permission(self, route: ServerRoute) -> bool:
        """Check the scopes of the route and, for single-metric routes, the metric."""
        if not route.required_scopes <= self.permissions:
            return False
        if route.metric_hash is not None:
            return self.allows_access(route.metric_hash)
        return True

    def allowed_metrics(
        self, route: ServerRoute, metrics: Sequence[MetricIdHash]
    ) -> list[MetricIdHash]:
        if not self.has_permission(route):
            raise AccessDenied()
        return [metric for metric in metrics if self.allows_access(metric)]

    def get_allowed_metrics(
        self,
        access_token: AccessTokenString,
        route: ServerRoute,
        metrics: Sequence[MetricIdHash],
    ) -> list[MetricIdHash]:
        if not secrets_match(access_token, self.token):
            raise AccessDenied()
        return self.allowed_metrics(route, metrics)

    def to_record(self) -> ScopedAccessTokenRecord:
        return ScopedAccessTokenRecord(
            token=self.token,
            permissions=set(self.permissions),
            accessible_metrics=set(self.accessible_metrics),
            inaccessible_metrics=set(self.inaccessible_metrics),
        )

    @classmethod
    def from_record(cls, record: ScopedAccessTokenRecord) -> ScopedAccessToken:
        return cls(
            token=record.token,
            permissions=frozenset(record.permissions),
            accessible_metrics=frozenset(record.accessible_metrics),
            inaccessible_metrics=frozenset(record.inaccessible_metrics),
        )


class AccessTokenManager:
    """A mutable collection of credentials, matched by secret."""

    def __init__(self, tokens: Iterable[GenericAccessToken] = ()) -> None:
        self._tokens: dict[AccessTokenString, GenericAccessToken] = {}
        for token in tokens:
            self.add(token)

    def add(self, token: GenericAccessToken) -> None:
        """Add a credential; a credential with the same secret is replaced."""
        if token.token in self._tokens:
            logger.debug("Replacing access token with identical secret")
        self._tokens[token.token] = token

    def remove(self, token: GenericAccessToken | AccessTokenString) -> bool:
        secret = token if isinstance(token, str) else token.token
        return self._tokens.pop(secret, None) is not None

    def get_token(self, access_token: AccessTokenString) -> GenericAccessToken | None:
        for secret, token in self._tokens.items():
            if secrets_match(access_token, secret):
                return token
        return None

    def get_allowed_metrics(
        self,
        access_token: AccessTokenString,
        route: ServerRoute,
        metrics: Sequence[MetricIdHash],
    ) -> list[MetricIdHash]:
        token = self.get_token(access_token)
        if token is None:
            raise AccessDenied()
        return token.allowed_metrics(route, metrics)

    def __iter__(self) -> Iterator[GenericAccessToken]:
        return iter(list(self._tokens.values()))

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, token: object) -> bool:
        if isinstance(token, str):
            return token in self._tokens
        return self._tokens.get(getattr(token, "token", None)) == token


def _as_access_token(value: Any) -> GenericAccessToken:
    if isinstance(value, str):
        return SharedSecret(value)
    if isinstance(value, GenericAccessToken):
        return value
    raise TypeError(f"Cannot use {type(value).__name__} as an access token")


def as_access_manager(value: Any) -> MetricAccessManager:
    """
    Turn a plain configuration value into a credential.

    Accepts a secret string, an existing manager, or an iterable of secrets
    and tokens.
    """
    if isinstance(value, str):
        return SharedSecret(value)
    if isinstance(value, MetricAccessManager):
        return value
    if isinstance(value, Iterable):
        return AccessTokenManager(_as_access_token(item) for item in value)
    raise TypeError(f"Cannot use {type(value).__name__} as an access manager")
