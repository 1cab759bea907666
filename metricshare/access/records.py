"""Persisted and transmitted form of scoped access tokens.

The JSON object has exactly the fields ``token``, ``permissions``,
``accessibleMetrics`` and ``inaccessibleMetrics``. The metric sets carry raw
identifiers; sets are written as sorted, duplicate-free lists.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_serializer

from metricshare.core.routes import Scope
from metricshare.datastructures.type_aliases import AccessTokenString, MetricId


class ScopedAccessTokenRecord(BaseModel):
    """Wire representation of a ``ScopedAccessToken``."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    token: AccessTokenString
    permissions: set[Scope] = Field(default_factory=set)
    accessible_metrics: set[MetricId] = Field(
        default_factory=set, alias="accessibleMetrics"
    )
    inaccessible_metrics: set[MetricId] = Field(
        default_factory=set, alias="inaccessibleMetrics"
    )

    @field_serializer("permissions")
    def _serialize_permissions(self, permissions: set[Scope]) -> list[str]:
        return sorted(scope.value for scope in permissions)

    @field_serializer("accessible_metrics", "inaccessible_metrics")
    def _serialize_metrics(self, metrics: set[MetricId]) -> list[MetricId]:
        return sorted(metrics)

    def to_json(self, *, indent: int | None = None) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


_RECORD_LIST = TypeAdapter(list[ScopedAccessTokenRecord])


def parse_token_records(data: bytes | str) -> list[ScopedAccessTokenRecord]:
    """Parse a JSON document holding one record or a list of records."""
    stripped = data.strip()
    if stripped[:1] in ("{", b"{"):
        return [ScopedAccessTokenRecord.model_validate_json(stripped)]
    return _RECORD_LIST.validate_json(stripped)


def dump_token_records(records: list[ScopedAccessTokenRecord]) -> bytes:
    return _RECORD_LIST.dump_json(records, by_alias=True, indent=2)
