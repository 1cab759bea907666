from __future__ import annotations

import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from metricshare.datastructures.type_aliases import DurationSeconds

DEFAULT_ROUTE_PREFIX = "metrics"
DEFAULT_NOTIFICATION_TIMEOUT: DurationSeconds = 10.0


class MetricShareSettings(BaseSettings):
    """metricshare server configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="METRICSHARE_", env_file=".env", extra="ignore"
    )

    host: str = Field(
        "127.0.0.1", description="The host address for the server to listen on."
    )
    port: int = Field(
        8080, description="The port for the server to listen on (0 for ephemeral)."
    )
    name: str = Field(
        "metricshare", description="A human-readable name for this instance."
    )
    route_prefix: str = Field(
        DEFAULT_ROUTE_PREFIX,
        description="First path component of every metric route.",
    )
    log_level: str = Field("INFO", description="Minimum level for log output.")
    log_debug_scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (), description="Modules whose DEBUG records are always shown."
    )
    log_file: Path | None = Field(
        None, description="Optional file receiving a rotated copy of the log output."
    )
    log_metric_id: str = Field(
        "log", description="Identifier of the metric receiving observer log lines."
    )
    access_token_file: Path | None = Field(
        None, description="JSON file holding a list of scoped access tokens."
    )
    shared_secret: str | None = Field(
        None, description="A bare shared secret granting full access."
    )
    remote_notification_timeout: float = Field(
        DEFAULT_NOTIFICATION_TIMEOUT,
        gt=0,
        description="Timeout in seconds for push notifications sent to peers.",
    )

    @field_validator("route_prefix")
    @classmethod
    def _strip_route_prefix(cls, value: str) -> str:
        return value.strip("/")

    @field_validator("log_debug_scopes", mode="before")
    @classmethod
    def _coerce_scopes(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MetricShareSettings:
        """Build settings from a plain mapping, ignoring unknown keys."""
        return cls(**dict(data))

    @classmethod
    def from_toml(cls, path: Path, section: str = "metricshare") -> MetricShareSettings:
        """Load settings from the ``[metricshare]`` table of a TOML file."""
        with path.open("rb") as handle:
            document = tomllib.load(handle)
        return cls.from_dict(document.get(section, {}))
