"""Wire models and the error taxonomy shared by server, client and sync."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from metricshare.datastructures.type_aliases import (
    MetricDescription,
    MetricId,
    MetricName,
    Timestamp,
)

# Earliest and latest representable instants (0001-01-01 and 4001-01-01 UTC).
DISTANT_PAST: Timestamp = -62135596800.0
DISTANT_FUTURE: Timestamp = 64092211200.0


class MetricType(StrEnum):
    """Value types a metric can record."""

    STRING = "string"
    INTEGER = "integer"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    JSON = "json"


class TimestampedValue(BaseModel):
    """A single recorded value of a metric."""

    model_config = ConfigDict(frozen=True)

    value: Any = Field(description="The recorded value.")
    timestamp: Timestamp = Field(
        description="Seconds since the Unix epoch when the value was recorded."
    )


class MetricInfo(BaseModel):
    """Descriptor of a metric as returned by the list operation."""

    model_config = ConfigDict(frozen=True)

    id: MetricId = Field(description="The raw identifier of the metric.")
    data_type: MetricType = Field(description="The type of the recorded values.")
    name: MetricName | None = Field(
        default=None, description="A human-readable name for the metric."
    )
    description: MetricDescription | None = Field(
        default=None, description="A textual description of the metric."
    )


class ExtendedMetricInfo(BaseModel):
    """Descriptor of a metric together with its most recent value."""

    info: MetricInfo
    last: TimestampedValue | None = None


class MetricHistoryRequest(BaseModel):
    """
    Range request for the history operation.

    Values are returned chronologically when ``start <= end`` and newest first
    otherwise. ``limit`` counts from the ``start`` side of the range.
    """

    start: Timestamp = Field(description="First instant of the range.")
    end: Timestamp = Field(description="Last instant of the range.")
    limit: int | None = Field(
        default=None, ge=0, description="Maximum number of values to return."
    )


class MetricShareError(Exception):
    """Base exception; ``status`` is the HTTP status the dispatch layer answers with."""

    status: int = 500


class AccessDenied(MetricShareError):
    """The credential, scope or metric check failed."""

    status = 401


class BadRequest(MetricShareError):
    """Missing credential header, malformed fingerprint or unusable body."""

    status = 400


class FailedToDecode(MetricShareError):
    """A request or response body could not be decoded."""

    status = 400


class FailedToEncode(MetricShareError):
    """A response body could not be encoded."""

    status = 500


class MetricNotFound(MetricShareError):
    """No metric is registered under the requested fingerprint."""

    status = 404


class NoValueAvailable(MetricShareError):
    """The metric exists but has never recorded a value."""

    status = 410


class PreconditionFailed(MetricShareError):
    """The metric is not set up to receive updates from a remote."""

    status = 412


ERRORS_BY_STATUS: dict[int, type[MetricShareError]] = {
    AccessDenied.status: AccessDenied,
    BadRequest.status: BadRequest,
    MetricNotFound.status: MetricNotFound,
    NoValueAvailable.status: NoValueAvailable,
    PreconditionFailed.status: PreconditionFailed,
    FailedToEncode.status: FailedToEncode,
}


def error_for_status(status: int, message: str = "") -> MetricShareError:
    """Translate an HTTP status back into the matching exception."""
    error_type = ERRORS_BY_STATUS.get(status, MetricShareError)
    error = error_type(message or f"Request failed with status {status}")
    if error_type is MetricShareError:
        error.status = status
    return error
