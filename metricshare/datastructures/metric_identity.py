"""Fingerprints for metric identifiers.

A fingerprint is the caller-facing name of a metric. It is the first 16 bytes
of the SHA-256 digest of the UTF-8 identifier, rendered as lowercase hex, so
raw identifiers never cross the wire.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable

from .type_aliases import MetricId, MetricIdHash

FINGERPRINT_BYTES = 16
FINGERPRINT_LENGTH = FINGERPRINT_BYTES * 2

_FINGERPRINT_PATTERN = re.compile(rf"[0-9a-f]{{{FINGERPRINT_LENGTH}}}")


def metric_fingerprint(metric_id: MetricId) -> MetricIdHash:
    """Return the stable fingerprint of a metric identifier."""
    digest = hashlib.sha256(metric_id.encode("utf-8")).digest()
    return digest[:FINGERPRINT_BYTES].hex()


def fingerprint_all(metric_ids: Iterable[MetricId]) -> frozenset[MetricIdHash]:
    return frozenset(metric_fingerprint(metric_id) for metric_id in metric_ids)


def is_valid_fingerprint(value: str) -> bool:
    """Check that a path segment has the shape of a fingerprint."""
    return bool(_FINGERPRINT_PATTERN.fullmatch(value))
