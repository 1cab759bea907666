"""HTTP exposure of recorded metrics."""

from .provider import MetricProvider, create_metric_provider

__all__ = ["MetricProvider", "create_metric_provider"]
