"""
Metrics Layer - Time series, windowed aggregation and push notification.

This module provides:
    - Sample: One (timestamp, value) observation
    - AggregationType: SUM, MAX, MIN, AVG, AVG_TIME, COUNT
    - Metric: Append-only series with subscribers and aggregate()
    - Subscription: Handle returned by Metric.subscribe()
    - MetricStore: Shared (url, name) -> Metric registry
    - Retention policies: KeepAll (default), MaxSamples, MaxAge

Errors:
    - AggregationError / EmptyWindowError / UnsupportedAggregationError
    - PushDepthExceededError
    - MetricNotFoundError / MetricOwnershipError
"""

from .aggregation import aggregate_samples, resolve_aggregation_type, select_window
from .metric import MAX_PUSH_DEPTH, Metric, PushDepthExceededError, Subscription
from .models import (
    AggregationError,
    AggregationType,
    EmptyWindowError,
    Sample,
    UnsupportedAggregationError,
    derived_metric_name,
    now_ms,
)
from .retention import KeepAll, MaxAge, MaxSamples, RetentionPolicy
from .store import MetricNotFoundError, MetricOwnershipError, MetricStore, format_value

__all__ = [
    # Models
    "Sample",
    "AggregationType",
    "derived_metric_name",
    "now_ms",
    # Aggregation
    "aggregate_samples",
    "resolve_aggregation_type",
    "select_window",
    # Metric
    "Metric",
    "Subscription",
    "MAX_PUSH_DEPTH",
    # Store
    "MetricStore",
    "format_value",
    # Retention
    "RetentionPolicy",
    "KeepAll",
    "MaxSamples",
    "MaxAge",
    # Errors
    "AggregationError",
    "EmptyWindowError",
    "UnsupportedAggregationError",
    "PushDepthExceededError",
    "MetricNotFoundError",
    "MetricOwnershipError",
]
