"""
Data models for the metrics layer.

These models represent:
- Samples pushed into a metric (scalar or keyed values)
- Aggregation types supported by windowed queries
- Errors raised by aggregation queries

Note on timestamps:
    Sample timestamps are epoch milliseconds. Producers (HTTP checks) can
    complete out of send order, so a metric's arrival order is NOT its
    timestamp order. Window queries filter by timestamp value only.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Union

Scalar = Union[int, float]
Value = Union[Scalar, Mapping[str, Scalar]]

# Separator used to build derived metric names. Metric names such as
# "response_time" already contain it, see MetricStore ownership checks.
NAME_SEPARATOR = "_"


class AggregationType(str, Enum):
    """Aggregations available on a metric window."""
    SUM = "SUM"
    MAX = "MAX"
    MIN = "MIN"
    AVG = "AVG"
    AVG_TIME = "AVG_TIME"
    COUNT = "COUNT"


class AggregationError(ValueError):
    """Base exception for aggregation query errors."""
    pass


class EmptyWindowError(AggregationError):
    """
    Aggregation is undefined for the selected window.

    Raised for MAX/MIN/AVG/AVG_TIME on a window without samples, and for
    AVG_TIME when the window covers zero total duration. Distinguishes an
    undefined result from a legitimate 0.
    """
    pass


class UnsupportedAggregationError(AggregationError):
    """Requested aggregation type is not supported."""
    pass


@dataclass(frozen=True)
class Sample:
    """
    One observation appended to a metric.

    Attributes:
        timestamp: Observation time in epoch milliseconds
        value: A number, or a mapping of key -> number for keyed metrics
    """
    timestamp: int
    value: Value

    @property
    def is_keyed(self) -> bool:
        """Whether the value is a mapping of per-key values."""
        return isinstance(self.value, Mapping)


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def derived_metric_name(
    metric_name: str,
    aggregator_name: str,
    aggregation_type: Union[AggregationType, str],
) -> str:
    """
    Build the name of a metric written by an aggregator.

    The format is load-bearing: derived metrics are looked up by this name
    when they are aggregated again or alerted on.

    Args:
        metric_name: Source metric name
        aggregator_name: Aggregator name
        aggregation_type: Aggregation applied to the source

    Returns:
        "{metric_name}_{aggregator_name}_{aggregation_type}"
    """
    token = aggregation_type.value if isinstance(aggregation_type, AggregationType) else aggregation_type
    return NAME_SEPARATOR.join((metric_name, aggregator_name, token))
