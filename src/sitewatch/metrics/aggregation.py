"""
Windowed aggregation over metric samples.

All functions here are pure: they never mutate the sample sequence they read.

Window semantics:
    A window is every sample with now - timeframe <= timestamp <= now,
    ordered by ascending timestamp. Ties keep arrival order (stable sort).

Keyed values:
    When sample values are mappings, the aggregation is computed per key over
    the union of keys seen in the window. A key missing from a sample simply
    does not contribute that sample.
"""

from __future__ import annotations

from collections import Counter
from typing import Callable, Dict, Iterable, List, Sequence, Tuple, Union

from .models import (
    AggregationError,
    AggregationType,
    EmptyWindowError,
    Sample,
    Scalar,
    UnsupportedAggregationError,
    Value,
)

Point = Tuple[int, Scalar]


def resolve_aggregation_type(aggregation_type: Union[AggregationType, str]) -> AggregationType:
    """
    Resolve an aggregation type token.

    Args:
        aggregation_type: AggregationType member or its token ("AVG_TIME")

    Returns:
        The AggregationType member

    Raises:
        UnsupportedAggregationError: If the token is unknown
    """
    if isinstance(aggregation_type, AggregationType):
        return aggregation_type
    try:
        return AggregationType(aggregation_type)
    except ValueError:
        raise UnsupportedAggregationError(
            f"Unsupported aggregation type: {aggregation_type!r}"
        ) from None


def select_window(samples: Iterable[Sample], timeframe_ms: int, now: int) -> List[Sample]:
    """Samples inside [now - timeframe_ms, now], sorted by timestamp."""
    start = now - timeframe_ms
    window = [s for s in samples if start <= s.timestamp <= now]
    window.sort(key=lambda s: s.timestamp)
    return window


def aggregate_samples(
    samples: Iterable[Sample],
    aggregation_type: Union[AggregationType, str],
    timeframe_ms: int,
    now: int,
) -> Value | Dict[str, object]:
    """
    Aggregate the samples falling in a time window.

    Args:
        samples: Samples in arrival order
        aggregation_type: Aggregation to compute
        timeframe_ms: Window length in milliseconds
        now: Window end (epoch ms, inclusive)

    Returns:
        Scalar result (or COUNT mapping) for scalar metrics, and a mapping of
        key -> result for keyed metrics

    Raises:
        EmptyWindowError: If the result is undefined for this window
        UnsupportedAggregationError: If the aggregation type is unknown
        AggregationError: If the window mixes scalar and keyed values
    """
    agg = resolve_aggregation_type(aggregation_type)
    window = select_window(samples, timeframe_ms, now)

    keyed = [s.is_keyed for s in window]
    if window and all(keyed):
        return _aggregate_keyed(window, agg, now)
    if any(keyed):
        raise AggregationError("Window mixes scalar and keyed values")

    return _AGGREGATORS[agg]([(s.timestamp, s.value) for s in window], now)


def _aggregate_keyed(window: Sequence[Sample], agg: AggregationType, now: int) -> Dict[str, object]:
    """Compute one aggregation per key. Keys with an undefined result are left out."""
    keys: Dict[str, None] = {}
    for sample in window:
        for key in sample.value:
            keys.setdefault(key, None)

    result: Dict[str, object] = {}
    for key in keys:
        points = [(s.timestamp, s.value[key]) for s in window if key in s.value]
        try:
            result[key] = _AGGREGATORS[agg](points, now)
        except EmptyWindowError:
            continue

    if keys and not result:
        raise EmptyWindowError(f"{agg.value} is undefined for every key in the window")
    return result


def _sum(points: Sequence[Point], now: int) -> Scalar:
    return sum(v for _, v in points)


def _max(points: Sequence[Point], now: int) -> Scalar:
    if not points:
        raise EmptyWindowError("MAX of an empty window")
    return max(v for _, v in points)


def _min(points: Sequence[Point], now: int) -> Scalar:
    if not points:
        raise EmptyWindowError("MIN of an empty window")
    return min(v for _, v in points)


def _avg(points: Sequence[Point], now: int) -> float:
    if not points:
        raise EmptyWindowError("AVG of an empty window")
    return _sum(points, now) / len(points)


def _avg_time(points: Sequence[Point], now: int) -> float:
    """
    Time-weighted mean.

    Each value is held until the next sample, the last one until now.
    """
    if not points:
        raise EmptyWindowError("AVG_TIME of an empty window")

    weighted = 0
    total = 0
    for i, (timestamp, value) in enumerate(points):
        if i + 1 < len(points):
            duration = points[i + 1][0] - timestamp
        else:
            duration = max(0, now - timestamp)
        weighted += value * duration
        total += duration

    if total == 0:
        raise EmptyWindowError("AVG_TIME over a window of zero duration")
    return weighted / total


def _count(points: Sequence[Point], now: int) -> Dict[str, int]:
    return dict(Counter(count_key(v) for _, v in points))


def count_key(value: Scalar) -> str:
    """Stringify a value for COUNT; integral floats render without ".0"."""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


_AGGREGATORS: Dict[AggregationType, Callable[[Sequence[Point], int], object]] = {
    AggregationType.SUM: _sum,
    AggregationType.MAX: _max,
    AggregationType.MIN: _min,
    AggregationType.AVG: _avg,
    AggregationType.AVG_TIME: _avg_time,
    AggregationType.COUNT: _count,
}
