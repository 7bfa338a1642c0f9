"""
Aggregation Layer - Periodic rollups of metrics into derived metrics.

This module provides:
    - AggregationScheduler: Timer aggregating (metric, type) pairs each tick
    - AggregationService: Starts/stops schedulers on config events

Derived metric naming:
    "{metric}_{aggregator}_{TYPE}", e.g. "availability_2m_AVG". A derived
    metric can be the source of another aggregator or an alert.
"""

from .scheduler import AggregationScheduler
from .service import AggregationService

__all__ = [
    "AggregationScheduler",
    "AggregationService",
]
