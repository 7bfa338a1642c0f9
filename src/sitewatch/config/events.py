"""
Lifecycle events emitted by the ConfigStore.

Components subscribe with ConfigStore.on(element, operation, callback) and
receive one of these immutable payloads.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from sitewatch.metrics import AggregationType

from .models import AlertThresholds


@dataclass(frozen=True)
class WebsiteEvent:
    """Website set or deleted."""
    url: str
    check_delay: int = 0


@dataclass(frozen=True)
class MetricEvent:
    """Raw metric enabled or disabled."""
    url: str
    metric_name: str
    enabled: bool


@dataclass(frozen=True)
class AggregatorEvent:
    """Aggregator set."""
    url: str
    aggregator_name: str
    timeframe: int
    compute_delay: int
    display: bool
    metrics: Dict[str, List[AggregationType]] = field(default_factory=dict)


@dataclass(frozen=True)
class AggregatorRemoved:
    """Aggregator deleted."""
    url: str
    aggregator_name: str


@dataclass(frozen=True)
class AlertEvent:
    """Alert set."""
    url: str
    alert_name: str
    thresholds: AlertThresholds

    @property
    def metric_name(self) -> str:
        """Metric the alert watches."""
        return self.thresholds.metric or self.alert_name


@dataclass(frozen=True)
class AlertRemoved:
    """Alert deleted."""
    url: str
    alert_name: str
