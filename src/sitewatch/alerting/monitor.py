"""
AlertMonitor - threshold crossing state machine on a metric.

States are Normal and Triggered. A sample breaching a threshold while
Normal triggers the alert; a sample back within the threshold while
Triggered recovers it.

Threshold modes:
    SHARED (default): min and max share a single triggered flag. With both
        thresholds configured, a sample breaching one and satisfying the
        other triggers and recovers within the same sample.
    PER_THRESHOLD: min and max have independent flags; the monitor is
        triggered while either one is.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from sitewatch.config import AlertThresholds
from sitewatch.metrics import Metric, Sample

logger = logging.getLogger(__name__)


class ThresholdMode(str, Enum):
    """How min and max breaches map onto triggered state."""
    SHARED = "shared"
    PER_THRESHOLD = "per_threshold"


class TransitionKind(str, Enum):
    TRIGGER = "trigger"
    RECOVER = "recover"


@dataclass(frozen=True)
class AlertTransition:
    """One trigger or recovery of an alert."""

    kind: TransitionKind
    threshold: str  # "min" or "max"
    url: str
    alert_name: str
    value: Any
    timestamp: int
    message: str


class AlertMonitor:
    """
    Watches a metric and records threshold crossings.

    Usage:
        monitor = AlertMonitor(
            metric,
            {"min": 0.8},
            url="https://example.com",
            name="availability_2m_AVG",
        )
        metric.push(Sample(timestamp=now_ms(), value=0.5))
        assert monitor.triggered
        print(monitor.log)

        monitor.dispose()
    """

    def __init__(
        self,
        metric: Metric,
        thresholds: Union[AlertThresholds, Mapping[str, Any]],
        url: str = "",
        name: Optional[str] = None,
        mode: ThresholdMode = ThresholdMode.SHARED,
        on_event: Optional[Callable[[AlertTransition], None]] = None,
    ) -> None:
        """
        Initialize the monitor in Normal state and subscribe to the metric.

        Args:
            metric: Metric to watch
            thresholds: min and/or max threshold
            url: Website the metric belongs to (used in messages)
            name: Alert name (defaults to the metric name)
            mode: Threshold mode
            on_event: Called with each transition
        """
        if not isinstance(thresholds, AlertThresholds):
            thresholds = AlertThresholds.model_validate(dict(thresholds))

        self.metric = metric
        self.url = url
        self.name = name or metric.name
        self.mode = ThresholdMode(mode)
        self.thresholds = thresholds
        self.log: List[str] = []
        self._on_event = on_event

        self._shared_triggered = False
        self._triggered: Dict[str, bool] = {"min": False, "max": False}

        self._subscription = metric.subscribe(self, self.on_sample)
        self._disposed = False

    def __repr__(self) -> str:
        return f"AlertMonitor(url={self.url!r}, name={self.name!r}, triggered={self.triggered})"

    @property
    def triggered(self) -> bool:
        if self.mode == ThresholdMode.SHARED:
            return self._shared_triggered
        return any(self._triggered.values())

    def is_triggered(self, threshold: str) -> bool:
        """State of one threshold kind (PER_THRESHOLD), or the shared state."""
        if self.mode == ThresholdMode.SHARED:
            return self._shared_triggered
        return self._triggered[threshold]

    def _configured(self) -> List[Tuple[str, float]]:
        pairs = []
        if self.thresholds.min is not None:
            pairs.append(("min", self.thresholds.min))
        if self.thresholds.max is not None:
            pairs.append(("max", self.thresholds.max))
        return pairs

    def _set_triggered(self, threshold: str, value: bool) -> None:
        if self.mode == ThresholdMode.SHARED:
            self._shared_triggered = value
        else:
            self._triggered[threshold] = value

    def on_sample(self, sample: Sample) -> List[AlertTransition]:
        """
        Evaluate a new sample against each configured threshold.

        Returns:
            Transitions caused by the sample
        """
        value = sample.value
        if isinstance(value, Mapping) or not isinstance(value, (int, float)):
            logger.warning(f"Alert {self.name}: ignoring non-numeric value {value!r}")
            return []

        transitions = []
        for threshold, limit in self._configured():
            breached = value < limit if threshold == "min" else value > limit
            triggered = self.is_triggered(threshold)

            if breached and not triggered:
                transitions.append(self._transition(TransitionKind.TRIGGER, threshold, sample))
            elif not breached and triggered:
                transitions.append(self._transition(TransitionKind.RECOVER, threshold, sample))

        return transitions

    def _transition(self, kind: TransitionKind, threshold: str, sample: Sample) -> AlertTransition:
        if kind == TransitionKind.TRIGGER:
            message = f"Website {self.url} is down. {self.name}={sample.value}, time={sample.timestamp}"
            self._set_triggered(threshold, True)
            logger.warning(message)
        else:
            message = f"[Recovered] Website {self.url} is up. {self.name}={sample.value}, time={sample.timestamp}"
            self._set_triggered(threshold, False)
            logger.info(message)

        self.log.append(message)
        transition = AlertTransition(
            kind=kind,
            threshold=threshold,
            url=self.url,
            alert_name=self.name,
            value=sample.value,
            timestamp=sample.timestamp,
            message=message,
        )
        if self._on_event is not None:
            self._on_event(transition)
        return transition

    def dispose(self) -> None:
        """Stop watching the metric. Log and state are kept."""
        if self._disposed:
            return
        self._subscription.cancel()
        self._disposed = True
