"""
MetricStore - shared registry of metrics per website.

The store is shared by the checkers (raw metrics), the aggregation
schedulers (derived metrics) and the alert monitors (subscribers). All data
is kept in memory and lost when the process exits.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Hashable, List, Optional

from .metric import Metric
from .models import Sample, Value

logger = logging.getLogger(__name__)

SUMMARY_VALUES = 10


class MetricNotFoundError(KeyError):
    """No metric registered under (url, name)."""

    def __init__(self, url: str, name: str):
        super().__init__(f"No metric {name!r} for {url!r}")
        self.url = url
        self.name = name


class MetricOwnershipError(ValueError):
    """A metric name is already owned by another producer."""
    pass


class MetricStore:
    """
    Registry of metrics keyed by (url, metric name).

    Owners:
        Producers pass an owner when creating a metric (the checker, or an
        aggregator key). Derived metric names are built by joining names with
        underscores, so two producers could compute the same name; the store
        refuses to hand a metric owned by one producer to another.

    Usage:
        store = MetricStore()
        metric = store.get_or_create(url, "availability", owner="checker")
        store.push(url, "availability", timestamp, 1)
        print(store.render())
    """

    def __init__(self) -> None:
        self._metrics: Dict[str, Dict[str, Metric]] = {}
        self._owners: Dict[tuple[str, str], Hashable] = {}
        self._lock = threading.RLock()

    def get(self, url: str, name: str) -> Metric:
        """
        Get a registered metric.

        Raises:
            MetricNotFoundError: If no such metric exists
        """
        metric = self.find(url, name)
        if metric is None:
            raise MetricNotFoundError(url, name)
        return metric

    def find(self, url: str, name: str) -> Optional[Metric]:
        """Get a registered metric, or None."""
        with self._lock:
            return self._metrics.get(url, {}).get(name)

    def has(self, url: str, name: str) -> bool:
        return self.find(url, name) is not None

    def set(self, url: str, name: str, metric: Metric) -> None:
        """Register a metric, replacing any previous one under that name."""
        with self._lock:
            self._metrics.setdefault(url, {})[name] = metric

    def get_or_create(
        self,
        url: str,
        name: str,
        owner: Optional[Hashable] = None,
    ) -> Metric:
        """
        Fetch a metric, creating it if needed.

        Existing metrics are returned as-is so their samples and subscribers
        survive re-registration of their producer.

        Args:
            url: Website URL
            name: Metric name
            owner: Producer claiming the metric

        Raises:
            MetricOwnershipError: If the metric is owned by another producer
        """
        with self._lock:
            current_owner = self._owners.get((url, name))
            if owner is not None and current_owner is not None and current_owner != owner:
                raise MetricOwnershipError(
                    f"Metric {name!r} for {url!r} is already produced by {current_owner!r}"
                )

            metric = self.find(url, name)
            if metric is None:
                metric = Metric(name)
                self.set(url, name, metric)
                logger.debug(f"Created metric {name!r} for {url}")
            if owner is not None:
                self._owners[(url, name)] = owner
            return metric

    def push(self, url: str, name: str, timestamp: int, value: Value) -> None:
        """Push a raw sample into a registered metric."""
        self.get(url, name).push(Sample(timestamp=timestamp, value=value))

    def urls(self) -> List[str]:
        with self._lock:
            return list(self._metrics)

    def names(self, url: str) -> List[str]:
        with self._lock:
            return list(self._metrics.get(url, {}))

    def remove_url(self, url: str) -> None:
        """Forget every metric of a website."""
        with self._lock:
            self._metrics.pop(url, None)
            for key in [k for k in self._owners if k[0] == url]:
                del self._owners[key]

    def render(self) -> str:
        """Summary of the last values of every metric."""
        lines = []
        with self._lock:
            items = [(url, dict(metrics)) for url, metrics in self._metrics.items()]

        for url, metrics in items:
            lines.append(f"--- {url} ---")
            for name, metric in metrics.items():
                samples = metric.samples
                values = " ".join(format_value(s.value) for s in samples[-SUMMARY_VALUES:])
                prefix = "... " if len(samples) > SUMMARY_VALUES else ""
                lines.append(f" - {name} : {prefix}{values}")
        return "\n".join(lines) + ("\n" if lines else "")


def format_value(value: object) -> str:
    """Render a sample value compactly (numbers rounded, mappings as k:v)."""
    if isinstance(value, dict):
        return ",".join(f"{k}:{format_value(v)}" for k, v in value.items())
    if isinstance(value, float):
        return str(round(value))
    return str(value)
