"""
Metric - append-only time series with push notification.

A Metric is the leaf of the engine:
    - push() appends a sample and synchronously notifies subscribers
    - aggregate() runs a read-only windowed query
    - subscribe()/unsubscribe() manage the per-metric subscriber table

Push chains:
    Subscribers may push into other metrics (aggregation chains, alerts), so
    push() is a synchronous, possibly recursive call chain. Depth is bounded
    by MAX_PUSH_DEPTH per thread.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Optional, Tuple, Union

from .aggregation import aggregate_samples
from .models import AggregationType, Sample, Value
from .retention import KeepAll, RetentionPolicy

logger = logging.getLogger(__name__)

PUSH_EVENT = "push"
MAX_PUSH_DEPTH = 64

Callback = Callable[[Sample], None]

_chain = threading.local()


class PushDepthExceededError(RuntimeError):
    """A push chain nested deeper than MAX_PUSH_DEPTH."""
    pass


@dataclass(frozen=True)
class Subscription:
    """Handle returned by Metric.subscribe(), used to remove the callback."""

    metric: "Metric"
    event: str
    key: Hashable

    def cancel(self) -> None:
        """Remove the subscription. Safe to call more than once."""
        self.metric.unsubscribe(self.key, event=self.event)


class Metric:
    """
    Named, append-only sequence of samples plus a subscriber table.

    Samples are kept in arrival order and are never reordered by the metric.
    Arrival order can differ from timestamp order.

    Usage:
        metric = Metric("availability")
        handle = metric.subscribe("alert_availability", on_sample)

        metric.push(Sample(timestamp=now_ms(), value=1))
        avg = metric.aggregate("AVG", 120_000, now_ms())

        handle.cancel()
    """

    def __init__(
        self,
        name: str,
        retention: Optional[RetentionPolicy] = None,
    ) -> None:
        """
        Initialize an empty metric.

        Args:
            name: Metric name
            retention: Sample retention policy (default keeps everything)
        """
        self.name = name
        self.retention = retention or KeepAll()
        self._samples: list[Sample] = []
        self._subscribers: Dict[str, Dict[Hashable, Callback]] = {PUSH_EVENT: {}}
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"Metric(name={self.name!r}, samples={len(self._samples)})"

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> Tuple[Sample, ...]:
        """Snapshot of samples in arrival order."""
        with self._lock:
            return tuple(self._samples)

    def latest(self) -> Optional[Sample]:
        """Last pushed sample (by arrival), or None."""
        with self._lock:
            return self._samples[-1] if self._samples else None

    # Subscribers

    def subscribe(
        self,
        key: Hashable,
        callback: Callback,
        event: str = PUSH_EVENT,
    ) -> Subscription:
        """
        Register a callback.

        Registering an existing key replaces its callback and keeps its
        position in the notification order.

        Args:
            key: Subscriber key, unique per event
            callback: Called with each new sample
            event: Event kind (only "push" is emitted)

        Returns:
            Subscription handle for removal
        """
        with self._lock:
            self._subscribers.setdefault(event, {})[key] = callback
        return Subscription(metric=self, event=event, key=key)

    def unsubscribe(
        self,
        key: Union[Hashable, Subscription],
        event: str = PUSH_EVENT,
    ) -> None:
        """Remove a subscriber. Unknown keys are ignored."""
        if isinstance(key, Subscription):
            key, event = key.key, key.event
        with self._lock:
            self._subscribers.get(event, {}).pop(key, None)

    def subscriber_count(self, event: str = PUSH_EVENT) -> int:
        """Number of callbacks registered for an event."""
        with self._lock:
            return len(self._subscribers.get(event, {}))

    # Data

    def push(self, sample: Sample) -> None:
        """
        Append a sample and notify subscribers in registration order.

        A failing subscriber is logged and skipped; it never reaches the
        caller nor prevents the remaining subscribers from running.

        Raises:
            PushDepthExceededError: If called too deep inside other pushes
        """
        depth = getattr(_chain, "depth", 0)
        if depth >= MAX_PUSH_DEPTH:
            raise PushDepthExceededError(
                f"Push chain exceeded {MAX_PUSH_DEPTH} levels at metric {self.name!r}"
            )

        with self._lock:
            self._samples.append(sample)
            self.retention.apply(self._samples)
            callbacks = list(self._subscribers.get(PUSH_EVENT, {}).items())

            _chain.depth = depth + 1
            try:
                for key, callback in callbacks:
                    try:
                        callback(sample)
                    except Exception as e:
                        logger.exception(
                            f"Subscriber {key!r} of metric {self.name!r} failed: {e}"
                        )
            finally:
                _chain.depth = depth

    def aggregate(
        self,
        aggregation_type: Union[AggregationType, str],
        timeframe_ms: int,
        now: int,
    ) -> Value:
        """
        Aggregate the samples in [now - timeframe_ms, now].

        See sitewatch.metrics.aggregation.aggregate_samples for semantics
        and raised errors.
        """
        return aggregate_samples(self.samples, aggregation_type, timeframe_ms, now)
