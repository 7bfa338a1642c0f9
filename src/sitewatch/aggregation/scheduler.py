"""
AggregationScheduler - periodic rollup of source metrics into derived metrics.

Every tick, each (source metric, aggregation type) pair is aggregated over
the configured timeframe and the result is pushed into a derived metric
named "{metric}_{aggregator}_{TYPE}". Derived metrics live in the shared
MetricStore, so they can be aggregated again or alerted on (chaining).

Fault isolation:
    - A failing pair is logged and the remaining pairs still run
    - A failing tick is logged and the timer keeps running
    - Each scheduler runs in its own asyncio task
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from sitewatch.metrics import (
    AggregationType,
    EmptyWindowError,
    Metric,
    MetricNotFoundError,
    MetricStore,
    Sample,
    derived_metric_name,
    now_ms,
    resolve_aggregation_type,
)

if TYPE_CHECKING:
    from sitewatch.display import Display

logger = logging.getLogger(__name__)

Pair = Tuple[str, AggregationType]


class AggregationScheduler:
    """
    Periodically aggregates metrics of one website.

    Derived metrics are created when the scheduler is constructed, before
    start(), so alerts and other aggregators can subscribe to them right
    away.

    Usage:
        scheduler = AggregationScheduler(
            url="https://example.com",
            name="2m",
            timeframe_ms=120_000,
            period_ms=10_000,
            metrics={"availability": ["AVG"], "response_code": ["COUNT"]},
            store=store,
        )
        scheduler.start()      # needs a running event loop
        ...
        scheduler.stop()       # idempotent
    """

    def __init__(
        self,
        url: str,
        name: str,
        timeframe_ms: int,
        period_ms: int,
        metrics: Mapping[str, Sequence[Union[AggregationType, str]]],
        store: MetricStore,
        display: bool = False,
        display_sink: Optional["Display"] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """
        Initialize the scheduler and create its derived metrics.

        Args:
            url: Website whose metrics are aggregated
            name: Aggregator name (part of derived metric names)
            timeframe_ms: Window length for each aggregation
            period_ms: Delay between ticks
            metrics: Source metric name -> aggregation types
            store: Shared metric store
            display: Render a snapshot after each tick
            display_sink: Display used when display is enabled
            clock: Returns the current time in epoch ms

        Raises:
            UnsupportedAggregationError: If an aggregation type is unknown
            MetricOwnershipError: If a derived name belongs to another producer
        """
        if timeframe_ms <= 0 or period_ms <= 0:
            raise ValueError("timeframe_ms and period_ms must be positive")

        self.url = url
        self.name = name
        self.timeframe_ms = timeframe_ms
        self.period_ms = period_ms
        self.display = display
        self._display_sink = display_sink
        self._store = store
        self._clock = clock

        self._derived: Dict[Pair, Metric] = {}
        for metric_name, types in metrics.items():
            for aggregation_type in types:
                agg = resolve_aggregation_type(aggregation_type)
                if (metric_name, agg) in self._derived:
                    continue
                self._derived[(metric_name, agg)] = store.get_or_create(
                    url,
                    derived_metric_name(metric_name, name, agg),
                    owner=self.key,
                )

        self.tick_count = 0
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._tick_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"AggregationScheduler(url={self.url!r}, name={self.name!r}, pairs={len(self._derived)})"

    @property
    def key(self) -> Tuple[str, str, str]:
        """Owner key of the derived metrics."""
        return ("aggregator", self.url, self.name)

    @property
    def is_running(self) -> bool:
        """Whether the timer is active."""
        return self._running

    @property
    def pairs(self) -> List[Pair]:
        return list(self._derived)

    @property
    def derived_metrics(self) -> Dict[str, Metric]:
        """Derived metric name -> Metric."""
        return {
            derived_metric_name(metric_name, self.name, agg): metric
            for (metric_name, agg), metric in self._derived.items()
        }

    def start(self) -> None:
        """
        Start the periodic timer.

        Raises:
            RuntimeError: If no event loop is running
        """
        if self._running:
            logger.warning(f"Aggregator {self.name} for {self.url} already running")
            return

        loop = asyncio.get_running_loop()
        self._running = True
        self._stop_event.clear()
        self._task = loop.create_task(
            self._run_loop(),
            name=f"aggregator_{self.name}",
        )
        logger.info(
            f"Started aggregator {self.name} for {self.url} "
            f"(timeframe={self.timeframe_ms}ms, period={self.period_ms}ms)"
        )

    def stop(self) -> None:
        """
        Cancel the timer.

        Safe to call twice or before start(). No tick starts after this
        returns.
        """
        was_running = self._running
        self._running = False
        self._stop_event.set()

        if self._task is not None and not self._task.done():
            self._task.cancel()

        if was_running:
            logger.info(f"Stopped aggregator {self.name} for {self.url}")

    async def close(self) -> None:
        """Stop and wait for the timer task to finish."""
        self.stop()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

    async def _run_loop(self) -> None:
        """Tick every period until stopped."""
        interval = self.period_ms / 1000

        while self._running:
            try:
                # Wait for interval or stop
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=interval,
                    )
                    break  # Stop requested
                except asyncio.TimeoutError:
                    pass

                if not self._running:
                    break

                self.tick()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in aggregator {self.name} for {self.url}: {e}")

    def tick(self, now: Optional[int] = None) -> int:
        """
        Run one aggregation round.

        Args:
            now: Window end in epoch ms (defaults to the clock)

        Returns:
            Number of derived samples pushed
        """
        with self._tick_lock:
            if now is None:
                now = self._clock()

            pushed = 0
            for (metric_name, agg), derived in self._derived.items():
                try:
                    source = self._store.get(self.url, metric_name)
                    value = source.aggregate(agg, self.timeframe_ms, now)
                except EmptyWindowError as e:
                    logger.warning(
                        f"Aggregator {self.name}: no {agg.value} for "
                        f"{metric_name} on {self.url}: {e}"
                    )
                    continue
                except MetricNotFoundError:
                    logger.warning(
                        f"Aggregator {self.name}: source metric {metric_name} "
                        f"missing for {self.url}"
                    )
                    continue
                except Exception as e:
                    logger.error(
                        f"Aggregator {self.name}: {agg.value} of {metric_name} "
                        f"failed for {self.url}: {e}"
                    )
                    continue

                try:
                    derived.push(Sample(timestamp=now, value=value))
                    pushed += 1
                except Exception as e:
                    logger.error(f"Aggregator {self.name}: push into {derived.name} failed: {e}")

            self.tick_count += 1

        if self.display and self._display_sink is not None:
            self._display_sink.log(self.snapshot())

        return pushed

    def snapshot(self) -> str:
        """Latest value of every derived metric of this aggregator."""
        lines = [f"--- Results for '{self.url}' in the last {self.name}"]

        by_metric: Dict[str, List[str]] = {}
        for (metric_name, agg), derived in self._derived.items():
            latest = derived.latest()
            value = _format_snapshot_value(latest.value) if latest else "n/a"
            by_metric.setdefault(metric_name, []).append(f"{agg.value}={value}")

        for metric_name, results in by_metric.items():
            lines.append(f" - {metric_name} : {' '.join(results)}")

        return "\n".join(lines) + "\n"


def _format_snapshot_value(value: object) -> str:
    if isinstance(value, Mapping):
        parts = []
        for k, v in value.items():
            rendered = f"{{{_format_snapshot_value(v)}}}" if isinstance(v, Mapping) else _format_snapshot_value(v)
            parts.append(f"{k}:{rendered}")
        return ",".join(parts)
    return str(value)
