"""
AggregationService - runs aggregators configured in the ConfigStore.

Whenever an aggregator is set or deleted, the matching scheduler is started
or stopped.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from sitewatch.config import (
    AggregatorEvent,
    AggregatorRemoved,
    ConfigStore,
    ConfigurationError,
)
from sitewatch.metrics import AggregationError, MetricOwnershipError, MetricStore

from .scheduler import AggregationScheduler

if TYPE_CHECKING:
    from sitewatch.display import Display

logger = logging.getLogger(__name__)


class AggregationService:
    """
    Binds aggregator lifecycle events to AggregationSchedulers.

    Usage:
        service = AggregationService(config, store, display)
        service.run()    # subscribe to config events
        ...
        await service.close()
    """

    def __init__(
        self,
        config: ConfigStore,
        store: MetricStore,
        display: Optional["Display"] = None,
    ) -> None:
        self.config = config
        self.store = store
        self._display = display
        self.aggregators: Dict[Tuple[str, str], AggregationScheduler] = {}

    def run(self) -> None:
        """Subscribe to aggregator events."""
        self.config.on("aggregator", "set", self.on_aggregator_set)
        self.config.on("aggregator", "del", self.on_aggregator_del)

    def get(self, url: str, aggregator_name: str) -> Optional[AggregationScheduler]:
        return self.aggregators.get((url, aggregator_name))

    def on_aggregator_set(self, event: AggregatorEvent) -> None:
        """
        Start (or restart) the aggregator described by the event.

        Raises:
            ConfigurationError: If a source metric does not exist, an
                aggregation type is unsupported, or a derived metric name is
                already produced elsewhere
        """
        if not event.metrics:
            raise ConfigurationError(f"aggregator `{event.aggregator_name}` has no metrics")

        missing = [name for name in event.metrics if not self.store.has(event.url, name)]
        if missing:
            raise ConfigurationError(
                f"no aggregator or metric with name `{'`, `'.join(missing)}` found for {event.url}"
            )

        key = (event.url, event.aggregator_name)
        try:
            scheduler = AggregationScheduler(
                url=event.url,
                name=event.aggregator_name,
                timeframe_ms=event.timeframe,
                period_ms=event.compute_delay,
                metrics=event.metrics,
                store=self.store,
                display=event.display,
                display_sink=self._display,
            )
        except (AggregationError, MetricOwnershipError, ValueError) as e:
            raise ConfigurationError(str(e)) from e

        scheduler.start()

        previous = self.aggregators.pop(key, None)
        if previous is not None:
            previous.stop()
        self.aggregators[key] = scheduler

    def on_aggregator_del(self, event: AggregatorRemoved) -> None:
        """Stop and forget an aggregator. Unknown aggregators are ignored."""
        scheduler = self.aggregators.pop((event.url, event.aggregator_name), None)
        if scheduler is None:
            logger.debug(f"Aggregator {event.aggregator_name} for {event.url} not running")
            return
        scheduler.stop()

    def stop_all(self) -> None:
        for scheduler in self.aggregators.values():
            scheduler.stop()

    async def close(self) -> None:
        """Stop every aggregator and wait for their timers."""
        for scheduler in list(self.aggregators.values()):
            await scheduler.close()
        self.aggregators.clear()
