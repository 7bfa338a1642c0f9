"""
AlertService - runs alerts configured in the ConfigStore.

Keeps the alert log shared by every monitor: an ordered, append-only list
of messages that the display keeps visible.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from sitewatch.config import AlertEvent, AlertRemoved, ConfigStore, ConfigurationError
from sitewatch.metrics import MetricStore

from .monitor import AlertMonitor, AlertTransition, ThresholdMode

if TYPE_CHECKING:
    from sitewatch.display import Display

logger = logging.getLogger(__name__)


class AlertService:
    """
    Binds alert lifecycle events to AlertMonitors.

    Usage:
        service = AlertService(config, store, display)
        service.run()

        config.set_alert(url, "availability_2m_AVG", {"min": 0.8})
        print(service.render())
    """

    def __init__(
        self,
        config: ConfigStore,
        store: MetricStore,
        display: Optional["Display"] = None,
        mode: ThresholdMode = ThresholdMode.SHARED,
    ) -> None:
        self.config = config
        self.store = store
        self.mode = mode
        self._display = display
        self._alerts: List[str] = []
        self.monitors: Dict[Tuple[str, str], AlertMonitor] = {}

    @property
    def alerts(self) -> List[str]:
        """Alert log, oldest first."""
        return list(self._alerts)

    def run(self) -> None:
        """Subscribe to alert events."""
        self.config.on("alert", "set", self.on_alert_set)
        self.config.on("alert", "del", self.on_alert_del)

    def render(self) -> str:
        return "\n".join(self._alerts)

    def is_triggered(self, url: str, alert_name: str) -> bool:
        monitor = self.monitors.get((url, alert_name))
        return monitor is not None and monitor.triggered

    def push_alert(self, message: str) -> None:
        """Append a message to the alert log."""
        self._alerts.append(message)
        if self._display is not None:
            self._display.alert(self._alerts)

    def _on_transition(self, transition: AlertTransition) -> None:
        self.push_alert(transition.message)

    def on_alert_set(self, event: AlertEvent) -> None:
        """
        Start watching the alert's metric, replacing a previous monitor.

        Raises:
            ConfigurationError: If the watched metric does not exist
        """
        metric = self.store.find(event.url, event.metric_name)
        if metric is None:
            raise ConfigurationError(
                f"no aggregator or metric with name `{event.metric_name}` found for {event.url}"
            )

        key = (event.url, event.alert_name)
        previous = self.monitors.pop(key, None)
        if previous is not None:
            previous.dispose()

        self.monitors[key] = AlertMonitor(
            metric,
            event.thresholds,
            url=event.url,
            name=event.alert_name,
            mode=self.mode,
            on_event=self._on_transition,
        )
        logger.info(f"Alert {event.alert_name} watching {event.metric_name} for {event.url}")

    def on_alert_del(self, event: AlertRemoved) -> None:
        """Stop an alert. Unknown alerts are ignored."""
        monitor = self.monitors.pop((event.url, event.alert_name), None)
        if monitor is None:
            logger.debug(f"Alert {event.alert_name} for {event.url} not registered")
            return
        monitor.dispose()

    def dispose_all(self) -> None:
        for monitor in self.monitors.values():
            monitor.dispose()
        self.monitors.clear()
