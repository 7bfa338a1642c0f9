"""
ConfigStore - event based configuration of the running monitor.

Stores websites and their metrics, aggregators and alerts, and notifies
components through (element, operation) callbacks so they can start or stop
work while the service runs. Can load and save its state as JSON.

Acceptance:
    A setter validates its payload, then dispatches the event. The setting
    is stored only if every listener accepted it; a listener rejects by
    raising ConfigurationError.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from .events import (
    AggregatorEvent,
    AggregatorRemoved,
    AlertEvent,
    AlertRemoved,
    MetricEvent,
    WebsiteEvent,
)
from .models import AggregatorSettings, AlertThresholds, ConfigurationError, WebsiteSettings

logger = logging.getLogger(__name__)

ELEMENTS = ("website", "metric", "aggregator", "alert")
OPERATIONS = ("set", "del")

Listener = Callable[[Any], None]


def _parse(model: type, value: Any, what: str) -> Any:
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {what}: {e}") from e


class ConfigStore:
    """
    Configuration of websites, metrics, aggregators and alerts.

    Usage:
        config = ConfigStore()
        config.on("aggregator", "set", aggregation_service.on_aggregator_set)

        config.set_website("https://example.com", {"checkDelay": 1000})
        config.set_metric("https://example.com", "availability", True)
        config.set_aggregator("https://example.com", "2m", {
            "timeframe": 120000,
            "computeDelay": 10000,
            "metrics": {"availability": ["AVG"]},
        })

        config.save("config.json")
    """

    def __init__(self) -> None:
        self.websites: Dict[str, WebsiteSettings] = {}
        self._listeners: Dict[str, Dict[str, List[Listener]]] = {
            element: {operation: [] for operation in OPERATIONS}
            for element in ELEMENTS
        }

    # Subscriptions

    def on(self, element: str, operation: str, callback: Listener) -> None:
        """
        Register a listener for an element/operation pair.

        Raises:
            ConfigurationError: If the element or operation is unknown
        """
        if element not in self._listeners:
            raise ConfigurationError(
                f"element must be one of {', '.join(ELEMENTS)}, got {element!r}"
            )
        if operation not in OPERATIONS:
            raise ConfigurationError(f"operation must be `set` or `del`, got {operation!r}")
        self._listeners[element][operation].append(callback)

    def _dispatch(self, element: str, operation: str, event: Any) -> None:
        for callback in list(self._listeners[element][operation]):
            try:
                callback(event)
            except ConfigurationError:
                raise
            except Exception as e:
                logger.exception(f"Listener for {element} {operation} failed: {e}")
                raise ConfigurationError(f"{element} {operation} failed: {e}") from e

    # Websites

    def get_website(self, url: str) -> Optional[WebsiteSettings]:
        return self.websites.get(url)

    def _require_website(self, url: str) -> WebsiteSettings:
        website = self.websites.get(url)
        if website is None:
            raise ConfigurationError(f"website `{url}` does not exist in configuration")
        return website

    def set_website(self, url: str, settings: Union[WebsiteSettings, Mapping[str, Any]]) -> None:
        """
        Register a website with its metrics, aggregators and alerts.

        Re-registering an existing website tears down its previous
        aggregators and alerts first. Children that are rejected are logged
        and skipped.
        """
        if not url:
            raise ConfigurationError("website url is required")
        website = _parse(WebsiteSettings, settings, "website")

        if url in self.websites:
            self._del_children(url)

        self._dispatch("website", "set", WebsiteEvent(url=url, check_delay=website.check_delay))
        self.websites[url] = WebsiteSettings(check_delay=website.check_delay)

        for metric_name, enabled in website.metrics.items():
            self._apply_child(f"metric {metric_name}", self.set_metric, url, metric_name, enabled)
        for aggregator_name, aggregator in website.aggregators.items():
            self._apply_child(f"aggregator {aggregator_name}", self.set_aggregator, url, aggregator_name, aggregator)
        for alert_name, thresholds in website.alerts.items():
            self._apply_child(f"alert {alert_name}", self.set_alert, url, alert_name, thresholds)

    def _apply_child(self, what: str, setter: Callable[..., None], url: str, *args: Any) -> None:
        try:
            setter(url, *args)
        except ConfigurationError as e:
            logger.warning(f"Skipping {what} of {url}: {e}")

    def del_website(self, url: str) -> None:
        """Remove a website, its aggregators and its alerts."""
        self._require_website(url)
        self._del_children(url)
        self._dispatch("website", "del", WebsiteEvent(url=url))
        del self.websites[url]

    def _del_children(self, url: str) -> None:
        website = self.websites[url]
        for aggregator_name in list(website.aggregators):
            self._dispatch("aggregator", "del", AggregatorRemoved(url=url, aggregator_name=aggregator_name))
            del website.aggregators[aggregator_name]
        for alert_name in list(website.alerts):
            self._dispatch("alert", "del", AlertRemoved(url=url, alert_name=alert_name))
            del website.alerts[alert_name]

    # Metrics

    def set_metric(self, url: str, metric_name: str, enabled: bool) -> None:
        """Enable or disable a raw metric of a website."""
        website = self._require_website(url)
        if not metric_name:
            raise ConfigurationError("metric name is required")
        self._dispatch("metric", "set", MetricEvent(url=url, metric_name=metric_name, enabled=bool(enabled)))
        website.metrics[metric_name] = bool(enabled)

    # Aggregators

    def set_aggregator(
        self,
        url: str,
        aggregator_name: str,
        settings: Union[AggregatorSettings, Mapping[str, Any]],
    ) -> None:
        """Register or replace an aggregator."""
        website = self._require_website(url)
        if not aggregator_name:
            raise ConfigurationError("aggregator name is required")
        aggregator = _parse(AggregatorSettings, settings, "aggregator")

        self._dispatch("aggregator", "set", AggregatorEvent(
            url=url,
            aggregator_name=aggregator_name,
            timeframe=aggregator.timeframe,
            compute_delay=aggregator.compute_delay,
            display=aggregator.display,
            metrics={name: list(types) for name, types in aggregator.metrics.items()},
        ))
        website.aggregators[aggregator_name] = aggregator

    def del_aggregator(self, url: str, aggregator_name: str) -> None:
        website = self._require_website(url)
        self._dispatch("aggregator", "del", AggregatorRemoved(url=url, aggregator_name=aggregator_name))
        website.aggregators.pop(aggregator_name, None)

    # Alerts

    def set_alert(
        self,
        url: str,
        alert_name: str,
        thresholds: Union[AlertThresholds, Mapping[str, Any]],
    ) -> None:
        """Register or replace an alert."""
        website = self._require_website(url)
        if not alert_name:
            raise ConfigurationError("alert name is required")
        parsed = _parse(AlertThresholds, thresholds, "alert")

        self._dispatch("alert", "set", AlertEvent(url=url, alert_name=alert_name, thresholds=parsed))
        website.alerts[alert_name] = parsed

    def del_alert(self, url: str, alert_name: str) -> None:
        website = self._require_website(url)
        self._dispatch("alert", "del", AlertRemoved(url=url, alert_name=alert_name))
        website.alerts.pop(alert_name, None)

    # Persistence

    def load(self, path: Union[str, Path]) -> None:
        """
        Load websites from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigurationError: If the file is not valid configuration
        """
        try:
            data = json.loads(Path(path).read_text())
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("websites"), dict):
            raise ConfigurationError("No `websites` field in config")

        for url, entry in data["websites"].items():
            settings = entry.get("config", entry) if isinstance(entry, dict) else entry
            try:
                self.set_website(url, settings)
            except ConfigurationError as e:
                logger.warning(f"Skipping website {url}: {e}")

        logger.info(f"Loaded {len(self.websites)} websites from {path}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "websites": {
                url: {
                    "url": url,
                    "config": website.model_dump(by_alias=True, mode="json", exclude_none=True),
                }
                for url, website in self.websites.items()
            }
        }

    def save(self, path: Union[str, Path]) -> None:
        """Write the configuration to a JSON file."""
        Path(path).write_text(json.dumps(self.to_dict(), indent=4))
        logger.info(f"Saved configuration to {path}")
