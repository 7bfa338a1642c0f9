"""
Command parsing for the remote control protocol.

Each line received from a client is one command; every command produces
exactly one Reply. Configuration changes go through the ConfigStore, so
rejected settings come back as error replies and are never applied.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from sitewatch.checking import METRIC_NAMES
from sitewatch.config import ConfigStore, ConfigurationError
from sitewatch.metrics import AggregationType, MetricStore

logger = logging.getLogger(__name__)

CONFIG_ELEMENTS = ("website", "metric", "aggregator", "alert")
AGGREGATION_TOKENS = "|".join(t.value for t in AggregationType)


@dataclass(frozen=True)
class Reply:
    """Answer to one command."""

    ok: bool
    text: str

    @property
    def type(self) -> str:
        return "log" if self.ok else "err"

    def to_json(self) -> str:
        return json.dumps({"type": self.type, "data": self.text})


def _log(text: str) -> Reply:
    return Reply(ok=True, text=text)


def _err(text: str) -> Reply:
    return Reply(ok=False, text=text)


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_float(value: str) -> Optional[float]:
    try:
        return float(value)
    except ValueError:
        return None


def help_text() -> str:
    metric_names = "[" + "|".join(METRIC_NAMES) + "]"
    aggregation_types = f"[{AGGREGATION_TOKENS}]"
    return (
        "Available commands :\n"
        " - `help` : Shows this help\n"
        " - `list` : Lists registered websites\n"
        " - `get website <url>` : Get info about a registered website\n"
        " - `set website <url> <checkDelay>` : Register new website\n"
        " - `del website <url>` : Removes a website\n"
        f" - `get metric <url> {metric_names}` : Displays whether metric is enabled\n"
        f" - `set metric <url> {metric_names} [0|1]` : Enable or disable a metric\n"
        " - `get aggregator <url> <aggregatorName>` : Displays an aggregator information\n"
        " - `set aggregator <url> <aggregatorName> <timeframe> <computeDelay> <display:[1|0]>\n"
        f"   <metricName> {aggregation_types}` : Sets an aggregator\n"
        " - `del aggregator <url> <aggregatorName>` : Removes an aggregator\n"
        " - `get alert <url> <alertName>` : Displays an alert information\n"
        " - `set alert <url> <alertName> [min=<value>] [max=<value>] [metric=<metricName>]` : Sets an alert\n"
        " - `del alert <url> <alertName>` : Removes an alert"
    )


class CommandHandler:
    """
    Executes control commands against the configuration.

    Usage:
        handler = CommandHandler(config, store)
        reply = handler.handle("set website https://example.com 1000")
        print(reply.type, reply.text)
    """

    def __init__(self, config: ConfigStore, store: MetricStore) -> None:
        self.config = config
        self.store = store

    def handle(self, line: str) -> Reply:
        """Execute one command line."""
        tokens = line.split()
        if not tokens:
            return _log(help_text())

        command = tokens[0]
        try:
            if command in ("get", "set", "del"):
                if len(tokens) < 2 or tokens[1] not in CONFIG_ELEMENTS:
                    return _err(
                        "first parameter of this command must be "
                        "`website`, `metric`, `aggregator` or `alert`"
                    )
                handler = getattr(self, f"_handle_{tokens[1]}")
                return handler(command, tokens[2:])
            if command == "list":
                return self._handle_list()
            return _log(help_text())
        except ConfigurationError as e:
            return _err(str(e))
        except Exception as e:
            logger.exception(f"Command failed: {line!r}")
            return _err(f"command failed: {e}")

    def _handle_list(self) -> Reply:
        return _log("\n".join(
            f" - {url} delay {website.check_delay}"
            for url, website in self.config.websites.items()
        ))

    def _handle_website(self, operation: str, args: List[str]) -> Reply:
        if not args:
            return _err("expected argument url")
        url = args[0]

        if operation == "get":
            website = self.config.get_website(url)
            if website is None:
                return _err(f"website `{url}` does not exist in configuration")
            return _log(_dump(website.model_dump(by_alias=True, mode="json", exclude_none=True)))

        if operation == "set":
            if len(args) < 2:
                return _err("expected arguments url and check delay")
            check_delay = _parse_int(args[1])
            if check_delay is None or check_delay <= 0:
                return _err("invalid URL or checkDelay")
            self.config.set_website(url, {"checkDelay": check_delay})
            return _log("website registered")

        self.config.del_website(url)
        return _log(f"removed website {url}")

    def _handle_metric(self, operation: str, args: List[str]) -> Reply:
        url = args[0] if args else None
        if not url or self.config.get_website(url) is None:
            return _err(f"website `{url or ''}` does not exist in configuration")

        name = args[1] if len(args) > 1 else None
        if name not in METRIC_NAMES:
            return _err("expected argument metricName among `" + "`, `".join(METRIC_NAMES) + "`")

        if operation == "get":
            enabled = self.config.websites[url].metrics.get(name) is True
            return _log(str(enabled).lower())
        if operation == "set":
            enabled = len(args) > 2 and _parse_int(args[2]) == 1
            self.config.set_metric(url, name, enabled)
            return _log(f"metric {name} set to {str(enabled).lower()}")
        return _err("del not available on metric")

    def _handle_aggregator(self, operation: str, args: List[str]) -> Reply:
        url = args[0] if args else None
        if not url or self.config.get_website(url) is None:
            return _err("valid url expected")
        if len(args) < 2:
            return _err("name expected")
        name = args[1]
        aggregators = self.config.websites[url].aggregators

        if operation == "get":
            if name not in aggregators:
                return _err(f"aggregator `{name}` does not exist")
            return _log(_dump(aggregators[name].model_dump(by_alias=True, mode="json")))

        if operation == "del":
            if name not in aggregators:
                return _err(f"aggregator `{name}` does not exist")
            self.config.del_aggregator(url, name)
            return _log("aggregator removed")

        # set <url> <name> <timeframe> <computeDelay> <display> <metricName> <aggregationType>
        timeframe = _parse_int(args[2] if len(args) > 2 else None)
        compute_delay = _parse_int(args[3] if len(args) > 3 else None)
        display = _parse_int(args[4] if len(args) > 4 else None) == 1
        metric_name = args[5] if len(args) > 5 else None
        aggregation_type = args[6] if len(args) > 6 else None

        if not (timeframe and timeframe > 0 and compute_delay and compute_delay > 0
                and metric_name and aggregation_type):
            return _err("invalid params")
        if aggregation_type not in AGGREGATION_TOKENS.split("|"):
            return _err(f"aggregation type must be one of [{AGGREGATION_TOKENS}]")
        if not self.store.has(url, metric_name):
            return _err(f"no aggregator or metric with name `{metric_name}` found")

        # Merge the new pair into the existing aggregator
        existing = aggregators.get(name)
        metrics: Dict[str, List[str]] = {
            metric: [t.value for t in types]
            for metric, types in (existing.metrics.items() if existing else [])
        }
        types = metrics.setdefault(metric_name, [])
        if aggregation_type not in types:
            types.append(aggregation_type)

        self.config.set_aggregator(url, name, {
            "timeframe": timeframe,
            "computeDelay": compute_delay,
            "display": display,
            "metrics": metrics,
        })
        return _log("aggregator registered")

    def _handle_alert(self, operation: str, args: List[str]) -> Reply:
        url = args[0] if args else None
        if not url or self.config.get_website(url) is None:
            return _err("valid url expected")
        if len(args) < 2:
            return _err("name expected")
        name = args[1]
        alerts = self.config.websites[url].alerts

        if operation == "get":
            if name not in alerts:
                return _err(f"alert `{name}` does not exist")
            return _log(_dump(alerts[name].model_dump(exclude_none=True)))

        if operation == "del":
            if name not in alerts:
                return _err(f"alert `{name}` does not exist")
            self.config.del_alert(url, name)
            return _log("alert removed")

        thresholds = _parse_thresholds(args[2:])
        if thresholds is None:
            return _err("expected thresholds as min=<value> and/or max=<value>")
        self.config.set_alert(url, name, thresholds)
        return _log("alert registered")


def _parse_thresholds(args: Sequence[str]) -> Optional[Dict[str, Any]]:
    thresholds: Dict[str, Any] = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if not sep or not value:
            return None
        if key in ("min", "max"):
            number = _parse_float(value)
            if number is None:
                return None
            thresholds[key] = number
        elif key == "metric":
            thresholds[key] = value
        else:
            return None
    if "min" not in thresholds and "max" not in thresholds:
        return None
    return thresholds


def _dump(data: Any) -> str:
    return json.dumps(data, indent=4)
