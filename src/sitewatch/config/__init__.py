"""
Configuration Layer - Event based, persistable monitor configuration.

This module provides:
    - ConfigStore: Websites, metrics, aggregators and alerts with set/del events
    - WebsiteSettings / AggregatorSettings / AlertThresholds: pydantic models
    - Lifecycle events passed to listeners
    - ConfigurationError: Raised when a setting is invalid or rejected
"""

from .events import (
    AggregatorEvent,
    AggregatorRemoved,
    AlertEvent,
    AlertRemoved,
    MetricEvent,
    WebsiteEvent,
)
from .models import AggregatorSettings, AlertThresholds, ConfigurationError, WebsiteSettings
from .store import ELEMENTS, OPERATIONS, ConfigStore

__all__ = [
    "ConfigStore",
    "ELEMENTS",
    "OPERATIONS",
    # Models
    "WebsiteSettings",
    "AggregatorSettings",
    "AlertThresholds",
    "ConfigurationError",
    # Events
    "WebsiteEvent",
    "MetricEvent",
    "AggregatorEvent",
    "AggregatorRemoved",
    "AlertEvent",
    "AlertRemoved",
]
