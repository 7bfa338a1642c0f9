"""
Alerting Layer - Threshold alerts on raw or derived metrics.

This module provides:
    - AlertMonitor: Normal/Triggered state machine subscribed to a metric
    - AlertTransition: A recorded trigger or recovery
    - ThresholdMode: SHARED (one flag for min and max) or PER_THRESHOLD
    - AlertService: Starts/stops monitors on config events, owns the alert log
"""

from .monitor import AlertMonitor, AlertTransition, ThresholdMode, TransitionKind
from .service import AlertService

__all__ = [
    "AlertMonitor",
    "AlertTransition",
    "ThresholdMode",
    "TransitionKind",
    "AlertService",
]
