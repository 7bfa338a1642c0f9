"""
Checking Layer - HTTP availability checks producing raw metrics.

This module provides:
    - Checker: Periodic GET requests for one website
    - CheckService: Starts/stops checkers on website and metric events
    - CheckResult: Outcome of one request
    - METRIC_NAMES: availability, response_time, response_code
"""

from .checker import (
    CHECKER_OWNER,
    METRIC_NAMES,
    CheckResult,
    CheckService,
    Checker,
    status_to_availability,
)

__all__ = [
    "Checker",
    "CheckService",
    "CheckResult",
    "METRIC_NAMES",
    "CHECKER_OWNER",
    "status_to_availability",
]
