"""
Monitoring Layer - Health checks and the web dashboard.

This module provides:
    - HealthChecker: Component health checks with timeouts
    - HealthStatus: Health status enum (HEALTHY, DEGRADED, UNHEALTHY, WARNING)
    - ComponentHealth: Health check result for a single component
    - AggregateHealth: Overall health aggregation
    - Dashboard / create_app: Flask dashboard factory

Health Checks:
    - Website checkers running
    - Aggregator timers running
    - Triggered alerts (degraded)
"""

from .health_checker import (
    AggregateHealth,
    ComponentHealth,
    HealthChecker,
    HealthStatus,
)
from .dashboard import Dashboard, create_app, require_api_key

__all__ = [
    # Health checking
    "HealthChecker",
    "HealthStatus",
    "ComponentHealth",
    "AggregateHealth",
    # Dashboard
    "Dashboard",
    "create_app",
    "require_api_key",
]
