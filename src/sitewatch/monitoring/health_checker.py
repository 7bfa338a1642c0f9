"""
Health Checker for component health monitoring.

Reports the state of website checkers, aggregator timers and alerts.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from sitewatch.aggregation import AggregationService
    from sitewatch.alerting import AlertService
    from sitewatch.checking import CheckService

logger = logging.getLogger(__name__)


class HealthStatus(Enum):
    """Health status levels."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    WARNING = "warning"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health check result for a single component."""

    component: str
    status: HealthStatus
    message: str


@dataclass
class AggregateHealth:
    """Overall system health."""

    status: HealthStatus
    components: List[ComponentHealth] = field(default_factory=list)
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class HealthChecker:
    """
    Checks health of the monitor's components.

    Monitors:
    - Website checkers are running
    - Aggregator timers are running
    - Alerts currently triggered

    Usage:
        checker = HealthChecker(check_service, aggregation_service, alert_service)
        overall = await checker.check_all()
    """

    def __init__(
        self,
        check_service: Optional["CheckService"] = None,
        aggregation_service: Optional["AggregationService"] = None,
        alert_service: Optional["AlertService"] = None,
    ) -> None:
        self._check_service = check_service
        self._aggregation_service = aggregation_service
        self._alert_service = alert_service

    async def check_checkers(self) -> ComponentHealth:
        """Every registered website must have a running checker."""
        if self._check_service is None:
            return ComponentHealth(
                component="checkers",
                status=HealthStatus.WARNING,
                message="No check service configured",
            )

        checkers = self._check_service.checkers
        stopped = [url for url, checker in checkers.items() if not checker.is_running]
        if stopped:
            return ComponentHealth(
                component="checkers",
                status=HealthStatus.UNHEALTHY,
                message=f"Checkers not running: {', '.join(stopped)}",
            )

        return ComponentHealth(
            component="checkers",
            status=HealthStatus.HEALTHY,
            message=f"{len(checkers)} websites checked",
        )

    async def check_aggregators(self) -> ComponentHealth:
        """Every registered aggregator must have a running timer."""
        if self._aggregation_service is None:
            return ComponentHealth(
                component="aggregators",
                status=HealthStatus.WARNING,
                message="No aggregation service configured",
            )

        aggregators = self._aggregation_service.aggregators
        stopped = [
            f"{url} {name}"
            for (url, name), scheduler in aggregators.items()
            if not scheduler.is_running
        ]
        if stopped:
            return ComponentHealth(
                component="aggregators",
                status=HealthStatus.UNHEALTHY,
                message=f"Aggregators not running: {', '.join(stopped)}",
            )

        return ComponentHealth(
            component="aggregators",
            status=HealthStatus.HEALTHY,
            message=f"{len(aggregators)} aggregators running",
        )

    async def check_alerts(self) -> ComponentHealth:
        """Degraded while any alert is triggered."""
        if self._alert_service is None:
            return ComponentHealth(
                component="alerts",
                status=HealthStatus.WARNING,
                message="No alert service configured",
            )

        triggered = [
            f"{url} {name}"
            for (url, name), monitor in self._alert_service.monitors.items()
            if monitor.triggered
        ]
        if triggered:
            return ComponentHealth(
                component="alerts",
                status=HealthStatus.DEGRADED,
                message=f"{len(triggered)} alerts triggered: {', '.join(triggered)}",
            )

        return ComponentHealth(
            component="alerts",
            status=HealthStatus.HEALTHY,
            message="No alert triggered",
        )

    async def check_all(self, timeout: float = 5.0) -> AggregateHealth:
        """
        Check all components with timeout.

        Args:
            timeout: Maximum time for all checks in seconds

        Returns:
            AggregateHealth with all component results
        """
        components = []

        checks = [
            ("checkers", self.check_checkers),
            ("aggregators", self.check_aggregators),
            ("alerts", self.check_alerts),
        ]

        for name, check_func in checks:
            try:
                result = await asyncio.wait_for(
                    check_func(),
                    timeout=timeout / len(checks),
                )
                components.append(result)
            except asyncio.TimeoutError:
                components.append(ComponentHealth(
                    component=name,
                    status=HealthStatus.UNHEALTHY,
                    message=f"{name} check timed out",
                ))
            except Exception as e:
                logger.error(f"{name} health check failed: {e}")
                components.append(ComponentHealth(
                    component=name,
                    status=HealthStatus.UNHEALTHY,
                    message=f"{name} check failed: {str(e)}",
                ))

        return AggregateHealth(
            status=self._calculate_overall_status(components),
            components=components,
        )

    def _calculate_overall_status(
        self,
        components: List[ComponentHealth],
    ) -> HealthStatus:
        """Calculate overall status from component statuses."""
        statuses = [c.status for c in components]

        # Any UNHEALTHY -> overall UNHEALTHY
        if HealthStatus.UNHEALTHY in statuses:
            return HealthStatus.UNHEALTHY

        # Any DEGRADED or WARNING -> overall DEGRADED
        if HealthStatus.DEGRADED in statuses or HealthStatus.WARNING in statuses:
            return HealthStatus.DEGRADED

        return HealthStatus.HEALTHY
