"""
Dashboard for web-based monitoring.

Provides a read-only Flask application exposing health, alerts, aggregator
results and raw metrics as JSON.

SECURITY:
- Optional API key authentication via SITEWATCH_DASHBOARD_API_KEY env var
- Bind to localhost by default
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import os
from datetime import datetime, timezone
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from flask import Flask, Response, abort, current_app, jsonify, request

from sitewatch.metrics import MetricStore

if TYPE_CHECKING:
    from sitewatch.aggregation import AggregationService
    from sitewatch.alerting import AlertService
    from .health_checker import HealthChecker

logger = logging.getLogger(__name__)

# API key from environment (optional)
DASHBOARD_API_KEY = os.environ.get("SITEWATCH_DASHBOARD_API_KEY")


def require_api_key(f: Callable) -> Callable:
    """
    Decorator to require API key authentication.

    If an API key is configured, requests must include either:
    - X-API-Key header
    - api_key query parameter

    If no API key is configured, authentication is disabled.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        api_key = current_app.config.get("API_KEY")
        if not api_key:
            return f(*args, **kwargs)

        # Check header first, then query param
        provided_key = request.headers.get("X-API-Key") or request.args.get("api_key")

        if not provided_key or provided_key != api_key:
            logger.warning(f"Unauthorized API access attempt from {request.remote_addr}")
            abort(401)

        return f(*args, **kwargs)

    return decorated


class Dashboard:
    """
    Dashboard web application.

    Endpoints:
        GET /health - Component health status
        GET /api/alerts - Alert log and alert states
        GET /api/aggregators - Aggregator snapshots
        GET /api/metrics - Latest value of every metric

    Usage:
        dashboard = Dashboard(store, health_checker=checker, event_loop=loop)
        app = dashboard.create_app()
    """

    def __init__(
        self,
        store: Optional[MetricStore] = None,
        health_checker: Optional["HealthChecker"] = None,
        aggregation_service: Optional["AggregationService"] = None,
        alert_service: Optional["AlertService"] = None,
        event_loop: Optional[asyncio.AbstractEventLoop] = None,
        api_key: Optional[str] = None,
        started_at: Optional[datetime] = None,
    ) -> None:
        """
        Initialize the dashboard.

        Args:
            store: Metric store
            health_checker: HealthChecker instance
            aggregation_service: Running aggregators
            alert_service: Alert log and monitors
            event_loop: Main asyncio event loop. Flask runs in a separate
                thread, so health checks are dispatched to this loop.
            api_key: Required API key (defaults to SITEWATCH_DASHBOARD_API_KEY)
        """
        self._store = store
        self._health_checker = health_checker
        self._aggregation_service = aggregation_service
        self._alert_service = alert_service
        self._event_loop = event_loop
        self._api_key = api_key if api_key is not None else DASHBOARD_API_KEY
        self._started_at = started_at or datetime.now(timezone.utc)

    def _run_async(self, coro, timeout: float = 10.0) -> Any:
        """
        Run an async coroutine from the Flask thread.

        Raises:
            RuntimeError: If event loop is not running (shutdown in progress)
            TimeoutError: If operation times out
        """
        if self._event_loop is None:
            # Without a main loop (tests), run on a private loop
            loop = asyncio.new_event_loop()
            try:
                return loop.run_until_complete(coro)
            finally:
                loop.close()

        if self._event_loop.is_closed() or not self._event_loop.is_running():
            coro.close()
            raise RuntimeError("Event loop is not running (shutdown in progress)")

        future = asyncio.run_coroutine_threadsafe(coro, self._event_loop)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            logger.error(f"Async operation timed out after {timeout}s")
            raise TimeoutError(f"Operation timed out after {timeout}s")

    def create_app(self, testing: bool = False) -> Flask:
        """
        Create the Flask application.

        Args:
            testing: Whether to enable testing mode

        Returns:
            Flask application instance
        """
        app = Flask(__name__)
        app.config["TESTING"] = testing
        app.config["API_KEY"] = self._api_key

        # Store reference for routes
        app.dashboard = self  # type: ignore

        self._register_routes(app)

        return app

    def _register_routes(self, app: Flask) -> None:
        """Register all HTTP routes."""

        @app.route("/health")
        @require_api_key
        def health() -> Response:
            """Get overall health."""
            dashboard: Dashboard = app.dashboard  # type: ignore

            if dashboard._health_checker:
                try:
                    health_result = dashboard._run_async(
                        dashboard._health_checker.check_all()
                    )

                    return jsonify({
                        "status": health_result.status.value,
                        "components": [
                            {
                                "component": c.component,
                                "status": c.status.value,
                                "message": c.message,
                            }
                            for c in health_result.components
                        ],
                        "checked_at": health_result.checked_at.isoformat(),
                        "started_at": dashboard._started_at.isoformat(),
                    })
                except Exception as e:
                    logger.error(f"Health check failed: {e}")
                    return jsonify({
                        "status": "error",
                        "error": str(e),
                    }), 500

            return jsonify({
                "status": "unknown",
                "message": "Health checker not configured",
            })

        @app.route("/api/alerts")
        @require_api_key
        def alerts() -> Response:
            """Get the alert log and the state of every alert."""
            dashboard: Dashboard = app.dashboard  # type: ignore

            if dashboard._alert_service is None:
                return jsonify({"log": [], "alerts": [], "error": "Alert service not configured"})

            service = dashboard._alert_service
            states = [
                {
                    "url": url,
                    "alert": name,
                    "metric": monitor.metric.name,
                    "min": monitor.thresholds.min,
                    "max": monitor.thresholds.max,
                    "triggered": monitor.triggered,
                }
                for (url, name), monitor in list(service.monitors.items())
            ]
            return jsonify({"log": service.alerts, "alerts": states})

        @app.route("/api/aggregators")
        @require_api_key
        def aggregators() -> Response:
            """Get the latest results of every aggregator."""
            dashboard: Dashboard = app.dashboard  # type: ignore

            if dashboard._aggregation_service is None:
                return jsonify({"aggregators": [], "error": "Aggregation service not configured"})

            result = []
            for (url, name), scheduler in list(dashboard._aggregation_service.aggregators.items()):
                latest: Dict[str, Any] = {}
                for derived_name, metric in scheduler.derived_metrics.items():
                    sample = metric.latest()
                    latest[derived_name] = sample.value if sample else None
                result.append({
                    "url": url,
                    "name": name,
                    "timeframe_ms": scheduler.timeframe_ms,
                    "period_ms": scheduler.period_ms,
                    "running": scheduler.is_running,
                    "tick_count": scheduler.tick_count,
                    "results": latest,
                    "snapshot": scheduler.snapshot(),
                })
            return jsonify({"aggregators": result})

        @app.route("/api/metrics")
        @require_api_key
        def metrics() -> Response:
            """Get sample counts and latest values per metric."""
            dashboard: Dashboard = app.dashboard  # type: ignore

            store = dashboard._store
            if store is None:
                return jsonify({"metrics": {}, "error": "Metric store not configured"})

            by_url: Dict[str, Dict[str, Any]] = {}
            for url in store.urls():
                entries: Dict[str, Any] = {}
                for name in store.names(url):
                    metric = store.find(url, name)
                    if metric is None:
                        continue
                    sample = metric.latest()
                    entries[name] = {
                        "count": len(metric),
                        "latest": (
                            {"timestamp": sample.timestamp, "value": sample.value}
                            if sample else None
                        ),
                    }
                by_url[url] = entries

            return jsonify({"metrics": by_url, "summary": store.render()})


def create_app(
    store: Optional[MetricStore] = None,
    health_checker: Optional["HealthChecker"] = None,
    aggregation_service: Optional["AggregationService"] = None,
    alert_service: Optional["AlertService"] = None,
    api_key: Optional[str] = None,
    testing: bool = False,
) -> Flask:
    """
    Factory function to create the dashboard app.

    Returns:
        Flask application
    """
    dashboard = Dashboard(
        store=store,
        health_checker=health_checker,
        aggregation_service=aggregation_service,
        alert_service=alert_service,
        api_key=api_key,
    )
    return dashboard.create_app(testing=testing)
