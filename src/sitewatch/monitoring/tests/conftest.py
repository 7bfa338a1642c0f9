"""
Monitoring layer test fixtures.

Tests health checks and dashboard endpoints against mocked services.
"""
import pytest
from unittest.mock import MagicMock

from sitewatch.alerting import AlertMonitor
from sitewatch.metrics import MetricStore, Sample
from sitewatch.monitoring.dashboard import create_app
from sitewatch.monitoring.health_checker import HealthChecker


URL = "https://example.com"


# =============================================================================
# Mock Service Fixtures
# =============================================================================


@pytest.fixture
def mock_check_service():
    """Check service with one running checker."""
    service = MagicMock()
    service.checkers = {URL: MagicMock(is_running=True)}
    return service


@pytest.fixture
def mock_aggregation_service():
    """Aggregation service with one running scheduler."""
    service = MagicMock()
    service.aggregators = {(URL, "2m"): MagicMock(is_running=True)}
    return service


@pytest.fixture
def mock_alert_service():
    """Alert service with one alert in normal state."""
    service = MagicMock()
    service.monitors = {(URL, "availability_2m_AVG"): MagicMock(triggered=False)}
    service.alerts = []
    return service


@pytest.fixture
def health_checker(mock_check_service, mock_aggregation_service, mock_alert_service):
    return HealthChecker(
        check_service=mock_check_service,
        aggregation_service=mock_aggregation_service,
        alert_service=mock_alert_service,
    )


# =============================================================================
# Dashboard Fixtures
# =============================================================================


@pytest.fixture
def store():
    """Store with raw and derived samples."""
    store = MetricStore()
    store.get_or_create(URL, "availability", owner="checker")
    store.push(URL, "availability", 1000, 1)
    store.push(URL, "availability", 2000, 0)
    store.get_or_create(URL, "availability_2m_AVG", owner=("aggregator", URL, "2m"))
    return store


@pytest.fixture
def alert_service(store):
    """Alert service stand-in holding one real monitor."""
    monitor = AlertMonitor(
        store.get(URL, "availability_2m_AVG"),
        {"min": 0.8},
        url=URL,
        name="availability_2m_AVG",
    )
    store.get(URL, "availability_2m_AVG").push(Sample(3000, 0.5))

    service = MagicMock()
    service.monitors = {(URL, "availability_2m_AVG"): monitor}
    service.alerts = list(monitor.log)
    return service


@pytest.fixture
def app(store, health_checker, alert_service):
    """Flask app without API key."""
    return create_app(
        store=store,
        health_checker=health_checker,
        alert_service=alert_service,
        api_key="",
        testing=True,
    )


@pytest.fixture
def client(app):
    return app.test_client()
