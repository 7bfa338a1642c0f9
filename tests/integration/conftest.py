"""
Integration test fixtures.

These fixtures wire the real services together around one ConfigStore and
one MetricStore. Only HTTP is scripted; timers use long periods and the
tests drive checks and ticks explicitly.
"""

from dataclasses import dataclass

import pytest
import pytest_asyncio

from sitewatch.aggregation import AggregationService
from sitewatch.alerting import AlertService
from sitewatch.checking import CheckService
from sitewatch.config import ConfigStore
from sitewatch.control import CommandHandler
from sitewatch.metrics import MetricStore

# Mark all tests in this directory as integration tests
pytestmark = pytest.mark.integration

# Long enough that no timer fires during a test
IDLE_MS = 3_600_000


@dataclass
class Pipeline:
    config: ConfigStore
    store: MetricStore
    checks: CheckService
    aggregation: AggregationService
    alerts: AlertService
    commands: CommandHandler


@pytest.fixture
def website_settings():
    """Website with availability averaged over 2 minutes and an alert on it."""
    return {
        "checkDelay": IDLE_MS,
        "metrics": {"availability": True, "response_code": True},
        "aggregators": {
            "2m": {
                "timeframe": 120_000,
                "computeDelay": IDLE_MS,
                "metrics": {"availability": ["AVG"], "response_code": ["COUNT"]},
            },
            "10m": {
                "timeframe": 600_000,
                "computeDelay": IDLE_MS,
                "metrics": {"availability_2m_AVG": ["MIN"]},
            },
        },
        "alerts": {"availability_2m_AVG": {"min": 0.8}},
    }


@pytest_asyncio.fixture
async def pipeline(http_session):
    """
    Running services subscribed to a shared configuration.

    Torn down in the same order as the main service.
    """
    config = ConfigStore()
    store = MetricStore()

    checks = CheckService(config, store, session=http_session)
    aggregation = AggregationService(config, store)
    alerts = AlertService(config, store)
    checks.run()
    aggregation.run()
    alerts.run()

    yield Pipeline(
        config=config,
        store=store,
        checks=checks,
        aggregation=aggregation,
        alerts=alerts,
        commands=CommandHandler(config, store),
    )

    await checks.close()
    await aggregation.close()
    alerts.dispose_all()
