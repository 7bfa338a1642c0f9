"""
Alerting layer test fixtures.
"""
import pytest
from unittest.mock import MagicMock

from sitewatch.config import ConfigStore
from sitewatch.metrics import Metric, MetricStore


@pytest.fixture
def url():
    return "https://example.com"


@pytest.fixture
def metric():
    """Watched metric."""
    return Metric("availability_2m_AVG")


@pytest.fixture
def store(url):
    store = MetricStore()
    store.get_or_create(url, "availability", owner="checker")
    store.get_or_create(url, "availability_2m_AVG", owner=("aggregator", url, "2m"))
    return store


@pytest.fixture
def config(url):
    config = ConfigStore()
    config.set_website(url, {"checkDelay": 1000})
    return config


@pytest.fixture
def mock_display():
    display = MagicMock()
    display.alert = MagicMock()
    return display
