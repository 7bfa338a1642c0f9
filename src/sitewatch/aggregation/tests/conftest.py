"""
Aggregation layer test fixtures.

Schedulers run against a real MetricStore; the display is mocked.
"""
import pytest
from unittest.mock import MagicMock

from sitewatch.config import ConfigStore
from sitewatch.metrics import MetricStore, Sample


@pytest.fixture
def url():
    return "https://example.com"


@pytest.fixture
def store(url):
    """Store with an `availability` metric holding (0,0), (1,2), (3,1)."""
    store = MetricStore()
    metric = store.get_or_create(url, "availability", owner="checker")
    for timestamp, value in [(0, 0), (1, 2), (3, 1)]:
        metric.push(Sample(timestamp, value))
    return store


@pytest.fixture
def mock_display():
    """Display collaborator."""
    display = MagicMock()
    display.log = MagicMock()
    return display


@pytest.fixture
def config(url):
    """ConfigStore with one registered website."""
    config = ConfigStore()
    config.set_website(url, {"checkDelay": 1000})
    return config
