"""
Control layer test fixtures.
"""
import pytest

from sitewatch.config import ConfigStore
from sitewatch.control import CommandHandler
from sitewatch.metrics import MetricStore


@pytest.fixture
def url():
    return "https://example.com"


@pytest.fixture
def config():
    return ConfigStore()


@pytest.fixture
def store():
    return MetricStore()


@pytest.fixture
def handler(config, store):
    return CommandHandler(config, store)


@pytest.fixture
def registered(handler, store, url):
    """Handler with one website and an `availability` metric."""
    handler.handle(f"set website {url} 1000")
    store.get_or_create(url, "availability", owner="checker")
    return handler
