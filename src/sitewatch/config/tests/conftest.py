"""
Configuration layer test fixtures.
"""
import pytest
from unittest.mock import MagicMock

from sitewatch.config import ConfigStore, ELEMENTS, OPERATIONS


@pytest.fixture
def url():
    return "https://example.com"


@pytest.fixture
def config():
    return ConfigStore()


@pytest.fixture
def listeners(config):
    """One MagicMock listener per (element, operation), registered on config."""
    mocks = {}
    for element in ELEMENTS:
        for operation in OPERATIONS:
            mock = MagicMock(name=f"{element}_{operation}")
            config.on(element, operation, mock)
            mocks[(element, operation)] = mock
    return mocks


@pytest.fixture
def website_config():
    """A complete website entry as stored in the JSON file."""
    return {
        "checkDelay": 1000,
        "metrics": {"availability": True, "response_time": False},
        "aggregators": {
            "2m": {
                "timeframe": 120000,
                "computeDelay": 10000,
                "display": True,
                "metrics": {"availability": ["AVG", "AVG_TIME"]},
            },
        },
        "alerts": {
            "availability_2m_AVG": {"min": 0.8},
        },
    }
