"""
Metrics layer test fixtures.

Metrics are pure in-memory structures, so no mocking is needed.
"""
import pytest

from sitewatch.metrics import Metric, MetricStore, Sample


# =============================================================================
# Sample Fixtures
# =============================================================================


@pytest.fixture
def scalar_samples():
    """Three samples at t=0, 1, 3 with values 0, 2, 1."""
    return [
        Sample(timestamp=0, value=0),
        Sample(timestamp=1, value=2),
        Sample(timestamp=3, value=1),
    ]


@pytest.fixture
def keyed_samples():
    """Same timestamps with keyed values a:{0,2,1} and b:{1,2,3}."""
    return [
        Sample(timestamp=0, value={"a": 0, "b": 1}),
        Sample(timestamp=1, value={"a": 2, "b": 2}),
        Sample(timestamp=3, value={"a": 1, "b": 3}),
    ]


# =============================================================================
# Metric Fixtures
# =============================================================================


@pytest.fixture
def metric():
    """Empty metric."""
    return Metric("availability")


@pytest.fixture
def filled_metric(scalar_samples):
    """Metric holding the scalar samples."""
    metric = Metric("availability")
    for sample in scalar_samples:
        metric.push(sample)
    return metric


@pytest.fixture
def store():
    """Empty metric store."""
    return MetricStore()
