"""
Checking layer test fixtures.

HTTP is mocked: the aiohttp session returns fake responses through an
async context manager.
"""
import asyncio

import pytest
from unittest.mock import MagicMock

from sitewatch.metrics import MetricStore


class FakeResponse:
    """Minimal aiohttp response."""

    def __init__(self, status: int = 200, delay: float = 0.0):
        self.status = status
        self._delay = delay

    async def read(self) -> bytes:
        if self._delay:
            await asyncio.sleep(self._delay)
        return b""


class FakeRequest:
    """Async context manager returned by session.get()."""

    def __init__(self, response: FakeResponse):
        self._response = response

    async def __aenter__(self) -> FakeResponse:
        return self._response

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


def make_session(*responses: FakeResponse) -> MagicMock:
    """Session whose get() returns the responses in order (last one repeats)."""
    session = MagicMock()
    queue = list(responses) or [FakeResponse()]

    def get(url, **kwargs):
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        return FakeRequest(response)

    session.get = MagicMock(side_effect=get)
    return session


@pytest.fixture
def url():
    return "https://example.com"


@pytest.fixture
def store():
    return MetricStore()


@pytest.fixture
def ok_session():
    """Session answering 200 immediately."""
    return make_session(FakeResponse(200))


@pytest.fixture
def fake_response():
    """FakeResponse class, called as fake_response(status, delay=...)."""
    return FakeResponse


@pytest.fixture
def session_factory():
    """make_session: builds a session answering the given responses."""
    return make_session
