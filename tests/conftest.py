"""
Shared test fixtures for integration tests.

This file provides fixtures that span multiple components,
unlike component-specific fixtures in src/sitewatch/{component}/tests/conftest.py
"""

import pytest
from unittest.mock import MagicMock


class ScriptedResponse:
    """aiohttp response stand-in with a fixed status."""

    def __init__(self, status: int):
        self.status = status

    async def read(self) -> bytes:
        return b""

    async def __aenter__(self) -> "ScriptedResponse":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class ScriptedSession:
    """
    aiohttp session stand-in answering queued status codes.

    An int in the queue becomes a response, an exception is raised by get().
    The last entry repeats once the queue is down to one.
    """

    def __init__(self, *answers):
        self.answers = list(answers) or [200]
        self.get = MagicMock(side_effect=self._get)

    def queue(self, *answers) -> None:
        self.answers = list(answers)

    def _get(self, url, **kwargs):
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return ScriptedResponse(answer)

    async def close(self) -> None:
        pass


# =============================================================================
# HTTP Fixtures
# =============================================================================

@pytest.fixture
def url():
    return "https://example.com"


@pytest.fixture
def http_session():
    """Session answering 200 until told otherwise via queue()."""
    return ScriptedSession(200)


@pytest.fixture
def clock(monkeypatch):
    """
    Controls the timestamp given to check samples.

    Set clock["now"] before each check.
    """
    state = {"now": 0}
    monkeypatch.setattr("sitewatch.checking.checker.now_ms", lambda: state["now"])
    return state
