"""
HTTP availability checks for the configured websites.

Each Checker sends a GET request every check delay and pushes the raw
measurements into the MetricStore:
    - availability: 1 if the status code is below 400, else 0 (0 on errors)
    - response_time: request duration in milliseconds
    - response_code: HTTP status code

Ordering note:
    Requests are not serialized. With
        req1 ---------------- res1
             req2 -------- res2
    res2 is pushed before res1, so a metric can receive a sample older than
    its last one. Samples are timestamped with the request start time.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional, Set

import aiohttp

from sitewatch.config import (
    ConfigStore,
    ConfigurationError,
    MetricEvent,
    WebsiteEvent,
)
from sitewatch.metrics import MetricStore, now_ms

logger = logging.getLogger(__name__)

METRIC_NAMES = ("availability", "response_time", "response_code")
CHECKER_OWNER = "checker"


def status_to_availability(status: int) -> int:
    """A response is available when its status code is below 400."""
    return int(status < 400)


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one HTTP check."""

    url: str
    started_at: int  # epoch ms
    status: Optional[int] = None
    elapsed_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def availability(self) -> int:
        if self.status is None:
            return 0
        return status_to_availability(self.status)


class Checker:
    """
    Periodically checks one website.

    Usage:
        checker = Checker(url, check_delay_ms=1000, store=store, session=session)
        checker.set_metric("availability", True)
        checker.start()
        ...
        await checker.close()
    """

    def __init__(
        self,
        url: str,
        check_delay_ms: int,
        store: MetricStore,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
    ) -> None:
        """
        Initialize the checker.

        Args:
            url: Website URL
            check_delay_ms: Delay between two requests
            store: Metric store receiving the samples
            session: Shared aiohttp session (created if not provided)
            timeout: Request timeout in seconds
        """
        if check_delay_ms <= 0:
            raise ValueError(f"check_delay_ms must be positive, got {check_delay_ms}")

        self.url = url
        self.check_delay_ms = check_delay_ms
        self.enabled: Dict[str, bool] = {}
        self._store = store
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._running

    def set_metric(self, metric_name: str, enabled: bool) -> None:
        """
        Enable or disable pushing one metric.

        Raises:
            ConfigurationError: If the metric is not produced by checks
        """
        if metric_name not in METRIC_NAMES:
            raise ConfigurationError(
                f"expected metric name among `{'`, `'.join(METRIC_NAMES)}`, got `{metric_name}`"
            )
        if enabled:
            self._store.get_or_create(self.url, metric_name, owner=CHECKER_OWNER)
        self.enabled[metric_name] = enabled

    def record(self, metric_name: str, timestamp: int, value: float) -> None:
        """Push a measurement if its metric is enabled."""
        if self.enabled.get(metric_name):
            self._store.push(self.url, metric_name, timestamp, value)

    def record_result(self, result: CheckResult) -> None:
        self.record("availability", result.started_at, result.availability)
        if result.status is not None:
            self.record("response_time", result.started_at, result.elapsed_ms)
            self.record("response_code", result.started_at, result.status)

    async def check_once(self) -> CheckResult:
        """Send one request and record its measurements."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        started_at = now_ms()
        started = time.monotonic()

        try:
            async with self._session.get(self.url, timeout=self._timeout) as response:
                await response.read()
                result = CheckResult(
                    url=self.url,
                    started_at=started_at,
                    status=response.status,
                    elapsed_ms=(time.monotonic() - started) * 1000,
                )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Any failure, including a malformed URL, counts as unavailable
            logger.debug(f"Check failed for {self.url}: {e}")
            result = CheckResult(url=self.url, started_at=started_at, error=str(e) or type(e).__name__)

        self.record_result(result)
        return result

    def start(self) -> None:
        """Start checking. Requires a running event loop."""
        if self._running:
            logger.warning(f"Checker for {self.url} already running")
            return

        self._running = True
        self._task = asyncio.get_running_loop().create_task(
            self._run_loop(),
            name=f"checker_{self.url}",
        )
        logger.info(f"Started checker for {self.url} (every {self.check_delay_ms}ms)")

    async def _run_loop(self) -> None:
        interval = self.check_delay_ms / 1000

        while self._running:
            try:
                await asyncio.sleep(interval)
                if not self._running:
                    break

                # Independent task per request so responses can overlap
                task = asyncio.create_task(self._safe_check())
                self._inflight.add(task)
                task.add_done_callback(self._inflight.discard)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in checker for {self.url}: {e}")

    async def _safe_check(self) -> None:
        try:
            await self.check_once()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Recording check of {self.url} failed: {e}")

    def stop(self) -> None:
        """Stop checking and cancel requests in flight. Idempotent."""
        was_running = self._running
        self._running = False

        if self._task is not None and not self._task.done():
            self._task.cancel()
        for task in list(self._inflight):
            task.cancel()

        if was_running:
            logger.info(f"Stopped checker for {self.url}")

    async def close(self) -> None:
        """Stop and wait for tasks; close the session if owned."""
        self.stop()
        pending = [t for t in [self._task, *self._inflight] if t is not None]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._task = None
        self._inflight.clear()

        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None


class CheckService:
    """
    Binds website and metric lifecycle events to Checkers.

    One aiohttp session is shared by every checker.
    """

    def __init__(
        self,
        config: ConfigStore,
        store: MetricStore,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.checkers: Dict[str, Checker] = {}
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    def run(self) -> None:
        """Subscribe to website and metric events."""
        self.config.on("website", "set", self.on_website_set)
        self.config.on("website", "del", self.on_website_del)
        self.config.on("metric", "set", self.on_metric_set)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._session

    def on_website_set(self, event: WebsiteEvent) -> None:
        """Start (or restart) checking a website."""
        checker = Checker(
            event.url,
            event.check_delay,
            self.store,
            session=self._get_session(),
            timeout=self._timeout,
        )
        checker.start()

        previous = self.checkers.pop(event.url, None)
        if previous is not None:
            previous.stop()
        self.checkers[event.url] = checker

    def on_website_del(self, event: WebsiteEvent) -> None:
        checker = self.checkers.pop(event.url, None)
        if checker is not None:
            checker.stop()

    def on_metric_set(self, event: MetricEvent) -> None:
        """
        Enable or disable a raw metric.

        Raises:
            ConfigurationError: If the website is not checked or the metric
                name is unknown
        """
        checker = self.checkers.get(event.url)
        if checker is None:
            raise ConfigurationError(f"website `{event.url}` is not being checked")
        checker.set_metric(event.metric_name, event.enabled)

    async def close(self) -> None:
        """Stop every checker and close the shared session."""
        for checker in list(self.checkers.values()):
            await checker.close()
        self.checkers.clear()

        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
