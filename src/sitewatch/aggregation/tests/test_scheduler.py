"""
Tests for AggregationScheduler.

A tick aggregates every (metric, type) pair and pushes the results into
derived metrics named "{metric}_{aggregator}_{TYPE}".
"""
import asyncio
import logging

import pytest

from sitewatch.aggregation import AggregationScheduler
from sitewatch.metrics import (
    MetricOwnershipError,
    Sample,
    UnsupportedAggregationError,
    now_ms,
)


def make_scheduler(store, url, metrics=None, name="2m", **kwargs):
    return AggregationScheduler(
        url=url,
        name=name,
        timeframe_ms=kwargs.pop("timeframe_ms", 4),
        period_ms=kwargs.pop("period_ms", 1000),
        metrics=metrics or {"availability": ["AVG"]},
        store=store,
        **kwargs,
    )


class TestConstruction:
    """Derived metrics exist as soon as the scheduler is built."""

    def test_derived_metrics_created_eagerly(self, store, url):
        scheduler = make_scheduler(store, url, {"availability": ["AVG", "MAX"]})

        assert store.has(url, "availability_2m_AVG")
        assert store.has(url, "availability_2m_MAX")
        assert set(scheduler.derived_metrics) == {"availability_2m_AVG", "availability_2m_MAX"}
        assert not scheduler.is_running

    def test_duplicate_types_collapse(self, store, url):
        scheduler = make_scheduler(store, url, {"availability": ["AVG", "AVG"]})

        assert len(scheduler.pairs) == 1

    def test_unknown_type_rejected(self, store, url):
        with pytest.raises(UnsupportedAggregationError):
            make_scheduler(store, url, {"availability": ["MEDIAN"]})

    def test_non_positive_durations_rejected(self, store, url):
        with pytest.raises(ValueError):
            make_scheduler(store, url, timeframe_ms=0)
        with pytest.raises(ValueError):
            make_scheduler(store, url, period_ms=-1)

    def test_derived_name_collision_rejected(self, store, url):
        """Another aggregator cannot produce an existing derived metric."""
        store.get_or_create(url, "response_time")
        store.get_or_create(url, "response")
        # "response" + "time_2m" collides with "response_time" + "2m"
        make_scheduler(store, url, {"response_time": ["AVG"]}, name="2m")

        with pytest.raises(MetricOwnershipError):
            make_scheduler(store, url, {"response": ["AVG"]}, name="time_2m")


class TestTick:
    """Tests for a single aggregation round."""

    def test_tick_pushes_results(self, store, url):
        scheduler = make_scheduler(store, url, {"availability": ["SUM", "AVG_TIME", "COUNT"]})

        pushed = scheduler.tick(now=3)

        assert pushed == 3
        assert store.get(url, "availability_2m_SUM").latest() == Sample(3, 3)
        assert store.get(url, "availability_2m_AVG_TIME").latest().value == pytest.approx(4 / 3)
        assert store.get(url, "availability_2m_COUNT").latest().value == {"0": 1, "1": 1, "2": 1}
        assert scheduler.tick_count == 1

    def test_tick_uses_clock(self, store, url):
        scheduler = make_scheduler(store, url, {"availability": ["SUM"]}, clock=lambda: 3)

        scheduler.tick()

        assert store.get(url, "availability_2m_SUM").latest().timestamp == 3

    def test_empty_window_skips_push(self, store, url, caplog):
        """Undefined results are skipped with a warning, SUM still pushes 0."""
        scheduler = make_scheduler(store, url, {"availability": ["MAX", "SUM"]})

        with caplog.at_level(logging.WARNING):
            pushed = scheduler.tick(now=1000)

        assert pushed == 1
        assert len(store.get(url, "availability_2m_MAX")) == 0
        assert store.get(url, "availability_2m_SUM").latest().value == 0
        assert "MAX" in caplog.text

    def test_missing_source_does_not_stop_other_pairs(self, store, url, caplog):
        scheduler = make_scheduler(store, url, {"gone": ["SUM"], "availability": ["SUM"]})

        with caplog.at_level(logging.WARNING):
            pushed = scheduler.tick(now=3)

        assert pushed == 1
        assert "gone" in caplog.text

    def test_failing_pair_isolated(self, store, url):
        """A mixed-value window fails only its own pair."""
        mixed = store.get_or_create(url, "mixed")
        mixed.push(Sample(1, 1))
        mixed.push(Sample(2, {"a": 1}))
        scheduler = make_scheduler(store, url, {"mixed": ["SUM"], "availability": ["MIN"]})

        pushed = scheduler.tick(now=3)

        assert pushed == 1
        assert store.get(url, "availability_2m_MIN").latest().value == 0

    def test_tick_displays_snapshot(self, store, url, mock_display):
        scheduler = make_scheduler(
            store, url, {"availability": ["AVG"]}, display=True, display_sink=mock_display,
        )

        scheduler.tick(now=3)

        mock_display.log.assert_called_once_with(scheduler.snapshot())

    def test_display_off(self, store, url, mock_display):
        scheduler = make_scheduler(store, url, display=False, display_sink=mock_display)

        scheduler.tick(now=3)

        mock_display.log.assert_not_called()

    def test_chained_aggregators(self, store, url):
        """A derived metric can be aggregated again."""
        first = make_scheduler(store, url, {"availability": ["AVG"]})
        second = make_scheduler(store, url, {"availability_2m_AVG": ["MAX"]}, name="5m", timeframe_ms=100)

        first.tick(now=3)
        second.tick(now=3)

        derived = store.get(url, "availability_2m_AVG_5m_MAX")
        assert derived.latest() == Sample(3, 1.0)


class TestSnapshot:

    def test_snapshot_before_first_tick(self, store, url):
        scheduler = make_scheduler(store, url, {"availability": ["AVG"]})

        assert scheduler.snapshot() == (
            f"--- Results for '{url}' in the last 2m\n"
            " - availability : AVG=n/a\n"
        )

    def test_snapshot_after_tick(self, store, url):
        scheduler = make_scheduler(store, url, {"availability": ["AVG", "COUNT"]})
        scheduler.tick(now=3)

        assert scheduler.snapshot() == (
            f"--- Results for '{url}' in the last 2m\n"
            " - availability : AVG=1.0 COUNT=0:1,2:1,1:1\n"
        )


class TestLifecycle:
    """Tests for start/stop of the timer."""

    def test_start_requires_running_loop(self, store, url):
        scheduler = make_scheduler(store, url)

        with pytest.raises(RuntimeError):
            scheduler.start()

        assert not scheduler.is_running

    def test_stop_before_start_and_twice(self, store, url):
        scheduler = make_scheduler(store, url)

        scheduler.stop()
        scheduler.stop()

        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_timer_ticks_periodically(self, store, url):
        scheduler = make_scheduler(store, url, {"availability": ["SUM"]}, period_ms=20, timeframe_ms=60_000)
        store.push(url, "availability", now_ms(), 1)

        scheduler.start()
        assert scheduler.is_running
        await asyncio.sleep(0.15)
        scheduler.stop()

        assert scheduler.tick_count >= 2
        assert len(store.get(url, "availability_2m_SUM")) == scheduler.tick_count

    @pytest.mark.asyncio
    async def test_no_push_after_stop(self, store, url):
        scheduler = make_scheduler(store, url, {"availability": ["SUM"]}, period_ms=10)
        scheduler.start()
        await asyncio.sleep(0.05)

        scheduler.stop()
        scheduler.stop()
        count = len(store.get(url, "availability_2m_SUM"))
        await asyncio.sleep(0.05)

        assert len(store.get(url, "availability_2m_SUM")) == count
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, store, url, caplog):
        scheduler = make_scheduler(store, url)

        scheduler.start()
        with caplog.at_level(logging.WARNING):
            scheduler.start()
        await scheduler.close()

        assert "already running" in caplog.text

    @pytest.mark.asyncio
    async def test_failing_tick_keeps_timer_running(self, store, url, mock_display):
        """An exception escaping a tick is logged and the loop continues."""
        mock_display.log.side_effect = RuntimeError("display broken")
        scheduler = make_scheduler(
            store, url, period_ms=10, display=True, display_sink=mock_display,
        )

        scheduler.start()
        await asyncio.sleep(0.08)
        await scheduler.close()

        assert mock_display.log.call_count >= 2
