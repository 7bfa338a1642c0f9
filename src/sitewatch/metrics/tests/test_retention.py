"""
Tests for sample retention policies.
"""
import pytest

from sitewatch.metrics import KeepAll, MaxAge, MaxSamples, Sample


class TestRetentionPolicies:

    def test_keep_all_keeps_everything(self):
        samples = [Sample(i, i) for i in range(100)]

        KeepAll().apply(samples)

        assert len(samples) == 100

    def test_max_samples_drops_oldest_arrivals(self):
        samples = [Sample(5, "a"), Sample(1, "b"), Sample(3, "c")]

        MaxSamples(2).apply(samples)

        assert [s.value for s in samples] == ["b", "c"]

    def test_max_age_uses_newest_timestamp(self):
        """Samples older than newest - max_age go, arrival order is kept."""
        samples = [Sample(100, "a"), Sample(10, "old"), Sample(60, "b"), Sample(50, "c")]

        MaxAge(50).apply(samples)

        assert [s.value for s in samples] == ["a", "b", "c"]

    @pytest.mark.parametrize("policy", [MaxSamples, MaxAge])
    def test_invalid_limits_rejected(self, policy):
        with pytest.raises(ValueError):
            policy(0)
