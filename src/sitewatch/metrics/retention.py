"""
Retention policies for metric samples.

Metrics keep every sample by default (KeepAll): samples are never evicted,
so memory grows with uptime. A policy can be attached per metric to bound
that growth. Policies run right after each append.
"""

from __future__ import annotations

from typing import List, Protocol

from .models import Sample


class RetentionPolicy(Protocol):
    """Trims a metric's sample list in place."""

    def apply(self, samples: List[Sample]) -> None:
        ...


class KeepAll:
    """Keep every sample."""

    def apply(self, samples: List[Sample]) -> None:
        return None

    def __repr__(self) -> str:
        return "KeepAll()"


class MaxSamples:
    """Keep only the most recently pushed samples (by arrival)."""

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        self.limit = limit

    def apply(self, samples: List[Sample]) -> None:
        overflow = len(samples) - self.limit
        if overflow > 0:
            del samples[:overflow]

    def __repr__(self) -> str:
        return f"MaxSamples(limit={self.limit})"


class MaxAge:
    """
    Drop samples older than the newest timestamp minus max_age_ms.

    Arrival order of the retained samples is preserved.
    """

    def __init__(self, max_age_ms: int) -> None:
        if max_age_ms <= 0:
            raise ValueError(f"max_age_ms must be positive, got {max_age_ms}")
        self.max_age_ms = max_age_ms

    def apply(self, samples: List[Sample]) -> None:
        if not samples:
            return
        cutoff = max(s.timestamp for s in samples) - self.max_age_ms
        if any(s.timestamp < cutoff for s in samples):
            samples[:] = [s for s in samples if s.timestamp >= cutoff]

    def __repr__(self) -> str:
        return f"MaxAge(max_age_ms={self.max_age_ms})"
