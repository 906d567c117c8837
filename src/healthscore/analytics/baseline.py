"""Personal baselines: rolling mean / std per metric.

Scores are judged against *your* recent history rather than population
norms once there is enough of it (14 points by default).  Until then a
conservative static prior stands in, and the scoring engines only apply
their baseline adjustments to personal baselines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence

import numpy as np

from healthscore.config import (
    BASELINE_MIN_POINTS,
    BASELINE_TTL,
    BASELINE_WINDOW,
    STD_FLOOR_RATIO,
)
from healthscore.samples import MetricType, QuantityPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BaselineStats:
    """Mean and spread of a metric over its trailing window."""

    mean: float
    std_dev: float
    count: int  # points the stats were computed from; 0 for static priors
    floor_ratio: float = STD_FLOOR_RATIO
    min_points: int = BASELINE_MIN_POINTS

    @property
    def effective_std_dev(self) -> float:
        """Standard deviation floored at a fraction of the mean."""
        return max(self.std_dev, self.floor_ratio * abs(self.mean))

    @property
    def is_personal(self) -> bool:
        return self.count >= self.min_points

    def z_score(self, value: float) -> float:
        std = self.effective_std_dev
        if std == 0:
            return 0.0
        return (value - self.mean) / std

    def normalized_score(self, value: float, scale: float = 3.0) -> float:
        """Map *value* onto 0-100 by its distance from the mean.

        ``mean - scale*std`` maps to 0, the mean to 50 and
        ``mean + scale*std`` to 100; values beyond saturate.
        """
        std = self.effective_std_dev
        if std == 0:
            if value < self.mean:
                return 0.0
            if value > self.mean:
                return 100.0
            return 50.0
        raw = ((value - self.mean) / std + scale) / (2.0 * scale) * 100.0
        return max(0.0, min(100.0, raw))

    def __repr__(self) -> str:
        kind = "personal" if self.is_personal else "prior"
        return (
            f"BaselineStats(mean={self.mean:.1f}, "
            f"std={self.std_dev:.1f}, n={self.count}, {kind})"
        )


# Population-level fallbacks used until personal history accumulates
STATIC_PRIORS = {
    MetricType.STEPS: BaselineStats(mean=8000.0, std_dev=2000.0, count=0),
    MetricType.ACTIVE_ENERGY: BaselineStats(mean=500.0, std_dev=150.0, count=0),
    MetricType.HRV: BaselineStats(mean=45.0, std_dev=12.0, count=0),
    MetricType.RESTING_HR: BaselineStats(mean=60.0, std_dev=6.0, count=0),
}


def compute_baseline(
    series: Sequence[QuantityPoint],
    *,
    min_points: int = BASELINE_MIN_POINTS,
    window: int = BASELINE_WINDOW,
    floor_ratio: float = STD_FLOOR_RATIO,
) -> BaselineStats | None:
    """Compute baseline statistics over the newest *window* points.

    Args:
        series: ``(timestamp, value)`` points in any order.
        min_points: Fewer points than this yields None.
        window: Number of most recent points used.
        floor_ratio: Std floor as a fraction of ``|mean|``.

    Returns:
        BaselineStats (population std), or None with insufficient history.
    """
    if len(series) < min_points:
        return None

    ordered = sorted(series, key=lambda p: p[0])
    values = np.asarray([v for _, v in ordered[-window:]], dtype=np.float64)

    return BaselineStats(
        mean=float(np.mean(values)),
        std_dev=float(np.std(values)),
        count=len(values),
        floor_ratio=floor_ratio,
        min_points=min_points,
    )


def trailing_average(
    series: Sequence[QuantityPoint],
    days: int = 7,
    *,
    now: datetime | None = None,
) -> float | None:
    """Mean of the points in the last *days* days, or None if there are none.

    The window ends at *now*, or at the newest point when *now* is omitted.
    """
    if not series:
        return None
    end = now if now is not None else max(ts for ts, _ in series)
    start = end - timedelta(days=days)
    values = [v for ts, v in series if start <= ts <= end]
    if not values:
        return None
    return round(float(np.mean(values)), 2)


@dataclass
class _CacheEntry:
    stats: BaselineStats
    computed_at: datetime
    series_len: int
    series_last: datetime | None


class BaselineCache:
    """Per-metric baseline store with a time-to-live.

    A personal baseline is held for ``ttl`` once computed, so scores stay
    stable through the day even as new points arrive.  A static prior is
    replaced as soon as the underlying series changes.
    """

    def __init__(
        self,
        ttl: timedelta = BASELINE_TTL,
        *,
        min_points: int = BASELINE_MIN_POINTS,
        window: int = BASELINE_WINDOW,
        floor_ratio: float = STD_FLOOR_RATIO,
        priors: dict[MetricType, BaselineStats] | None = None,
    ) -> None:
        self.ttl = ttl
        self.min_points = min_points
        self.window = window
        self.floor_ratio = floor_ratio
        self.priors = dict(STATIC_PRIORS if priors is None else priors)
        self._entries: dict[MetricType, _CacheEntry] = {}

    def update(
        self,
        metric: MetricType,
        series: Sequence[QuantityPoint],
        now: datetime,
    ) -> BaselineStats | None:
        """Refresh the baseline for *metric* if it is due, and return it."""
        metric = MetricType(metric)
        entry = self._entries.get(metric)
        last = max((ts for ts, _ in series), default=None)

        if entry is not None:
            expired = now - entry.computed_at >= self.ttl
            changed = entry.series_len != len(series) or entry.series_last != last
            if not expired and (entry.stats.is_personal or not changed):
                return entry.stats

        stats = compute_baseline(
            series,
            min_points=self.min_points,
            window=self.window,
            floor_ratio=self.floor_ratio,
        )
        if stats is None:
            stats = self.priors.get(metric)
            if stats is None:
                logger.debug("No history or prior for %s", metric.value)
                self._entries.pop(metric, None)
                return None
            logger.debug("Using static prior for %s (%d points)", metric.value, len(series))
        else:
            logger.debug("Personal baseline for %s: %r", metric.value, stats)

        self._entries[metric] = _CacheEntry(stats, now, len(series), last)
        return stats

    def get(self, metric: MetricType) -> BaselineStats | None:
        """Cached baseline (personal or prior) without recomputing."""
        entry = self._entries.get(MetricType(metric))
        return entry.stats if entry is not None else None

    def personal(self, metric: MetricType) -> BaselineStats | None:
        """Cached baseline only if it was computed from personal history."""
        stats = self.get(metric)
        if stats is not None and stats.is_personal:
            return stats
        return None

    def invalidate(self, metric: MetricType | None = None) -> None:
        if metric is None:
            self._entries.clear()
        else:
            self._entries.pop(MetricType(metric), None)
