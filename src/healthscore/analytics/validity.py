"""Metric validity: is the newest observation of a metric usable right now?

Every metric is in one of three states:

  * Valid   -- observed within its recency threshold
  * Stale   -- observed, but too long ago
  * Missing -- never observed

Classification is a pure function of the last observation, the metric's
threshold and "now"; the tracker holds no timers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import ClassVar, Iterable, Union

from healthscore.samples import MetricType, QuantityPoint


@dataclass(frozen=True)
class Valid:
    value: float
    last_seen: datetime
    kind: ClassVar[str] = "valid"


@dataclass(frozen=True)
class Stale:
    last_seen: datetime
    kind: ClassVar[str] = "stale"


@dataclass(frozen=True)
class Missing:
    kind: ClassVar[str] = "missing"


MetricState = Union[Valid, Stale, Missing]


# Maximum usable age of an observation, per metric
RECENCY_POLICY: dict[MetricType, timedelta] = {
    MetricType.HRV: timedelta(days=7),
    MetricType.RESTING_HR: timedelta(days=7),
    MetricType.VO2_MAX: timedelta(days=7),
    MetricType.WEIGHT: timedelta(days=90),
    MetricType.RESPIRATORY_RATE: timedelta(hours=24),
    MetricType.SPO2: timedelta(hours=24),
    MetricType.TEMPERATURE: timedelta(hours=24),
    MetricType.STEPS: timedelta(hours=24),
    MetricType.ACTIVE_ENERGY: timedelta(hours=24),
    MetricType.SLEEP_DURATION: timedelta(hours=24),
}


def classify(
    last_value: float | None,
    last_seen: datetime | None,
    threshold: timedelta,
    now: datetime,
) -> MetricState:
    """Classify one metric; the threshold boundary itself counts as valid."""
    if last_value is None or last_seen is None:
        return Missing()
    if now - last_seen <= threshold:
        return Valid(value=last_value, last_seen=last_seen)
    return Stale(last_seen=last_seen)


class MetricTracker:
    """Newest observation per metric, classified on demand."""

    def __init__(self, policy: dict[MetricType, timedelta] | None = None) -> None:
        self.policy = dict(RECENCY_POLICY if policy is None else policy)
        self._latest: dict[MetricType, tuple[float, datetime]] = {}

    def observe(self, metric: MetricType, value: float, timestamp: datetime) -> bool:
        """Record an observation; older-than-current ones are ignored.

        Returns:
            True if the stored observation changed.
        """
        metric = MetricType(metric)
        current = self._latest.get(metric)
        if current is not None and timestamp < current[1]:
            return False
        new = (float(value), timestamp)
        if new == current:
            return False
        self._latest[metric] = new
        return True

    def observe_series(self, metric: MetricType, points: Iterable[QuantityPoint]) -> bool:
        """Observe the newest point of a series, if any."""
        newest = max(points, key=lambda p: p[0], default=None)
        if newest is None:
            return False
        return self.observe(metric, newest[1], newest[0])

    def latest(self, metric: MetricType) -> tuple[float, datetime] | None:
        return self._latest.get(MetricType(metric))

    def forget(self, metric: MetricType) -> None:
        self._latest.pop(MetricType(metric), None)

    def state(self, metric: MetricType, now: datetime) -> MetricState:
        metric = MetricType(metric)
        latest = self._latest.get(metric)
        if latest is None:
            return Missing()
        value, seen = latest
        return classify(value, seen, self.policy[metric], now)

    def states(self, now: datetime) -> dict[MetricType, MetricState]:
        return {metric: self.state(metric, now) for metric in self.policy}
