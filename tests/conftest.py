"""Shared fixtures and helpers for the healthscore test suite."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from healthscore.samples import (
    MetricType,
    QuantityPoint,
    RawIntervalSample,
    SleepCategory,
    StaticSampleSource,
)

# Fixed reference time used across the suite: midday, Friday 13 Feb 2026
NOW = datetime(2026, 2, 13, 12, 0)


def ts(hour: int, minute: int = 0, day: int = 13) -> datetime:
    """Timestamp in Feb 2026 (day 13 by default)."""
    return datetime(2026, 2, day, hour, minute)


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Sample-building helpers
# ---------------------------------------------------------------------------


def sample(category: SleepCategory | str, start: datetime, end: datetime) -> RawIntervalSample:
    return RawIntervalSample(category, start, end)


def make_night(
    start: datetime,
    end: datetime,
    awake: list[tuple[datetime, datetime]] | None = None,
    stage: SleepCategory = SleepCategory.ASLEEP_CORE,
) -> list[RawIntervalSample]:
    """An in-bed span fully tiled by *stage* sleep, broken by awake bouts.

    Args:
        start: In-bed start.
        end: In-bed end.
        awake: ``(start, end)`` awake bouts inside the span.
        stage: Category used for the asleep stretches.
    """
    samples = [sample(SleepCategory.IN_BED, start, end)]
    cursor = start
    for a_start, a_end in sorted(awake or []):
        if a_start > cursor:
            samples.append(sample(stage, cursor, a_start))
        samples.append(sample(SleepCategory.AWAKE, a_start, a_end))
        cursor = a_end
    if cursor < end:
        samples.append(sample(stage, cursor, end))
    return samples


def make_staged_night(start: datetime) -> list[RawIntervalSample]:
    """An 8-hour night with core/deep/REM stages and one awake bout.

    23:00 in bed; 60m core, 90m deep, 120m core, 10m awake, 110m REM,
    90m core  (asleep 470m, awake 10m).
    """
    blocks = [
        (SleepCategory.ASLEEP_CORE, 60),
        (SleepCategory.ASLEEP_DEEP, 90),
        (SleepCategory.ASLEEP_CORE, 120),
        (SleepCategory.AWAKE, 10),
        (SleepCategory.ASLEEP_REM, 110),
        (SleepCategory.ASLEEP_CORE, 90),
    ]
    samples = []
    cursor = start
    for category, minutes in blocks:
        samples.append(sample(category, cursor, cursor + timedelta(minutes=minutes)))
        cursor += timedelta(minutes=minutes)
    samples.insert(0, sample(SleepCategory.IN_BED, start, cursor))
    return samples


def daily_series(values: list[float], end: datetime = NOW) -> list[QuantityPoint]:
    """One point per day, the last one at *end*."""
    n = len(values)
    return [(end - timedelta(days=n - 1 - i), float(v)) for i, v in enumerate(values)]


def make_source(
    intervals: list[RawIntervalSample] | None = None,
    **series: list[QuantityPoint],
) -> StaticSampleSource:
    """StaticSampleSource from intervals plus ``metric_name=points`` kwargs."""
    source = StaticSampleSource(intervals=list(intervals or []))
    for name, points in series.items():
        source.extend_quantity(MetricType(name), points)
    return source


# ---------------------------------------------------------------------------
# JSONL export helpers
# ---------------------------------------------------------------------------


def write_jsonl(path: Path, entries: list[dict | str]) -> Path:
    """Write dicts (or raw strings, verbatim) as JSONL to the given path."""
    with open(path, "w") as f:
        for entry in entries:
            f.write((entry if isinstance(entry, str) else json.dumps(entry)) + "\n")
    return path


def sleep_entry(category: str, start: datetime, end: datetime) -> dict:
    return {
        "type": "sleep",
        "category": category,
        "start": start.isoformat(),
        "end": end.isoformat(),
    }


def quantity_entry(metric: str, timestamp: datetime, value: float) -> dict:
    return {
        "type": "quantity",
        "metric": metric,
        "timestamp": timestamp.isoformat(),
        "value": value,
    }
