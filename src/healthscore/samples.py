"""Raw sample types and the sample-source boundary.

The platform health store is an external collaborator.  This module defines
what the core expects from it (:class:`SampleSource`) plus an in-memory
implementation, :class:`StaticSampleSource`, used by tests and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Protocol, Sequence, Tuple


class SleepCategory(str, Enum):
    """Sleep analysis category of an interval sample."""

    IN_BED = "in_bed"
    ASLEEP_UNSPECIFIED = "asleep_unspecified"
    ASLEEP_CORE = "asleep_core"
    ASLEEP_DEEP = "asleep_deep"
    ASLEEP_REM = "asleep_rem"
    AWAKE = "awake"


SLEEP_CATEGORIES = frozenset(SleepCategory)

ASLEEP_CATEGORIES = frozenset({
    SleepCategory.ASLEEP_UNSPECIFIED,
    SleepCategory.ASLEEP_CORE,
    SleepCategory.ASLEEP_DEEP,
    SleepCategory.ASLEEP_REM,
})

# Stages that only a staging-capable wearable reports
DETAILED_CATEGORIES = frozenset({
    SleepCategory.ASLEEP_CORE,
    SleepCategory.ASLEEP_DEEP,
    SleepCategory.ASLEEP_REM,
})


class MetricType(str, Enum):
    """Scalar metrics tracked by the engine."""

    HRV = "hrv"  # ms
    RESTING_HR = "resting_hr"  # bpm
    RESPIRATORY_RATE = "respiratory_rate"  # breaths/min
    SPO2 = "spo2"  # %
    TEMPERATURE = "temperature"  # °C
    SLEEP_DURATION = "sleep_duration"  # hours
    STEPS = "steps"  # count, day total
    ACTIVE_ENERGY = "active_energy"  # kcal, day total
    VO2_MAX = "vo2_max"  # ml/kg/min
    WEIGHT = "weight"  # kg

    @property
    def label(self) -> str:
        """Human-readable name used in unavailability reasons."""
        return METRIC_LABELS[self]


METRIC_LABELS = {
    MetricType.HRV: "HRV",
    MetricType.RESTING_HR: "RHR",
    MetricType.RESPIRATORY_RATE: "respiratory rate",
    MetricType.SPO2: "SpO2",
    MetricType.TEMPERATURE: "temperature",
    MetricType.SLEEP_DURATION: "sleep",
    MetricType.STEPS: "steps",
    MetricType.ACTIVE_ENERGY: "active energy",
    MetricType.VO2_MAX: "VO2 max",
    MetricType.WEIGHT: "weight",
}

# (timestamp, value)
QuantityPoint = Tuple[datetime, float]


@dataclass(frozen=True)
class RawIntervalSample:
    """A categorised time range as delivered by the health store.

    ``category`` is normally a :class:`SleepCategory`; a plain string is kept
    as-is so that unknown categories reach the session builder and get
    rejected there.
    """

    category: SleepCategory | str
    start: datetime
    end: datetime

    @property
    def duration(self):
        return self.end - self.start


def as_sleep_category(value: SleepCategory | str) -> SleepCategory | None:
    """Coerce *value* to a :class:`SleepCategory`, or None if it is not one."""
    if isinstance(value, SleepCategory):
        return value
    try:
        return SleepCategory(value)
    except ValueError:
        return None


class SampleSource(Protocol):
    """What the core consumes from the platform health store.

    Implementations are expected to de-duplicate samples; the core still
    re-validates time ranges itself.
    """

    async def fetch_interval_samples(
        self,
        categories: Iterable[SleepCategory],
        start: datetime,
        end: datetime,
    ) -> list[RawIntervalSample]:
        ...

    async def fetch_quantity_series(
        self,
        metric: MetricType,
        start: datetime,
        end: datetime,
    ) -> list[QuantityPoint]:
        ...

    async def fetch_latest(self, metric: MetricType) -> tuple[float, datetime] | None:
        ...


@dataclass
class StaticSampleSource:
    """In-memory :class:`SampleSource` over fixed lists of samples."""

    intervals: list[RawIntervalSample] = field(default_factory=list)
    quantities: dict[MetricType, list[QuantityPoint]] = field(default_factory=dict)

    def add_interval(self, category: SleepCategory | str, start: datetime, end: datetime) -> None:
        self.intervals.append(RawIntervalSample(category, start, end))

    def add_quantity(self, metric: MetricType, timestamp: datetime, value: float) -> None:
        self.quantities.setdefault(MetricType(metric), []).append((timestamp, float(value)))

    def extend_quantity(self, metric: MetricType, points: Sequence[QuantityPoint]) -> None:
        for ts, value in points:
            self.add_quantity(metric, ts, value)

    async def fetch_interval_samples(
        self,
        categories: Iterable[SleepCategory],
        start: datetime,
        end: datetime,
    ) -> list[RawIntervalSample]:
        wanted = {c.value if isinstance(c, SleepCategory) else c for c in categories}
        return [
            s for s in self.intervals
            if _category_value(s.category) in wanted and s.start < end and s.end > start
        ]

    async def fetch_quantity_series(
        self,
        metric: MetricType,
        start: datetime,
        end: datetime,
    ) -> list[QuantityPoint]:
        points = self.quantities.get(MetricType(metric), [])
        return sorted((p for p in points if start <= p[0] <= end), key=lambda p: p[0])

    async def fetch_latest(self, metric: MetricType) -> tuple[float, datetime] | None:
        points = self.quantities.get(MetricType(metric), [])
        if not points:
            return None
        ts, value = max(points, key=lambda p: p[0])
        return value, ts


def _category_value(category: SleepCategory | str) -> str:
    return category.value if isinstance(category, SleepCategory) else str(category)
