"""Sleep session reconstruction from raw sleep-analysis interval samples.

Health stores hand back sleep as a loose pile of categorised intervals
(in bed, awake, core/deep/REM, or plain "asleep") that may overlap, repeat
and leave gaps.  The builder turns that pile into discrete sessions:

  1. Drop samples with an empty or inverted range, future end, no overlap
     with the requested range, or a category that is not a sleep category.
  2. Sort by start and merge into contiguous intervals, tolerating gaps of
     up to 30 minutes between a sample and the interval built so far.
  3. Drop intervals shorter than 90 minutes (naps).
  4. Bound each session by its first and last in-bed samples.
  5. Accumulate stage durations, count wake events, derive efficiency.
  6. Post-pass: WASO, fragmentation index, latency, consistency.

Two of the derived numbers are knowingly approximate: WASO is the total
awake time of the session, and sleep latency is 10% of it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Sequence

from healthscore.config import MAX_GAP_BETWEEN_SAMPLES, MIN_SESSION_DURATION
from healthscore.samples import (
    ASLEEP_CATEGORIES,
    DETAILED_CATEGORIES,
    RawIntervalSample,
    SleepCategory,
    as_sleep_category,
)

logger = logging.getLogger(__name__)

ZERO = timedelta(0)

# Share of awake time reported as sleep latency (placeholder heuristic)
LATENCY_AWAKE_FRACTION = 0.1


class SourceQuality(str, Enum):
    """How much stage detail the samples behind a session carried."""

    DETAILED = "detailed"  # core/deep/REM present (staging wearable)
    BASIC = "basic"  # in-bed / asleep / awake only


@dataclass(frozen=True)
class SleepStages:
    """Accumulated time per sleep stage."""

    core: timedelta = ZERO
    deep: timedelta = ZERO
    rem: timedelta = ZERO
    awake: timedelta = ZERO

    @property
    def total_asleep(self) -> timedelta:
        return self.core + self.deep + self.rem

    @property
    def total_in_bed(self) -> timedelta:
        return self.total_asleep + self.awake

    def _pct(self, stage: timedelta) -> float:
        asleep = self.total_asleep
        if asleep <= ZERO:
            return 0.0
        return stage / asleep * 100.0

    @property
    def core_pct(self) -> float:
        return self._pct(self.core)

    @property
    def deep_pct(self) -> float:
        return self._pct(self.deep)

    @property
    def rem_pct(self) -> float:
        return self._pct(self.rem)


@dataclass(frozen=True)
class SleepMetrics:
    """Quality metrics derived after stages and wake events are known."""

    waso: timedelta = ZERO
    fragmentation_index: float = 0.0  # wake events per hour
    sleep_latency: timedelta = ZERO
    consistency: float = 1.0  # 0-1; 1.0 until bedtime history exists


@dataclass(frozen=True)
class SleepSession:
    """One reconstructed sleep period bounded by in-bed markers."""

    start: datetime
    end: datetime
    duration: timedelta
    efficiency: float  # total_asleep / total_in_bed (0-1)
    stages: SleepStages
    wake_events: int
    source: SourceQuality
    metrics: SleepMetrics = field(default_factory=SleepMetrics)

    @property
    def duration_hours(self) -> float:
        return self.duration.total_seconds() / 3600.0

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """True if the session intersects the half-open range [start, end)."""
        return self.start < end and self.end > start

    def __repr__(self) -> str:
        return (
            f"SleepSession({self.start:%Y-%m-%d %H:%M}–{self.end:%H:%M}, "
            f"{self.duration_hours:.1f}h, eff={self.efficiency:.0%}, "
            f"wakes={self.wake_events}, {self.source.value})"
        )


@dataclass
class _Interval:
    """Working bucket of contiguous samples (builder-internal)."""

    start: datetime
    end: datetime
    samples: list[RawIntervalSample]

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


# ---------------------------------------------------------------------------
# Validation and grouping
# ---------------------------------------------------------------------------


def _filter_valid_samples(
    samples: Sequence[RawIntervalSample],
    range_start: datetime,
    range_end: datetime,
    now: datetime,
) -> list[RawIntervalSample]:
    """Keep samples that are well-formed, in the past, in range and sleep-typed.

    The category is normalised to :class:`SleepCategory` on the way through.
    """
    valid: list[RawIntervalSample] = []
    for s in samples:
        if s.end <= s.start:
            logger.debug("Rejected sample with empty range: %s", s)
            continue
        if s.end > now:
            logger.debug("Rejected future sample ending %s", s.end)
            continue
        if not (s.start < range_end and s.end > range_start):
            logger.debug("Rejected sample outside range: %s–%s", s.start, s.end)
            continue
        category = as_sleep_category(s.category)
        if category is None:
            logger.debug("Rejected non-sleep category %r", s.category)
            continue
        if category is not s.category:
            s = RawIntervalSample(category, s.start, s.end)
        valid.append(s)
    return valid


def _group_into_intervals(
    samples: Sequence[RawIntervalSample],
    max_gap: timedelta,
) -> list[_Interval]:
    """Merge start-sorted samples into contiguous intervals."""
    intervals: list[_Interval] = []
    current: _Interval | None = None

    for s in sorted(samples, key=lambda x: x.start):
        if current is not None and s.start - current.end <= max_gap:
            current.end = max(current.end, s.end)
            current.samples.append(s)
            continue
        if current is not None:
            intervals.append(current)
        current = _Interval(start=s.start, end=s.end, samples=[s])

    if current is not None:
        intervals.append(current)
    return intervals


# ---------------------------------------------------------------------------
# Per-session calculations
# ---------------------------------------------------------------------------


def _accumulate_stages(samples: Sequence[RawIntervalSample]) -> SleepStages:
    """Sum durations per stage in sample order.

    Unspecified sleep is split by the core:deep:rem ratio seen so far, or
    counted entirely as core when nothing specified has been seen yet.
    The result therefore depends on sample order when unspecified samples
    interleave with staged ones.
    """
    core = deep = rem = awake = ZERO

    for s in samples:
        d = s.end - s.start
        if s.category == SleepCategory.ASLEEP_CORE:
            core += d
        elif s.category == SleepCategory.ASLEEP_DEEP:
            deep += d
        elif s.category == SleepCategory.ASLEEP_REM:
            rem += d
        elif s.category == SleepCategory.AWAKE:
            awake += d
        elif s.category == SleepCategory.ASLEEP_UNSPECIFIED:
            specified = core + deep + rem
            if specified > ZERO:
                core += d * (core / specified)
                deep += d * (deep / specified)
                rem += d * (rem / specified)
            else:
                core += d

    return SleepStages(core=core, deep=deep, rem=rem, awake=awake)


def _count_wake_events(samples: Sequence[RawIntervalSample]) -> int:
    """Count asleep → awake transitions in chronological order."""
    count = 0
    was_asleep = False
    for s in sorted(samples, key=lambda x: x.start):
        if s.category in ASLEEP_CATEGORIES:
            was_asleep = True
        elif s.category == SleepCategory.AWAKE and was_asleep:
            count += 1
            was_asleep = False
    return count


def _efficiency(stages: SleepStages) -> float:
    in_bed = stages.total_in_bed
    if in_bed <= ZERO:
        return 0.0
    return max(0.0, min(1.0, stages.total_asleep / in_bed))


def _source_quality(samples: Sequence[RawIntervalSample]) -> SourceQuality:
    if any(s.category in DETAILED_CATEGORIES for s in samples):
        return SourceQuality.DETAILED
    return SourceQuality.BASIC


def _reconstruct_session(interval: _Interval, min_duration: timedelta) -> SleepSession | None:
    """Build a session from one interval, or None if it does not qualify."""
    if interval.duration < min_duration:
        logger.debug("Interval too short (%s < %s), treating as nap",
                     interval.duration, min_duration)
        return None

    in_bed = [s for s in interval.samples if s.category == SleepCategory.IN_BED]
    if not in_bed:
        logger.debug("Interval starting %s has no in-bed samples", interval.start)
        return None

    start = in_bed[0].start
    end = in_bed[-1].end
    if end <= start or end - start < min_duration:
        logger.debug("In-bed boundary %s–%s does not form a session", start, end)
        return None

    stages = _accumulate_stages(interval.samples)
    return SleepSession(
        start=start,
        end=end,
        duration=end - start,
        efficiency=_efficiency(stages),
        stages=stages,
        wake_events=_count_wake_events(interval.samples),
        source=_source_quality(interval.samples),
    )


def with_derived_metrics(session: SleepSession) -> SleepSession:
    """Return a copy of *session* carrying WASO, fragmentation and latency.

    WASO is approximated by the total awake time and latency by 10% of it;
    consistency stays at 1.0 without historical bedtimes.
    """
    hours = session.duration_hours
    fragmentation = session.wake_events / hours if session.wake_events > 0 and hours > 0 else 0.0
    metrics = SleepMetrics(
        waso=session.stages.awake,
        fragmentation_index=fragmentation,
        sleep_latency=session.stages.awake * LATENCY_AWAKE_FRACTION,
        consistency=1.0,
    )
    return replace(session, metrics=metrics)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_sessions(
    samples: Sequence[RawIntervalSample],
    range_start: datetime,
    range_end: datetime,
    *,
    now: datetime | None = None,
    max_gap: timedelta = MAX_GAP_BETWEEN_SAMPLES,
    min_duration: timedelta = MIN_SESSION_DURATION,
) -> list[SleepSession]:
    """Reconstruct sleep sessions from raw interval samples.

    Args:
        samples: Raw sleep-analysis samples, in any order.
        range_start: Start of the requested range (inclusive).
        range_end: End of the requested range (exclusive).
        now: Reference time for rejecting future samples.  Defaults to the
            current time in *range_end*'s timezone.
        max_gap: Largest gap that still joins a sample to an interval.
        min_duration: Shortest interval / session kept.

    Returns:
        Sessions in chronological order; empty when nothing qualifies.
    """
    if now is None:
        now = datetime.now(range_end.tzinfo)

    valid = _filter_valid_samples(samples, range_start, range_end, now)
    intervals = _group_into_intervals(valid, max_gap)

    sessions: list[SleepSession] = []
    for interval in intervals:
        session = _reconstruct_session(interval, min_duration)
        if session is not None:
            sessions.append(with_derived_metrics(session))

    logger.debug("Built %d session(s) from %d/%d valid samples in %d interval(s)",
                 len(sessions), len(valid), len(samples), len(intervals))
    return sessions
