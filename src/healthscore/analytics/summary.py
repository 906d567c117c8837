"""Daily sleep aggregator.

Collapses the sessions overlapping one calendar day into a single
DailySleepSummary that is JSON-serializable.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Sequence

from healthscore.analytics.sessions import SleepSession


@dataclass(frozen=True)
class DailySleepSummary:
    """One day's sleep, anchored on its longest (primary) session."""

    date: date
    primary_session: SleepSession | None = None
    total_duration: timedelta = timedelta(0)
    average_efficiency: float = 0.0  # mean over overlapping sessions (0-1)
    total_wake_events: int = 0
    bedtime: datetime | None = None
    wake_time: datetime | None = None

    @property
    def has_data(self) -> bool:
        return self.primary_session is not None and self.total_duration > timedelta(0)

    @property
    def duration_hours(self) -> float:
        return self.total_duration.total_seconds() / 3600.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict (JSON-friendly)."""
        primary = self.primary_session
        return {
            "date": self.date.isoformat(),
            "has_data": self.has_data,
            "total_sleep_min": round(self.total_duration.total_seconds() / 60.0, 1),
            "average_efficiency": round(self.average_efficiency, 3),
            "total_wake_events": self.total_wake_events,
            "bedtime": self.bedtime.isoformat() if self.bedtime else None,
            "wake_time": self.wake_time.isoformat() if self.wake_time else None,
            "primary_session": None if primary is None else {
                "start": primary.start.isoformat(),
                "end": primary.end.isoformat(),
                "efficiency": round(primary.efficiency, 3),
                "wake_events": primary.wake_events,
                "source": primary.source.value,
                "core_min": round(primary.stages.core.total_seconds() / 60.0, 1),
                "deep_min": round(primary.stages.deep.total_seconds() / 60.0, 1),
                "rem_min": round(primary.stages.rem.total_seconds() / 60.0, 1),
                "awake_min": round(primary.stages.awake.total_seconds() / 60.0, 1),
            },
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def __repr__(self) -> str:
        return (
            f"DailySleepSummary({self.date.isoformat()}: "
            f"sleep={self.duration_hours:.1f}h, "
            f"eff={self.average_efficiency:.0%}, "
            f"wakes={self.total_wake_events})"
        )


def day_bounds(day: date, tzinfo=None) -> tuple[datetime, datetime]:
    """Return the half-open ``[midnight, next midnight)`` range for *day*."""
    start = datetime.combine(day, time.min, tzinfo=tzinfo)
    return start, start + timedelta(days=1)


def build_daily_summary(
    day: date | str,
    sessions: Sequence[SleepSession],
) -> DailySleepSummary:
    """Build the sleep summary for *day* from reconstructed sessions.

    Args:
        day: The calendar day (a date or ISO date string).
        sessions: Sessions from :func:`build_sessions`, in any order.  Only
            those overlapping the day are considered.

    Returns:
        A DailySleepSummary; empty (``has_data`` False) when no session
        overlaps the day.
    """
    if isinstance(day, str):
        day = date.fromisoformat(day)

    tzinfo = sessions[0].start.tzinfo if sessions else None
    day_start, day_end = day_bounds(day, tzinfo)

    overlapping = [s for s in sessions if s.overlaps(day_start, day_end)]
    if not overlapping:
        return DailySleepSummary(date=day)

    # max() keeps the first of equal maxima, so ties go to input order
    primary = max(overlapping, key=lambda s: s.duration)

    total = sum((s.duration for s in overlapping), timedelta(0))
    avg_eff = sum(s.efficiency for s in overlapping) / len(overlapping)

    return DailySleepSummary(
        date=day,
        primary_session=primary,
        total_duration=total,
        average_efficiency=avg_eff,
        total_wake_events=sum(s.wake_events for s in overlapping),
        bedtime=primary.start,
        wake_time=primary.end,
    )
