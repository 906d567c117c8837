"""Load JSONL health exports into an in-memory sample source.

Each line is one JSON object, either an interval sample::

    {"type": "sleep", "category": "asleep_core",
     "start": "2026-02-12T23:10:00", "end": "2026-02-13T00:40:00"}

or a quantity sample::

    {"type": "quantity", "metric": "hrv",
     "timestamp": "2026-02-13T06:30:00", "value": 48.2}

Timestamps are ISO-8601 (a trailing ``Z`` is accepted).  Blank lines are
ignored; malformed ones are skipped with a warning, or raise in strict mode.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Tuple, Union

from healthscore.exceptions import ExportFormatError
from healthscore.samples import (
    MetricType,
    QuantityPoint,
    RawIntervalSample,
    StaticSampleSource,
    as_sleep_category,
)

logger = logging.getLogger(__name__)

ExportRecord = Union[RawIntervalSample, Tuple[MetricType, QuantityPoint]]


def _timestamp(entry: dict[str, Any], key: str, line: int | None) -> datetime:
    raw = entry.get(key)
    if not isinstance(raw, str):
        raise ExportFormatError(f"missing or non-string {key!r}", line)
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ExportFormatError(f"bad timestamp {key}={raw!r}", line) from exc


def parse_record(entry: Any, line: int | None = None) -> ExportRecord:
    """Turn one decoded JSON object into a sample.

    Returns:
        A RawIntervalSample for ``"sleep"`` records, or a
        ``(metric, (timestamp, value))`` pair for ``"quantity"`` records.
        Unknown sleep categories are passed through as strings.

    Raises:
        ExportFormatError: if the record is malformed.
    """
    if not isinstance(entry, dict):
        raise ExportFormatError("record is not an object", line)

    kind = entry.get("type")
    if kind == "sleep":
        category = entry.get("category")
        if not isinstance(category, str):
            raise ExportFormatError("sleep record without a category", line)
        start = _timestamp(entry, "start", line)
        end = _timestamp(entry, "end", line)
        return RawIntervalSample(as_sleep_category(category) or category, start, end)

    if kind == "quantity":
        try:
            metric = MetricType(entry.get("metric"))
        except ValueError as exc:
            raise ExportFormatError(f"unknown metric {entry.get('metric')!r}", line) from exc
        value = entry.get("value")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ExportFormatError(f"non-numeric value {value!r}", line)
        return metric, (_timestamp(entry, "timestamp", line), float(value))

    raise ExportFormatError(f"unknown record type {kind!r}", line)


def load_export(path: str | Path, strict: bool = False) -> StaticSampleSource:
    """Read a JSONL export into a StaticSampleSource.

    Args:
        path: The ``.jsonl`` file.
        strict: Raise on the first malformed line instead of skipping it.

    Raises:
        FileNotFoundError: if *path* does not exist.
        ExportFormatError: in strict mode, for the first bad line.
    """
    path = Path(path)
    source = StaticSampleSource()
    skipped = 0

    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError as exc:
                    raise ExportFormatError(f"invalid JSON ({exc.msg})", line_num) from exc
                record = parse_record(entry, line_num)
            except ExportFormatError as exc:
                if strict:
                    raise
                logger.warning("%s: skipping %s", path.name, exc)
                skipped += 1
                continue

            if isinstance(record, RawIntervalSample):
                source.intervals.append(record)
            else:
                metric, (ts, value) = record
                source.add_quantity(metric, ts, value)

    logger.info(
        "Loaded %s: %d interval sample(s), %d quantity sample(s), %d skipped",
        path.name,
        len(source.intervals),
        sum(len(v) for v in source.quantities.values()),
        skipped,
    )
    return source
