"""Exceptions raised by healthscore.

Scoring itself never raises: missing inputs surface as ``Unavailable``
states.  Exceptions are reserved for the edges (sample source, export files).
"""

from __future__ import annotations


class HealthScoreError(Exception):
    """Base class for all healthscore errors."""


class SampleSourceError(HealthScoreError):
    """The external sample source failed while a refresh was in progress."""


class ExportFormatError(HealthScoreError, ValueError):
    """A record in a sample export file could not be parsed."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
