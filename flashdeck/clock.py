"""
Clock: the "today" provider used by scheduling.

Scheduling works at day granularity in the device-local timezone.
Components take a Clock so tests can pin the calendar day.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol


class Clock(Protocol):
    """Protocol for current-date providers."""

    def today(self) -> date: ...


class SystemClock:
    """Local calendar day from the system clock."""

    def today(self) -> date:
        return date.today()


class FixedClock:
    """A clock frozen on a given day."""

    def __init__(self, day: date):
        self.day = day

    def today(self) -> date:
        return self.day

    def __repr__(self) -> str:
        return f"FixedClock({self.day.isoformat()})"
