"""Closed date intervals with an optional open end."""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Optional


@dataclass(frozen=True)
class DateInterval:
    """[start, end] inclusive on both sides. end=None means open-ended."""

    start: date
    end: Optional[date] = None

    def __post_init__(self) -> None:
        if self.end is not None and self.end < self.start:
            raise ValueError(f"Interval end {self.end} precedes start {self.start}")

    @property
    def is_open(self) -> bool:
        return self.end is None

    def is_active_on(self, on_date: date) -> bool:
        return self.start <= on_date and (self.end is None or self.end >= on_date)

    def overlaps(self, other: "DateInterval") -> bool:
        if self.end is not None and self.end < other.start:
            return False
        if other.end is not None and other.end < self.start:
            return False
        return True

    def clamp(self, window: "DateInterval") -> Optional["DateInterval"]:
        """Intersection with `window`, or None when they do not meet."""
        if not self.overlaps(window):
            return None
        start = max(self.start, window.start)
        if self.end is None:
            end = window.end
        elif window.end is None:
            end = self.end
        else:
            end = min(self.end, window.end)
        return DateInterval(start, end)

    def days(self) -> Iterator[date]:
        """Every calendar day in the interval. Open intervals cannot be iterated."""
        if self.end is None:
            raise ValueError("Cannot iterate an open-ended interval")
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)


def day_before(value: date) -> date:
    return value - timedelta(days=1)
