"""
Time Windows

A calendar date plus a half-open [start, end) wall-clock interval. Sessions
never cross midnight, so the window is always same-day.
"""
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Union

from scheduling_engine.services.errors import InvalidSchedule

TimeLike = Union[time, str]


def parse_time(value: TimeLike) -> time:
    """Accept a time or an "HH:MM" string"""
    if isinstance(value, time):
        return value
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (AttributeError, ValueError):
        raise InvalidSchedule(f"Invalid time '{value}', expected HH:MM")


def intervals_overlap(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    """Half-open overlap: touching boundaries do not overlap"""
    return a_start < b_end and b_start < a_end


@dataclass(frozen=True)
class TimeWindow:
    day: date
    start: time
    end: time

    def __post_init__(self):
        if not self.start < self.end:
            raise InvalidSchedule(
                f"Start time {self.start:%H:%M} must be before end time {self.end:%H:%M}"
            )

    @classmethod
    def parse(cls, day: date, start: TimeLike, end: TimeLike) -> "TimeWindow":
        return cls(day, parse_time(start), parse_time(end))

    @property
    def duration_minutes(self) -> int:
        start = datetime.combine(self.day, self.start)
        end = datetime.combine(self.day, self.end)
        return int((end - start).total_seconds() // 60)

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.day == other.day and intervals_overlap(
            self.start, self.end, other.start, other.end
        )

    def start_instant(self, clock) -> datetime:
        return clock.localize(self.day, self.start)

    def end_instant(self, clock) -> datetime:
        return clock.localize(self.day, self.end)

    def __str__(self):
        return f"{self.day.isoformat()} {self.start:%H:%M}-{self.end:%H:%M}"


def overlaps(a: TimeWindow, b: TimeWindow) -> bool:
    return a.overlaps(b)
