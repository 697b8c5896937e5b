"""
Purpose: Availability windows and the "can this driver work this slot" rule.
What it does:
- Defines AvailabilityWindow (weekday + start/end time of day).
- Parses the shapes availability arrives in:
    - the profile JSON saved by the team portal:
        {"days": ["Mon", "Wed"], "start_time": "08:00", "end_time": "17:00"}
    - an iterable of (weekday, start, end) triples
    - already-built AvailabilityWindow objects
- Answers coverage: a window covers a job only if it is the same weekday
  and contains the job's [start, end] slot entirely.

Rule: No scoring here. Coverage is a yes/no gate used by the candidate filter.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, FrozenSet, Iterable, List

WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

_WEEKDAY_LOOKUP = {name.lower(): index for index, name in enumerate(WEEKDAY_NAMES)}
_WEEKDAY_LOOKUP.update({
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
})

# Team portal defaults when a driver saved days but no hours
DEFAULT_START_TIME = "08:00"
DEFAULT_END_TIME = "17:00"


@dataclass(frozen=True, order=True)
class AvailabilityWindow:
    """
    One weekday slot a driver can work. weekday follows date.weekday(): 0=Mon .. 6=Sun.
    """
    weekday: int
    start: time
    end: time

    def __post_init__(self) -> None:
        if not 0 <= self.weekday <= 6:
            raise ValueError(f"weekday must be 0-6, got {self.weekday}")
        if self.end <= self.start:
            raise ValueError(f"Availability window must end after it starts ({self.start} - {self.end})")

    def covers(self, weekday: int, start: time, end: time) -> bool:
        return self.weekday == weekday and self.start <= start and end <= self.end


def parse_weekday(value: Any) -> int:
    if isinstance(value, int):
        if not 0 <= value <= 6:
            raise ValueError(f"weekday must be 0-6, got {value}")
        return value

    key = str(value).strip().lower()
    if key not in _WEEKDAY_LOOKUP:
        raise ValueError(f"Unknown weekday: {value!r}")
    return _WEEKDAY_LOOKUP[key]


def parse_time_of_day(value: Any) -> time:
    """
    Accepts datetime.time or "HH:MM" / "HH:MM:SS" strings.
    """
    if isinstance(value, time):
        return value

    text = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time of day: {value!r}")


def parse_availability(raw: Any) -> FrozenSet[AvailabilityWindow]:
    """
    Normalizes any supported availability shape into a frozen set of windows.
    None / empty input means "no declared availability".
    """
    if not raw:
        return frozenset()

    # The portal stores availability as a JSON string on some records
    if isinstance(raw, str):
        raw = json.loads(raw)

    if isinstance(raw, dict):
        start = parse_time_of_day(raw.get("start_time") or DEFAULT_START_TIME)
        end = parse_time_of_day(raw.get("end_time") or DEFAULT_END_TIME)
        return frozenset(
            AvailabilityWindow(parse_weekday(day), start, end)
            for day in raw.get("days", [])
        )

    windows: List[AvailabilityWindow] = []
    for item in raw:
        if isinstance(item, AvailabilityWindow):
            windows.append(item)
            continue

        weekday, start, end = item
        windows.append(
            AvailabilityWindow(parse_weekday(weekday), parse_time_of_day(start), parse_time_of_day(end))
        )
    return frozenset(windows)


def windows_for_days(days: Iterable[Any], start: Any, end: Any) -> FrozenSet[AvailabilityWindow]:
    """
    Convenience builder: the same hours on several weekdays.
    """
    start_time = parse_time_of_day(start)
    end_time = parse_time_of_day(end)
    return frozenset(AvailabilityWindow(parse_weekday(day), start_time, end_time) for day in days)
