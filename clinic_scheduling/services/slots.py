"""
Slot generation - expands a weekday's ranges into bookable HH:MM instants.
"""
from collections.abc import Iterable, Iterator
from datetime import date
from typing import Optional

from clinic_scheduling.errors import InvalidScheduleInput
from clinic_scheduling.services.schedule_model import (
    TimeRange,
    WorkingHours,
    format_clock,
    parse_clock,
    weekday_key,
)

DEFAULT_GRANULARITY_MINUTES = 30


def _check_granularity(granularity) -> None:
    if isinstance(granularity, bool) or not isinstance(granularity, int) or granularity <= 0:
        raise InvalidScheduleInput(f"Slot granularity must be a positive integer, got {granularity!r}")


def iter_slots(
    ranges: Iterable[TimeRange],
    granularity: int = DEFAULT_GRANULARITY_MINUTES,
) -> Iterator[str]:
    """
    Yield one HH:MM slot per granularity step whose whole step fits inside a
    range (step_start + granularity <= range.end).

    Ranges are walked in the order given; overlapping ranges produce duplicate
    slots, which callers dedupe. Every call returns a fresh generator.
    """
    _check_granularity(granularity)
    for start, end in ranges:
        minute = start
        while minute + granularity <= end:
            yield format_clock(minute)
            minute += granularity


def generate_day_slots(
    hours: WorkingHours,
    day: date,
    granularity: Optional[int] = None,
) -> list[str]:
    """All slots (duplicates included) for the weekday of `day`."""
    if granularity is None:
        from clinic_scheduling.config import get_settings
        granularity = get_settings().slot_granularity_minutes
    return list(iter_slots(hours.get(weekday_key(day), []), granularity))


def slot_minutes(slot: str) -> int:
    """Minute-of-day of an HH:MM slot. Raises ValueError on malformed input."""
    minutes = parse_clock(slot)
    if minutes is None or not isinstance(slot, str) or ":" not in slot:
        raise ValueError(f"Invalid slot time: {slot!r}")
    return minutes
