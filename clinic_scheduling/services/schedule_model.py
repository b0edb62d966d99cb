"""
Working-hours normalization - the single boundary between however a doctor's
profile stored its hours and the canonical shape everything downstream uses.

Canonical WorkingHours: {"sun": [TimeRange, ...], ..., "sat": [...]}.
Accepted input shapes (per day, possibly mixed inside one payload):
- "09:00-17:00,18:00-20:00" or ["09:00-13:00", "14:00-17:00"]
- {"open": true, "start": "09:00", "end": "17:00"}
- [{"start": "09:00", "end": "12:00"}, {"start": 780, "end": 1020}]
and the whole mapping may sit under working_hours / workingHours / hours /
clinic.working_hours. Unknown shapes degrade to closed, never to open.
"""
import logging
import re
from collections.abc import Mapping
from datetime import date
from typing import Any, NamedTuple, Optional

from clinic_scheduling.errors import InvalidScheduleInput

logger = logging.getLogger(__name__)

DAY_KEYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
MINUTES_PER_DAY = 24 * 60

# date.weekday(): Monday=0 ... Sunday=6
_WEEKDAY_TO_KEY = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

_DAY_ALIASES = {
    "sun": "sun", "sunday": "sun",
    "mon": "mon", "monday": "mon",
    "tue": "tue", "tues": "tue", "tuesday": "tue",
    "wed": "wed", "wednesday": "wed",
    "thu": "thu", "thur": "thu", "thurs": "thu", "thursday": "thu",
    "fri": "fri", "friday": "fri",
    "sat": "sat", "saturday": "sat",
}

_WRAPPER_KEYS = ("working_hours", "workingHours", "hours")

_CLOCK_RE = re.compile(r"^\s*(\d{1,2})(?::(\d{1,2}))?\s*$")

DEFAULT_OPEN_START = "09:00"
DEFAULT_OPEN_END = "17:00"


class TimeRange(NamedTuple):
    """Minute-of-day range, start inclusive, end exclusive (end may be 1440)."""

    start: int
    end: int


WorkingHours = dict[str, list[TimeRange]]


def closed_week() -> WorkingHours:
    return {k: [] for k in DAY_KEYS}


def parse_clock(value: Any) -> Optional[int]:
    """
    Parse "HH:MM" (or "H", or a minute integer) into minute-of-day.
    Returns None for anything unreadable; 24:00 is accepted as end-of-day.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        minutes = value
    elif isinstance(value, str):
        match = _CLOCK_RE.match(value)
        if not match:
            return None
        hours = int(match.group(1))
        mins = int(match.group(2) or 0)
        if mins > 59:
            return None
        minutes = hours * 60 + mins
    else:
        return None
    if minutes < 0 or minutes > MINUTES_PER_DAY:
        return None
    return minutes


def format_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def weekday_key(day: date) -> str:
    return _WEEKDAY_TO_KEY[day.weekday()]


def _make_range(start: Any, end: Any) -> Optional[TimeRange]:
    s, e = parse_clock(start), parse_clock(end)
    if s is None or e is None:
        return None
    if s >= MINUTES_PER_DAY or s >= e:
        # Overnight ("22:00-02:00") and empty ranges are not representable
        return None
    return TimeRange(s, e)


def _ranges_from_text(text: str) -> list[TimeRange]:
    ranges = []
    for chunk in text.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = chunk.split("-")
        if len(parts) != 2:
            logger.debug("Dropping malformed hours chunk %r", chunk)
            continue
        parsed = _make_range(parts[0], parts[1])
        if parsed is None:
            logger.debug("Dropping invalid hours chunk %r", chunk)
            continue
        ranges.append(parsed)
    return ranges


def _ranges_from_day(value: Any) -> list[TimeRange]:
    """Normalize one day's value. Anything unrecognized means closed."""
    if value is None:
        return []
    if isinstance(value, str):
        return _ranges_from_text(value)
    if isinstance(value, Mapping):
        if "open" in value:
            if value.get("open") is not True:
                return []
            parsed = _make_range(
                value.get("start") or DEFAULT_OPEN_START,
                value.get("end") or DEFAULT_OPEN_END,
            )
            return [parsed] if parsed else []
        if "start" in value and "end" in value:
            parsed = _make_range(value.get("start"), value.get("end"))
            return [parsed] if parsed else []
        return []
    if isinstance(value, (list, tuple)):
        # A bare [start, end] pair of minutes
        if len(value) == 2 and all(isinstance(v, int) and not isinstance(v, bool) for v in value):
            parsed = _make_range(value[0], value[1])
            return [parsed] if parsed else []
        ranges = []
        for item in value:
            ranges.extend(_ranges_from_day(item))
        return ranges
    return []


def _unwrap(payload: Mapping) -> Mapping:
    """Find the per-day mapping inside legacy wrapper keys."""
    for key in _WRAPPER_KEYS:
        inner = payload.get(key)
        if isinstance(inner, Mapping):
            return _unwrap(inner)
    clinic = payload.get("clinic")
    if isinstance(clinic, Mapping):
        for key in _WRAPPER_KEYS:
            inner = clinic.get(key)
            if isinstance(inner, Mapping):
                return _unwrap(inner)
    return payload


def normalize_working_hours(payload: Any) -> WorkingHours:
    """
    Canonicalize a working-hours payload of any known shape.

    None or an unrecognized mapping gives a closed week. Malformed ranges are
    dropped one by one. Only a payload that is not a mapping at all raises
    InvalidScheduleInput.
    """
    if payload is None:
        return closed_week()
    if not isinstance(payload, Mapping):
        raise InvalidScheduleInput(
            f"Working hours must be a mapping, got {type(payload).__name__}"
        )

    source = _unwrap(payload)
    hours = closed_week()
    for raw_key, value in source.items():
        if not isinstance(raw_key, str):
            continue
        day = _DAY_ALIASES.get(raw_key.strip().lower())
        if day is None:
            continue
        hours[day].extend(_ranges_from_day(value))

    for day in DAY_KEYS:
        hours[day].sort()
    return hours


def is_closed_all_week(hours: WorkingHours) -> bool:
    return not any(hours.get(day) for day in DAY_KEYS)


def sanitize_clinics(raw: Any) -> list[dict]:
    """
    Clean up a doctor's clinics list: tolerate the old single "clinic" object,
    name/address aliases, and both spellings of the hours container.
    """
    if isinstance(raw, Mapping):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return []

    clinics = []
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping):
            continue
        clinic_id = item.get("id") or item.get("_id") or str(index)
        clinics.append({
            "id": str(clinic_id),
            "name_en": str(item.get("name_en") or item.get("name") or "").strip(),
            "name_ar": str(item.get("name_ar") or item.get("name") or "").strip(),
            "active": item.get("active") is not False,
            "working_hours": item.get("working_hours") or item.get("workingHours"),
        })
    return clinics


def find_clinic(clinics: list[dict], clinic_id: Optional[str]) -> Optional[dict]:
    if not clinic_id:
        return None
    return next((c for c in clinics if c["id"] == str(clinic_id)), None)


def resolve_working_hours(
    doctor_hours: Any,
    clinics: Any,
    clinic_id: Optional[str] = None,
) -> WorkingHours:
    """
    Effective hours for a booking context: the selected clinic's own hours, or
    the doctor-level hours when no clinic is selected. An unknown or inactive
    clinic is closed.
    """
    if not clinic_id:
        return normalize_working_hours(doctor_hours)

    clinic = find_clinic(sanitize_clinics(clinics), clinic_id)
    if clinic is None:
        logger.warning("Clinic %s not found on doctor profile - treating as closed", clinic_id)
        return closed_week()
    if not clinic["active"]:
        logger.info("Clinic %s is inactive - treating as closed", clinic_id)
        return closed_week()
    return normalize_working_hours(clinic["working_hours"])
