"""
Availability resolver - which slots can still be offered for a doctor, date
and clinic.

The result is a snapshot: it may be stale by the time a booking is written,
which is why booking re-checks at commit time.
"""
import logging
from collections.abc import Iterable
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.services.appointment_store import AppointmentStore
from clinic_scheduling.services.schedule_source import (
    booking_clinic_id,
    effective_working_hours,
    get_doctor,
)
from clinic_scheduling.services.slots import generate_day_slots, slot_minutes

logger = logging.getLogger(__name__)


def clinic_now() -> datetime:
    """Current clinic-local wall clock (naive)."""
    from clinic_scheduling.config import get_settings
    tz = ZoneInfo(get_settings().clinic_timezone)
    return datetime.now(tz).replace(tzinfo=None)


def booked_times(appointments: Iterable) -> set[str]:
    """Time values already taken by existing appointments."""
    taken = set()
    for appt in appointments:
        tm = (getattr(appt, "appointment_time", None) or "").strip()
        if tm:
            taken.add(tm)
    return taken


def resolve_available_slots(
    generated: Iterable[str],
    booked: set[str],
    target_date: date,
    now: datetime,
) -> list[str]:
    """
    Generated slots minus booked ones, deduplicated and ascending.

    On the current day only slots strictly after the current minute survive:
    a slot starting this very minute has already begun. Past dates offer nothing.
    """
    today = now.date()
    if target_date < today:
        return []

    now_minute = now.hour * 60 + now.minute
    available = set()
    for slot in generated:
        if slot in booked:
            continue
        if target_date == today and slot_minutes(slot) <= now_minute:
            continue
        available.add(slot)
    return sorted(available, key=slot_minutes)


async def get_booked_times(
    db: AsyncSession,
    doctor_id: str,
    target_date: date,
    clinic_id: Optional[str] = None,
) -> set[str]:
    appointments = await AppointmentStore(db).read_many(doctor_id, target_date, clinic_id)
    return booked_times(appointments)


async def get_available_slots(
    db: AsyncSession,
    doctor_id: str,
    target_date: date,
    clinic_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[str]:
    """
    Offerable HH:MM slots for a doctor on a date.

    An empty list means "no availability" (closed day, unknown doctor, fully
    booked, or already past) - it is never an error.
    """
    now = now or clinic_now()
    doctor = await get_doctor(db, doctor_id)
    if doctor is None:
        logger.warning("Availability requested for unknown doctor %s", doctor_id)
        return []

    clinic_id = booking_clinic_id(doctor, clinic_id)
    hours = effective_working_hours(doctor, clinic_id)
    generated = generate_day_slots(hours, target_date)
    if not generated:
        return []

    booked = await get_booked_times(db, doctor_id, target_date, clinic_id)
    slots = resolve_available_slots(generated, booked, target_date, now)
    logger.debug(
        "Availability doctor=%s clinic=%s date=%s: %d generated, %d booked, %d free",
        doctor_id, clinic_id or "-", target_date, len(generated), len(booked), len(slots),
    )
    return slots
