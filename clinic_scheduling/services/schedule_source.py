"""
Schedule and price source - read-only access to doctor profiles.
Hours are edited by the profile flow; this core never writes them.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.models.appointment import TYPE_FOLLOWUP
from clinic_scheduling.models.doctor import Doctor
from clinic_scheduling.services.schedule_model import (
    WorkingHours,
    closed_week,
    find_clinic,
    resolve_working_hours,
    sanitize_clinics,
)

logger = logging.getLogger(__name__)


async def get_doctor(db: AsyncSession, doctor_id: str) -> Optional[Doctor]:
    if not doctor_id:
        return None
    return await db.get(Doctor, str(doctor_id))


def doctor_clinics(doctor: Doctor) -> list[dict]:
    return sanitize_clinics(doctor.clinics)


def active_clinics(doctor: Doctor) -> list[dict]:
    return [c for c in doctor_clinics(doctor) if c["active"]]


def clinic_for(doctor: Doctor, clinic_id: Optional[str]) -> Optional[dict]:
    return find_clinic(doctor_clinics(doctor), clinic_id)


def booking_clinic_id(doctor: Doctor, clinic_id: Optional[str]) -> Optional[str]:
    """
    The clinic a booking context refers to. A doctor with exactly one active
    clinic always books there, whether or not the caller named it.
    """
    if clinic_id:
        return clinic_id
    clinics = active_clinics(doctor)
    if len(clinics) == 1:
        return clinics[0]["id"]
    return None


def effective_working_hours(doctor: Optional[Doctor], clinic_id: Optional[str] = None) -> WorkingHours:
    """Clinic-scoped hours when a clinic is selected, doctor-level otherwise."""
    if doctor is None:
        return closed_week()
    return resolve_working_hours(doctor.working_hours, doctor.clinics, clinic_id)


def configured_price(doctor: Doctor, appointment_type: str = "checkup") -> float:
    """
    The doctor's current price for this kind of visit.
    Follow-ups use the follow-up price when one is set.
    """
    if appointment_type == TYPE_FOLLOWUP and doctor.follow_up_price:
        return float(doctor.follow_up_price)
    return float(doctor.checkup_price or 0.0)
