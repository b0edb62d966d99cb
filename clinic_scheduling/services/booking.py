"""
Booking - validate a chosen slot at commit time and create the appointment.

The check is read-then-write without a cross-record transaction, so two
bookings racing for the same slot inside that window can both pass the read.
The unique (doctor, clinic, date, time) constraint on the table closes that
window for the exact slot; the loser's IntegrityError is reported as
SlotNoLongerAvailable like any other conflict.
"""
import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.config import get_settings
from clinic_scheduling.errors import BookingValidationError, SlotNoLongerAvailable
from clinic_scheduling.models.appointment import (
    Appointment,
    SOURCE_DOCTOR_APP,
    SOURCE_PATIENT_APP,
    STATUS_CONFIRMED,
    STATUS_PENDING,
    TYPE_CHECKUP,
    TYPE_FOLLOWUP,
)
from clinic_scheduling.services.appointment_store import AppointmentStore
from clinic_scheduling.services.availability import (
    booked_times,
    clinic_now,
    resolve_available_slots,
)
from clinic_scheduling.services.schedule_source import (
    active_clinics,
    booking_clinic_id,
    clinic_for,
    configured_price,
    effective_working_hours,
    get_doctor,
)
from clinic_scheduling.services.slots import generate_day_slots, slot_minutes

logger = logging.getLogger(__name__)

# Who created the booking decides where the lifecycle starts
INITIAL_STATUS = {
    SOURCE_PATIENT_APP: STATUS_PENDING,
    SOURCE_DOCTOR_APP: STATUS_CONFIRMED,
}


async def ensure_slot_free(
    store: AppointmentStore,
    doctor_id: str,
    clinic_id: Optional[str],
    appointment_date: date,
    appointment_time: str,
) -> set[str]:
    """
    Re-read the booked set for the slot's (doctor, clinic, date) and fail if
    the time is already taken. Returns the booked set that was read.
    """
    booked = booked_times(await store.read_many(doctor_id, appointment_date, clinic_id))
    if appointment_time in booked:
        logger.info(
            "Slot conflict: doctor=%s clinic=%s %s %s already booked",
            doctor_id, clinic_id or "-", appointment_date, appointment_time,
        )
        raise SlotNoLongerAvailable(appointment_date, appointment_time)
    return booked


def _normalize_time(value: str) -> str:
    try:
        minutes = slot_minutes(value)
    except ValueError:
        raise BookingValidationError(
            f"Invalid appointment time {value!r}",
            message_en="Please choose a valid time.",
            message_ar="اختر وقتاً صحيحاً.",
        )
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


async def create_appointment(
    db: AsyncSession,
    *,
    doctor_id: str,
    appointment_date: date,
    appointment_time: str,
    patient_id: str,
    patient_name: str = "",
    patient_phone: Optional[str] = None,
    clinic_id: Optional[str] = None,
    source: str = SOURCE_PATIENT_APP,
    appointment_type: str = TYPE_CHECKUP,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Appointment:
    """
    Book a slot. Patient-app bookings start pending, doctor-app bookings start
    confirmed. The doctor's current price is snapshotted onto the appointment.

    Raises BookingValidationError for bad requests and SlotNoLongerAvailable
    when the time is taken, past, or outside the clinic's hours.
    """
    if not patient_id:
        raise BookingValidationError(
            "patient_id is required",
            message_en="Please select a patient.",
            message_ar="الرجاء اختيار مريض.",
        )
    if appointment_date is None or not appointment_time:
        raise BookingValidationError(
            "appointment date and time are required",
            message_en="Please choose date & time.",
            message_ar="اختر التاريخ والوقت.",
        )
    if source not in INITIAL_STATUS:
        raise BookingValidationError(f"Unknown booking source {source!r}")
    if appointment_type not in (TYPE_CHECKUP, TYPE_FOLLOWUP):
        raise BookingValidationError(f"Unknown appointment type {appointment_type!r}")
    appointment_time = _normalize_time(appointment_time)

    doctor = await get_doctor(db, doctor_id)
    if doctor is None:
        raise BookingValidationError(f"Doctor {doctor_id} not found")

    clinic_id = booking_clinic_id(doctor, clinic_id)
    clinic = None
    if clinic_id:
        clinic = clinic_for(doctor, clinic_id)
        if clinic is None or not clinic["active"]:
            raise BookingValidationError(
                f"Clinic {clinic_id} not found or inactive for doctor {doctor_id}",
                message_en="This clinic is not available for booking.",
                message_ar="هذه العيادة غير متاحة للحجز.",
            )
    elif len(active_clinics(doctor)) > 1:
        raise BookingValidationError(
            "Doctor has several clinics and none was chosen",
            message_en="Please choose a clinic first.",
            message_ar="اختر العيادة أولاً.",
        )

    # Re-resolve at commit time: schedule, "now" and bookings may all have moved
    store = AppointmentStore(db)
    booked = await ensure_slot_free(store, doctor.id, clinic_id, appointment_date, appointment_time)
    hours = effective_working_hours(doctor, clinic_id)
    offerable = resolve_available_slots(
        generate_day_slots(hours, appointment_date),
        booked,
        appointment_date,
        now or clinic_now(),
    )
    if appointment_time not in offerable:
        logger.info(
            "Rejected booking outside offerable slots: doctor=%s %s %s",
            doctor.id, appointment_date, appointment_time,
        )
        raise SlotNoLongerAvailable(appointment_date, appointment_time)

    record = {
        "doctor_id": doctor.id,
        "clinic_id": clinic["id"] if clinic else "",
        "appointment_date": appointment_date,
        "appointment_time": appointment_time,
        "appointment_type": appointment_type,
        "patient_id": str(patient_id),
        "patient_name": (patient_name or "").strip(),
        "patient_phone": patient_phone or None,
        "doctor_name_en": doctor.name_en or "",
        "doctor_name_ar": doctor.name_ar or "",
        "clinic_name_en": clinic["name_en"] if clinic else "",
        "clinic_name_ar": clinic["name_ar"] if clinic else "",
        "status": INITIAL_STATUS[source],
        "source": source,
        "note": (note or "").strip() or None,
        "base_price": configured_price(doctor, appointment_type),
        "price_currency": doctor.price_currency or get_settings().default_currency,
        "extra_fees": [],
    }

    try:
        appointment_id = await store.create(record)
    except IntegrityError:
        await db.rollback()
        logger.warning(
            "Slot taken concurrently: doctor=%s clinic=%s %s %s",
            doctor_id, clinic_id or "-", appointment_date, appointment_time,
        )
        raise SlotNoLongerAvailable(appointment_date, appointment_time)

    return await store.get(appointment_id)
