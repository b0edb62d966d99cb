"""
Scheduling endpoints - availability, booking, today's queue, status changes,
extra fees, and the daily income summary.

The caller supplies doctor_id (and clinic_id) on every request; identity and
role checks happen upstream.
"""
import logging
from datetime import date, timedelta
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.database import get_db
from clinic_scheduling.errors import (
    AppointmentNotFound,
    BookingValidationError,
    InvalidFee,
    InvalidScheduleInput,
    InvalidTransition,
    SchedulingError,
    SlotNoLongerAvailable,
)
from clinic_scheduling.models.appointment import Appointment
from clinic_scheduling.schemas.appointments import (
    AppointmentDetail,
    AppointmentMutationResponse,
    AvailabilityResponse,
    CreateAppointmentRequest,
    DailyIncome,
    DailyIncomeResponse,
    ExtraFeeIn,
    ExtraFeeOut,
    StatusUpdateRequest,
    TodayQueueResponse,
    WarningOut,
)
from clinic_scheduling.services.appointment_store import AppointmentStore
from clinic_scheduling.services.availability import clinic_now, get_available_slots
from clinic_scheduling.services.booking import create_appointment
from clinic_scheduling.services.fees import FeeLedger, add_extra_fee, income_by_day
from clinic_scheduling.services.lifecycle import (
    get_todays_queue,
    notify_patient,
    queue_number_for,
    transition_appointment,
)
from clinic_scheduling.services.notifications import build_status_message, resolve_language, whatsapp_link
from clinic_scheduling.services.schedule_source import get_doctor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["appointments"])

ERROR_STATUS_CODES = {
    SlotNoLongerAvailable: 409,
    InvalidTransition: 409,
    BookingValidationError: 422,
    InvalidFee: 422,
    InvalidScheduleInput: 422,
    AppointmentNotFound: 404,
}


def _http_error(error: SchedulingError, language: Optional[str] = None) -> HTTPException:
    status_code = next(
        (code for cls, code in ERROR_STATUS_CODES.items() if isinstance(error, cls)),
        400,
    )
    logger.info("Scheduling request rejected (%s): %s", error.code, error)
    return HTTPException(status_code=status_code, detail=error.to_dict(resolve_language(language)))


def _to_detail(appointment: Appointment, queue_number: Optional[int] = None) -> AppointmentDetail:
    ledger = FeeLedger.for_appointment(appointment)
    return AppointmentDetail(
        id=str(appointment.id),
        doctor_id=appointment.doctor_id,
        clinic_id=appointment.clinic_id or None,
        date=appointment.appointment_date,
        time=appointment.appointment_time,
        appointment_type=appointment.appointment_type,
        status=appointment.status,
        source=appointment.source,
        patient_id=appointment.patient_id,
        patient_name=appointment.patient_name or "",
        base_price=ledger.base_price,
        extra_fees=[
            ExtraFeeOut(
                description=fee.get("description", ""),
                amount=float(fee.get("amount") or 0),
                created_at=fee.get("created_at"),
            )
            for fee in ledger.entries
        ],
        total=ledger.total,
        currency=appointment.price_currency or "",
        queue_number=queue_number,
        whatsapp_url=whatsapp_link(
            appointment.patient_phone,
            build_status_message(appointment, appointment.status),
        ),
        note=appointment.note,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


def _warnings(errors, language: Optional[str]) -> list[WarningOut]:
    return [WarningOut(**w.to_dict(resolve_language(language))) for w in errors]


# === AVAILABILITY ===

@router.get("/doctors/{doctor_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
    doctor_id: str,
    day: date = Query(alias="date"),
    clinic_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Free slots for one day. An empty list means no availability, not an error."""
    slots = await get_available_slots(db, doctor_id, day, clinic_id)
    return AvailabilityResponse(
        doctor_id=doctor_id,
        clinic_id=clinic_id,
        date=day,
        slots=slots,
        available=bool(slots),
    )


# === BOOKING ===

@router.post("/doctors/{doctor_id}/appointments", response_model=AppointmentMutationResponse, status_code=201)
async def book_appointment(
    doctor_id: str,
    payload: CreateAppointmentRequest,
    db: AsyncSession = Depends(get_db),
):
    """Book a slot; 409 when it was taken in the meantime."""
    try:
        appointment = await create_appointment(
            db,
            doctor_id=doctor_id,
            appointment_date=payload.date,
            appointment_time=payload.time,
            patient_id=payload.patient_id,
            patient_name=payload.patient_name,
            patient_phone=payload.patient_phone,
            clinic_id=payload.clinic_id,
            source=payload.source,
            appointment_type=payload.appointment_type,
            note=payload.note,
        )
    except SchedulingError as e:
        raise _http_error(e, payload.language)

    warnings = []
    notified = False
    if payload.notify_patient:
        warning = await notify_patient(appointment, appointment.status, payload.language)
        if warning is None:
            notified = True
        else:
            warnings.append(warning)

    queue_number = await queue_number_for(db, appointment)
    return AppointmentMutationResponse(
        appointment=_to_detail(appointment, queue_number),
        changed=True,
        notified=notified,
        warnings=_warnings(warnings, payload.language),
    )


# === TODAY'S QUEUE ===

@router.get("/doctors/{doctor_id}/appointments/today", response_model=TodayQueueResponse)
async def get_today_queue(
    doctor_id: str,
    clinic_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Today's appointments ordered by time, with freshly computed queue numbers."""
    today = clinic_now().date()
    queue = await get_todays_queue(db, doctor_id, clinic_id, today=today)
    return TodayQueueResponse(
        doctor_id=doctor_id,
        clinic_id=clinic_id,
        date=today,
        appointments=[_to_detail(appt, position) for position, appt in queue],
        total=len(queue),
    )


@router.get("/appointments/{appointment_id}", response_model=AppointmentDetail)
async def get_appointment(
    appointment_id: str,
    db: AsyncSession = Depends(get_db),
):
    appointment = await AppointmentStore(db).get(appointment_id)
    if appointment is None:
        raise _http_error(AppointmentNotFound(f"Appointment {appointment_id} not found"))
    return _to_detail(appointment, await queue_number_for(db, appointment))


# === LIFECYCLE ===

@router.post("/appointments/{appointment_id}/status", response_model=AppointmentMutationResponse)
async def update_appointment_status(
    appointment_id: str,
    payload: StatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Change status (optionally adding a fee). A failed patient notification is
    reported in `warnings`; the status change itself stays committed.
    """
    try:
        result = await transition_appointment(
            db,
            appointment_id,
            payload.status,
            extra_fee=payload.extra_fee.model_dump() if payload.extra_fee else None,
            language=payload.language,
            notify=payload.notify,
        )
    except SchedulingError as e:
        raise _http_error(e, payload.language)

    queue_number = await queue_number_for(db, result.appointment)
    return AppointmentMutationResponse(
        appointment=_to_detail(result.appointment, queue_number),
        changed=result.changed,
        notified=result.notified,
        warnings=_warnings(result.warnings, payload.language),
    )


@router.post("/appointments/{appointment_id}/fees", response_model=AppointmentMutationResponse)
async def add_appointment_fee(
    appointment_id: str,
    payload: ExtraFeeIn,
    db: AsyncSession = Depends(get_db),
):
    try:
        appointment = await add_extra_fee(db, appointment_id, payload.description, payload.amount)
    except SchedulingError as e:
        raise _http_error(e)
    return AppointmentMutationResponse(
        appointment=_to_detail(appointment, await queue_number_for(db, appointment)),
    )


# === FINANCE ===

@router.get("/doctors/{doctor_id}/finance/daily", response_model=DailyIncomeResponse)
async def get_daily_income(
    doctor_id: str,
    days: int = Query(default=14, ge=1, le=90),
    db: AsyncSession = Depends(get_db),
):
    """Billable income (confirmed + completed) per day, oldest first."""
    doctor = await get_doctor(db, doctor_id)
    if doctor is None:
        raise HTTPException(status_code=404, detail="Doctor not found")

    today = clinic_now().date()
    appointments = await AppointmentStore(db).list_for_doctor(
        doctor_id, today - timedelta(days=days - 1), today,
    )
    series = income_by_day(appointments, today, days)
    return DailyIncomeResponse(
        doctor_id=doctor_id,
        currency=doctor.price_currency or "",
        today_total=series[-1]["total"],
        days=[DailyIncome(**row) for row in series],
    )
