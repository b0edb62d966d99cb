"""
Appointment lifecycle - status transitions, fee updates riding along with
them, and the derived same-day queue.

    pending ──► confirmed ──► completed
       │            │
       └────────────┴──► cancelled

completed and cancelled are terminal. Re-applying the current status is
accepted and changes nothing but the fields sent with it.

Persisting a transition and telling the patient about it are two separate
steps: a failed notification comes back as a warning and never undoes the
committed status.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.errors import (
    AppointmentNotFound,
    InvalidTransition,
    NotificationDeliveryFailed,
)
from clinic_scheduling.models.appointment import (
    Appointment,
    STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_PENDING,
)
from clinic_scheduling.services.appointment_store import AppointmentStore
from clinic_scheduling.services.availability import clinic_now
from clinic_scheduling.services.fees import FeeLedger
from clinic_scheduling.services.notifications import notify_status_change
from clinic_scheduling.services.schedule_source import configured_price, get_doctor
from clinic_scheduling.services.slots import slot_minutes

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: {STATUS_PENDING, STATUS_CONFIRMED, STATUS_CANCELLED},
    STATUS_CONFIRMED: {STATUS_CONFIRMED, STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_COMPLETED: {STATUS_COMPLETED},
    STATUS_CANCELLED: {STATUS_CANCELLED},
}


@dataclass
class TransitionResult:
    appointment: Appointment
    previous_status: str
    changed: bool
    notified: bool = False
    warnings: list[NotificationDeliveryFailed] = field(default_factory=list)


def validate_transition(current: str, requested: str) -> None:
    if requested not in STATUSES:
        raise InvalidTransition(current, requested, f"Unknown status {requested!r}")
    allowed = ALLOWED_TRANSITIONS.get(current)
    if allowed is None:
        raise InvalidTransition(current, requested, f"Appointment has unknown status {current!r}")
    if requested not in allowed:
        raise InvalidTransition(current, requested)


def can_transition(current: str, requested: str) -> bool:
    try:
        validate_transition(current, requested)
    except InvalidTransition:
        return False
    return True


async def _backfill_base_price(db: AsyncSession, appointment: Appointment) -> Optional[float]:
    """
    Price to backfill when the snapshot is missing. A non-zero base price is
    never replaced.
    """
    if appointment.base_price:
        return None
    doctor = await get_doctor(db, appointment.doctor_id)
    if doctor is None:
        return None
    price = configured_price(doctor, appointment.appointment_type)
    return price or None


async def notify_patient(
    appointment: Appointment,
    status: str,
    language: Optional[str] = None,
) -> Optional[NotificationDeliveryFailed]:
    """Send the status message; a failure is returned, not raised."""
    outcome = await notify_status_change(appointment, status, language)
    if outcome.get("sent") or outcome.get("skipped"):
        return None
    warning = NotificationDeliveryFailed(outcome.get("error") or "Notification not delivered")
    logger.warning(
        "Appointment %s is %s but patient notification failed: %s",
        str(appointment.id)[:8], status, warning.detail,
    )
    return warning


async def transition_appointment(
    db: AsyncSession,
    appointment_id,
    new_status: str,
    *,
    extra_fee: Optional[dict] = None,
    language: Optional[str] = None,
    notify: bool = True,
) -> TransitionResult:
    """
    Move an appointment to `new_status`, optionally appending an extra fee
    ({"description", "amount"}) in the same write.
    """
    store = AppointmentStore(db)
    appointment = await store.get(appointment_id)
    if appointment is None:
        raise AppointmentNotFound(f"Appointment {appointment_id} not found")

    previous = appointment.status or STATUS_PENDING
    validate_transition(previous, new_status)
    changed = previous != new_status

    partial: dict = {}
    if changed:
        partial["status"] = new_status

    if extra_fee is not None:
        if new_status == STATUS_CANCELLED:
            raise InvalidTransition(previous, new_status, "Cannot add fees to a cancelled appointment")
        ledger = FeeLedger.for_appointment(appointment)
        ledger.append(extra_fee.get("description"), extra_fee.get("amount"))
        partial["extra_fees"] = ledger.entries

    backfill = await _backfill_base_price(db, appointment)
    if backfill is not None:
        partial["base_price"] = backfill
        logger.info("Backfilled base price %.2f on %s", backfill, str(appointment.id)[:8])

    if partial:
        appointment = await store.update(appointment.id, partial)

    result = TransitionResult(appointment=appointment, previous_status=previous, changed=changed)
    if changed:
        logger.info("Appointment %s: %s -> %s", str(appointment.id)[:8], previous, new_status)
        if notify:
            warning = await notify_patient(appointment, new_status, language)
            if warning is None:
                result.notified = True
            else:
                result.warnings.append(warning)
    return result


# === QUEUE ===

def _queue_sort_key(appointment: Appointment):
    created = appointment.created_at.isoformat() if appointment.created_at else ""
    return (slot_minutes(appointment.appointment_time), created, str(appointment.id))


def compute_queue_numbers(appointments: list[Appointment]) -> list[tuple[int, Appointment]]:
    """1-based queue positions by time of day, independent of insertion order."""
    ordered = sorted(appointments, key=_queue_sort_key)
    return [(position, appt) for position, appt in enumerate(ordered, start=1)]


async def get_todays_queue(
    db: AsyncSession,
    doctor_id: str,
    clinic_id: Optional[str] = None,
    today: Optional[date] = None,
) -> list[tuple[int, Appointment]]:
    """
    Today's appointments with their queue numbers, recomputed on every read.
    The numbers are a display aid: a booking made concurrently can shift them.
    """
    today = today or clinic_now().date()
    appointments = await AppointmentStore(db).read_many(doctor_id, today, clinic_id)
    return compute_queue_numbers(appointments)


async def queue_number_for(
    db: AsyncSession,
    appointment: Appointment,
    today: Optional[date] = None,
) -> Optional[int]:
    """
    Queue position of an appointment dated today within its clinic's queue;
    None for any other day.
    """
    today = today or clinic_now().date()
    if appointment.appointment_date != today:
        return None
    queue = await get_todays_queue(db, appointment.doctor_id, appointment.clinic_id or None, today=today)
    return next((pos for pos, appt in queue if appt.id == appointment.id), None)
