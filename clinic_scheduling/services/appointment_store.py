"""
Appointment store - the generic record-store contract the scheduler writes through.

Each write is a single committed row, mirroring a document store with
single-document atomicity. Nothing here spans more than one record, so
cross-record invariants (one booking per slot) are left to the booking guard
and the uniqueness constraint on the table.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.errors import AppointmentNotFound
from clinic_scheduling.models.appointment import Appointment

logger = logging.getLogger(__name__)

# Fields fixed at booking time
IMMUTABLE_FIELDS = frozenset({
    "id", "doctor_id", "clinic_id", "appointment_date", "appointment_time",
    "patient_id", "created_at",
})


def _coerce_id(appointment_id) -> Optional[uuid.UUID]:
    if isinstance(appointment_id, uuid.UUID):
        return appointment_id
    try:
        return uuid.UUID(str(appointment_id))
    except (ValueError, AttributeError, TypeError):
        return None


class AppointmentStore:
    """Thin CRUD layer over the appointments table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, record: dict) -> uuid.UUID:
        """Insert one appointment and commit. IntegrityError propagates to the caller."""
        appointment = Appointment(**record)
        self.db.add(appointment)
        await self.db.commit()
        logger.info(
            "Appointment created: %s doctor=%s clinic=%s %s %s",
            str(appointment.id)[:8], appointment.doctor_id, appointment.clinic_id or "-",
            appointment.appointment_date, appointment.appointment_time,
        )
        return appointment.id

    async def get(self, appointment_id) -> Optional[Appointment]:
        key = _coerce_id(appointment_id)
        if key is None:
            return None
        return await self.db.get(Appointment, key)

    async def read_many(
        self,
        doctor_id: str,
        appointment_date: date,
        clinic_id: Optional[str] = None,
    ) -> list[Appointment]:
        """
        All appointments for a doctor on a date, any status.
        With a clinic, that clinic's bookings plus any booked without a clinic,
        which hold the doctor's time everywhere. Without one, every clinic's.
        """
        query = select(Appointment).where(
            Appointment.doctor_id == str(doctor_id),
            Appointment.appointment_date == appointment_date,
        )
        if clinic_id:
            query = query.where(or_(
                Appointment.clinic_id == str(clinic_id),
                Appointment.clinic_id == "",
            ))
        result = await self.db.execute(query.order_by(Appointment.appointment_time))
        return list(result.scalars().all())

    async def list_for_doctor(
        self,
        doctor_id: str,
        start: date,
        end: date,
    ) -> list[Appointment]:
        """Appointments between two dates inclusive."""
        result = await self.db.execute(
            select(Appointment)
            .where(
                Appointment.doctor_id == str(doctor_id),
                Appointment.appointment_date >= start,
                Appointment.appointment_date <= end,
            )
            .order_by(Appointment.appointment_date, Appointment.appointment_time)
        )
        return list(result.scalars().all())

    async def update(self, appointment_id, partial: dict) -> Appointment:
        """Apply a partial update to one appointment and commit."""
        appointment = await self.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFound(f"Appointment {appointment_id} not found")

        blocked = IMMUTABLE_FIELDS.intersection(partial)
        if blocked:
            raise ValueError(f"Immutable appointment fields: {', '.join(sorted(blocked))}")

        for field, value in partial.items():
            setattr(appointment, field, value)
        appointment.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        return appointment
