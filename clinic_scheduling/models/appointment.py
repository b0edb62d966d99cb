"""
Appointment model - one booked slot with its status and fee ledger.
The same-day queue number is derived on read and intentionally has no column.
"""
import uuid
from datetime import datetime, timezone, date
from typing import Optional
from sqlalchemy import String, Text, Float, DateTime, Date, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from clinic_scheduling.database import Base

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_COMPLETED, STATUS_CANCELLED)

SOURCE_PATIENT_APP = "patient_app"
SOURCE_DOCTOR_APP = "doctor_app"

TYPE_CHECKUP = "checkup"
TYPE_FOLLOWUP = "followup"


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    doctor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # "" when booked against the doctor's own hours (keeps the unique key comparable)
    clinic_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    # Slot binding (immutable after creation)
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    appointment_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM clinic-local
    appointment_type: Mapped[str] = mapped_column(String(20), default=TYPE_CHECKUP)  # checkup, followup

    # Patient
    patient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    patient_name: Mapped[str] = mapped_column(String(255), default="")
    patient_phone: Mapped[Optional[str]] = mapped_column(String(30))

    # Display snapshots taken at booking time
    doctor_name_en: Mapped[str] = mapped_column(String(255), default="")
    doctor_name_ar: Mapped[str] = mapped_column(String(255), default="")
    clinic_name_en: Mapped[str] = mapped_column(String(255), default="")
    clinic_name_ar: Mapped[str] = mapped_column(String(255), default="")

    status: Mapped[str] = mapped_column(
        String(20), default=STATUS_PENDING
    )  # pending, confirmed, completed, cancelled
    source: Mapped[str] = mapped_column(
        String(20), default=SOURCE_PATIENT_APP
    )  # patient_app, doctor_app
    note: Mapped[Optional[str]] = mapped_column(Text)

    # Fee ledger
    base_price: Mapped[Optional[float]] = mapped_column(Float)
    price_currency: Mapped[str] = mapped_column(String(10), default="EGP")
    extra_fees: Mapped[list] = mapped_column(JSONB, default=list)  # [{description, amount, created_at}]

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint(
            "doctor_id", "clinic_id", "appointment_date", "appointment_time",
            name="uq_appointments_slot",
        ),
        Index("ix_appointments_doctor_date", "doctor_id", "appointment_date"),
        Index("ix_appointments_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Appointment {self.appointment_date} {self.appointment_time} status={self.status}>"
