"""
Doctor model - profile fields the scheduler reads (hours, clinics, prices).
Working hours and clinics are stored as raw JSONB exactly as the profile editor
wrote them; schedule_model normalizes them on read.
"""
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Float, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from clinic_scheduling.database import Base


class Doctor(Base):
    __tablename__ = "doctors"

    # Opaque id from the identity provider
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name_en: Mapped[str] = mapped_column(String(255), default="")
    name_ar: Mapped[str] = mapped_column(String(255), default="")
    phone: Mapped[Optional[str]] = mapped_column(String(30))

    # Pricing
    checkup_price: Mapped[Optional[float]] = mapped_column(Float)
    follow_up_price: Mapped[Optional[float]] = mapped_column(Float)
    price_currency: Mapped[str] = mapped_column(String(10), default="EGP")

    # Doctor-level fallback hours (any legacy shape)
    working_hours: Mapped[Optional[dict]] = mapped_column(JSONB)
    # [{id, name_en, name_ar, active, working_hours|workingHours}, ...]
    clinics: Mapped[Optional[list]] = mapped_column(JSONB, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<Doctor {self.id} clinics={len(self.clinics or [])}>"
