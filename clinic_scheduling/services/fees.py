"""
Fee ledger - base price plus append-only extra charges.

Currency-agnostic: amounts are carried in whatever unit the base price uses.
"""
import logging
import math
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone
from numbers import Real
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.errors import AppointmentNotFound, InvalidFee, InvalidTransition
from clinic_scheduling.models.appointment import (
    Appointment,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
)
from clinic_scheduling.services.appointment_store import AppointmentStore

logger = logging.getLogger(__name__)

# Statuses that count toward income (pending may still be cancelled)
BILLABLE_STATUSES = (STATUS_CONFIRMED, STATUS_COMPLETED)


def validate_fee(description, amount) -> tuple[str, float]:
    if not isinstance(description, str) or not description.strip():
        raise InvalidFee("Extra fee description is required")
    if isinstance(amount, bool) or not isinstance(amount, Real):
        raise InvalidFee(f"Extra fee amount must be a number, got {amount!r}")
    amount = float(amount)
    if math.isnan(amount) or math.isinf(amount) or amount < 0:
        raise InvalidFee(f"Extra fee amount must be non-negative, got {amount}")
    return description.strip(), amount


class FeeLedger:
    """Running total of an appointment's charges."""

    def __init__(self, base_price: Optional[float] = None, extra_fees: Optional[Iterable[dict]] = None):
        self.base_price = float(base_price or 0.0)
        self._entries = [dict(fee) for fee in (extra_fees or [])]

    @classmethod
    def for_appointment(cls, appointment: Appointment) -> "FeeLedger":
        return cls(appointment.base_price, appointment.extra_fees)

    @property
    def entries(self) -> list[dict]:
        return [dict(fee) for fee in self._entries]

    @property
    def extras_total(self) -> float:
        return sum(float(fee.get("amount") or 0) for fee in self._entries)

    @property
    def total(self) -> float:
        return self.base_price + self.extras_total

    def append(self, description: str, amount: float) -> dict:
        """Add one charge. Earlier entries are never modified or removed."""
        description, amount = validate_fee(description, amount)
        entry = {
            "description": description,
            "amount": amount,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        self._entries.append(entry)
        return dict(entry)


def appointment_total(appointment: Appointment) -> float:
    return FeeLedger.for_appointment(appointment).total


async def add_extra_fee(
    db: AsyncSession,
    appointment_id,
    description: str,
    amount: float,
) -> Appointment:
    """Persist one appended fee on an appointment."""
    store = AppointmentStore(db)
    appointment = await store.get(appointment_id)
    if appointment is None:
        raise AppointmentNotFound(f"Appointment {appointment_id} not found")
    if appointment.status == STATUS_CANCELLED:
        raise InvalidTransition(
            appointment.status, appointment.status,
            "Cannot add fees to a cancelled appointment",
        )

    ledger = FeeLedger.for_appointment(appointment)
    ledger.append(description, amount)
    updated = await store.update(appointment.id, {"extra_fees": ledger.entries})
    logger.info(
        "Extra fee added to %s: total now %.2f %s",
        str(appointment.id)[:8], ledger.total, appointment.price_currency,
    )
    return updated


def income_by_day(
    appointments: Iterable[Appointment],
    end: date,
    days: int = 14,
) -> list[dict]:
    """
    Billable income per day for the `days` days ending at `end`, oldest first.
    Only confirmed and completed appointments count.
    """
    start = end - timedelta(days=days - 1)
    totals = {start + timedelta(days=i): 0.0 for i in range(days)}
    counts = dict.fromkeys(totals, 0)
    for appt in appointments:
        if appt.status not in BILLABLE_STATUSES:
            continue
        if appt.appointment_date in totals:
            totals[appt.appointment_date] += appointment_total(appt)
            counts[appt.appointment_date] += 1
    return [
        {"date": day, "total": round(totals[day], 2), "appointments": counts[day]}
        for day in sorted(totals)
    ]
