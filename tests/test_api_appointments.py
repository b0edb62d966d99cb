"""
Tests for the scheduling endpoints - called directly with an in-memory session.
"""
import pytest
from datetime import date, datetime
from unittest.mock import patch
from fastapi import HTTPException

from clinic_scheduling.api.appointments import (
    add_appointment_fee,
    book_appointment,
    get_appointment,
    get_availability,
    get_daily_income,
    get_today_queue,
    update_appointment_status,
)
from clinic_scheduling.schemas.appointments import (
    CreateAppointmentRequest,
    ExtraFeeIn,
    StatusUpdateRequest,
)

MONDAY = date(2026, 3, 2)
MONDAY_MORNING = datetime(2026, 3, 2, 8, 0)


@pytest.fixture
def frozen_clock():
    """Pin the clinic clock to Monday 08:00 everywhere it is read."""
    targets = (
        "clinic_scheduling.api.appointments.clinic_now",
        "clinic_scheduling.services.availability.clinic_now",
        "clinic_scheduling.services.booking.clinic_now",
        "clinic_scheduling.services.lifecycle.clinic_now",
    )
    patches = [patch(t, return_value=MONDAY_MORNING) for t in targets]
    for p in patches:
        p.start()
    yield MONDAY_MORNING
    for p in patches:
        p.stop()


def _booking(time="09:00", **overrides):
    fields = dict(date=MONDAY, time=time, patient_id="p-1", patient_name="Mona", patient_phone="01012345678")
    fields.update(overrides)
    return CreateAppointmentRequest(**fields)


class TestAvailabilityEndpoint:
    @pytest.mark.asyncio
    async def test_lists_free_slots(self, db, doctor, frozen_clock):
        result = await get_availability("doc-1", day=MONDAY, clinic_id=None, db=db)
        assert result.available is True
        assert result.slots[0] == "09:00"
        assert len(result.slots) == 6

    @pytest.mark.asyncio
    async def test_no_availability_is_not_an_error(self, db, doctor, frozen_clock):
        result = await get_availability("doc-1", day=date(2026, 3, 6), clinic_id=None, db=db)
        assert result.slots == []
        assert result.available is False


class TestBookingEndpoint:
    @pytest.mark.asyncio
    async def test_books_and_returns_detail(self, db, doctor, frozen_clock):
        result = await book_appointment("doc-1", _booking(), db=db)
        appt = result.appointment
        assert appt.status == "confirmed"
        assert appt.time == "09:00"
        assert appt.total == 300.0
        assert appt.currency == "EGP"
        assert appt.queue_number == 1
        assert appt.whatsapp_url.startswith("https://wa.me/201012345678?text=")
        assert result.notified is False

    @pytest.mark.asyncio
    async def test_booked_slot_disappears_from_availability(self, db, doctor, frozen_clock):
        await book_appointment("doc-1", _booking("10:00"), db=db)
        result = await get_availability("doc-1", day=MONDAY, clinic_id=None, db=db)
        assert "10:00" not in result.slots

    @pytest.mark.asyncio
    async def test_conflict_is_409_with_friendly_message(self, db, doctor, frozen_clock):
        await book_appointment("doc-1", _booking(), db=db)
        with pytest.raises(HTTPException) as exc_info:
            await book_appointment("doc-1", _booking(patient_id="p-2"), db=db)
        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == {
            "code": "slot_no_longer_available",
            "message": "This time was just taken, please pick another.",
        }

    @pytest.mark.asyncio
    async def test_conflict_message_in_arabic(self, db, doctor, frozen_clock):
        await book_appointment("doc-1", _booking(), db=db)
        with pytest.raises(HTTPException) as exc_info:
            await book_appointment("doc-1", _booking(patient_id="p-2", language="ar"), db=db)
        assert exc_info.value.detail["message"] == "تم حجز هذا الوقت للتو، يرجى اختيار وقت آخر."

    @pytest.mark.asyncio
    async def test_missing_clinic_is_422(self, db, multi_clinic_doctor, frozen_clock):
        with pytest.raises(HTTPException) as exc_info:
            await book_appointment("doc-2", _booking("10:00"), db=db)
        assert exc_info.value.status_code == 422
        assert exc_info.value.detail["message"] == "Please choose a clinic first."

    @pytest.mark.asyncio
    async def test_notify_on_booking(self, db, doctor, frozen_clock, mock_sms):
        result = await book_appointment("doc-1", _booking(notify_patient=True), db=db)
        assert result.notified is True
        mock_sms.assert_called_once()


class TestQueueEndpoints:
    @pytest.mark.asyncio
    async def test_today_queue_ordered_by_time(self, db, doctor, frozen_clock):
        await book_appointment("doc-1", _booking("11:00", patient_id="p-1"), db=db)
        await book_appointment("doc-1", _booking("09:30", patient_id="p-2"), db=db)
        await book_appointment("doc-1", _booking("10:00", patient_id="p-3"), db=db)

        result = await get_today_queue("doc-1", clinic_id=None, db=db)
        assert result.total == 3
        assert [(a.queue_number, a.time) for a in result.appointments] == [
            (1, "09:30"), (2, "10:00"), (3, "11:00"),
        ]

    @pytest.mark.asyncio
    async def test_get_appointment(self, db, doctor, frozen_clock):
        booked = await book_appointment("doc-1", _booking("10:30"), db=db)
        detail = await get_appointment(booked.appointment.id, db=db)
        assert detail.id == booked.appointment.id
        assert detail.queue_number == 1

    @pytest.mark.asyncio
    async def test_get_unknown_appointment_is_404(self, db, frozen_clock):
        with pytest.raises(HTTPException) as exc_info:
            await get_appointment("not-a-uuid", db=db)
        assert exc_info.value.status_code == 404


class TestStatusEndpoint:
    @pytest.mark.asyncio
    async def test_complete_with_fee(self, db, doctor, frozen_clock, mock_sms):
        booked = await book_appointment("doc-1", _booking(), db=db)
        result = await update_appointment_status(
            booked.appointment.id,
            StatusUpdateRequest(status="completed", extra_fee=ExtraFeeIn(description="X-ray", amount=50)),
            db=db,
        )
        assert result.changed is True
        assert result.notified is True
        assert result.appointment.status == "completed"
        assert result.appointment.total == 350.0
        assert result.appointment.extra_fees[0].description == "X-ray"

    @pytest.mark.asyncio
    async def test_illegal_transition_is_409(self, db, doctor, frozen_clock, mock_sms):
        booked = await book_appointment("doc-1", _booking(), db=db)
        await update_appointment_status(booked.appointment.id, StatusUpdateRequest(status="cancelled"), db=db)
        with pytest.raises(HTTPException) as exc_info:
            await update_appointment_status(booked.appointment.id, StatusUpdateRequest(status="confirmed"), db=db)
        assert exc_info.value.status_code == 409
        assert exc_info.value.detail["code"] == "invalid_transition"

    @pytest.mark.asyncio
    async def test_notification_failure_returned_as_warning(self, db, doctor, frozen_clock, mock_sms):
        mock_sms.return_value = {"sid": None, "status": "failed", "error": "Invalid To", "error_code": "21211"}
        booked = await book_appointment("doc-1", _booking(), db=db)
        result = await update_appointment_status(
            booked.appointment.id, StatusUpdateRequest(status="cancelled"), db=db,
        )
        assert result.appointment.status == "cancelled"
        assert [w.code for w in result.warnings] == ["notification_delivery_failed"]


class TestFeesEndpoint:
    @pytest.mark.asyncio
    async def test_add_fee(self, db, doctor, frozen_clock):
        booked = await book_appointment("doc-1", _booking(), db=db)
        result = await add_appointment_fee(
            booked.appointment.id, ExtraFeeIn(description="Dressing", amount=25), db=db,
        )
        assert result.appointment.total == 325.0

    @pytest.mark.asyncio
    async def test_unknown_appointment_is_404(self, db, frozen_clock):
        with pytest.raises(HTTPException) as exc_info:
            await add_appointment_fee(
                "8b7f0c8e-0000-4000-8000-000000000000",
                ExtraFeeIn(description="Dressing", amount=25),
                db=db,
            )
        assert exc_info.value.status_code == 404


class TestFinanceEndpoint:
    @pytest.mark.asyncio
    async def test_daily_income(self, db, doctor, frozen_clock, mock_sms):
        first = await book_appointment("doc-1", _booking("09:00"), db=db)
        await book_appointment("doc-1", _booking("09:30", patient_id="p-2", source="patient_app"), db=db)
        await add_appointment_fee(first.appointment.id, ExtraFeeIn(description="X-ray", amount=50), db=db)

        result = await get_daily_income("doc-1", days=7, db=db)
        assert len(result.days) == 7
        assert result.days[-1].date == MONDAY
        # The pending patient-app booking is not billable yet
        assert result.today_total == 350.0
        assert result.days[-1].appointments == 1
        assert result.currency == "EGP"

    @pytest.mark.asyncio
    async def test_unknown_doctor_is_404(self, db, frozen_clock):
        with pytest.raises(HTTPException) as exc_info:
            await get_daily_income("ghost", days=7, db=db)
        assert exc_info.value.status_code == 404
