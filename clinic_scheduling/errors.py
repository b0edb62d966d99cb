"""
Scheduling error taxonomy.

Every error carries a stable ``code`` for API clients and a short, actionable
message in English and Arabic for the person at the front desk. Nothing here
should ever surface a raw internal fault to a user.
"""
from typing import Optional


class SchedulingError(Exception):
    code = "scheduling_error"
    message_en = "Something went wrong with this appointment."
    message_ar = "حدث خطأ في هذا الموعد."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(detail or self.message_en)

    def user_message(self, language: str = "en") -> str:
        return self.message_ar if language == "ar" else self.message_en

    def to_dict(self, language: str = "en") -> dict:
        return {"code": self.code, "message": self.user_message(language)}


class InvalidScheduleInput(SchedulingError, TypeError):
    """Working-hours payload has the wrong type entirely (not merely malformed)."""

    code = "invalid_schedule_input"
    message_en = "The working hours could not be read. Please re-enter them."
    message_ar = "تعذرت قراءة ساعات العمل. يرجى إدخالها مرة أخرى."


class SlotNoLongerAvailable(SchedulingError):
    code = "slot_no_longer_available"
    message_en = "This time was just taken, please pick another."
    message_ar = "تم حجز هذا الوقت للتو، يرجى اختيار وقت آخر."

    def __init__(self, appointment_date=None, appointment_time: Optional[str] = None):
        self.appointment_date = appointment_date
        self.appointment_time = appointment_time
        detail = None
        if appointment_time:
            detail = f"Slot {appointment_date} {appointment_time} is no longer available"
        super().__init__(detail)


class InvalidTransition(SchedulingError):
    code = "invalid_transition"
    message_en = "This appointment can no longer be changed to that status."
    message_ar = "لا يمكن تغيير حالة هذا الموعد إلى الحالة المطلوبة."

    def __init__(self, current: str, requested: str, detail: Optional[str] = None):
        self.current = current
        self.requested = requested
        super().__init__(detail or f"Cannot move appointment from {current} to {requested}")


class BookingValidationError(SchedulingError):
    code = "invalid_booking"
    message_en = "Some booking details are missing or invalid."
    message_ar = "بعض بيانات الحجز ناقصة أو غير صحيحة."

    def __init__(self, detail: str, message_en: Optional[str] = None, message_ar: Optional[str] = None):
        if message_en:
            self.message_en = message_en
        if message_ar:
            self.message_ar = message_ar
        super().__init__(detail)


class InvalidFee(SchedulingError):
    code = "invalid_fee"
    message_en = "Extra fees need a description and a non-negative amount."
    message_ar = "الرسوم الإضافية تحتاج إلى وصف ومبلغ غير سالب."


class AppointmentNotFound(SchedulingError):
    code = "appointment_not_found"
    message_en = "Appointment not found."
    message_ar = "لا يوجد موعد بهذا المعرف."


class NotificationDeliveryFailed(SchedulingError):
    """Non-fatal: returned as a warning next to a committed state change."""

    code = "notification_delivery_failed"
    message_en = "The change was saved, but the patient could not be notified."
    message_ar = "تم حفظ التغيير، لكن تعذر إبلاغ المريض."
