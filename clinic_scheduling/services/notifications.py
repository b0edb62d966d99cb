"""
Patient notifications for appointment status changes.
Templates per status in English and Arabic; delivery is fire-and-forget.
"""
import logging
import re
from typing import Optional
from urllib.parse import quote

from clinic_scheduling.models.appointment import Appointment
from clinic_scheduling.services.fees import appointment_total
from clinic_scheduling.services.sms import send_sms, mask_phone

logger = logging.getLogger(__name__)

STATUS_TEMPLATES = {
    "en": {
        "pending": (
            "Hello {patient}, we received your appointment request with {doctor} "
            "on {date} at {time}{clinic}. We will confirm it shortly."
        ),
        "confirmed": (
            "Hello {patient}, your appointment with {doctor} on {date} at {time}{clinic} "
            "is confirmed. See you then!"
        ),
        "completed": (
            "Thank you for visiting {doctor}, {patient}. Total for your visit on {date}: "
            "{total} {currency}. Get well soon!"
        ),
        "cancelled": (
            "Hello {patient}, your appointment with {doctor} on {date} at {time}{clinic} "
            "has been cancelled. Contact the clinic to book a new time."
        ),
    },
    "ar": {
        "pending": (
            "مرحباً {patient}، استلمنا طلب حجز موعدك مع {doctor} يوم {date} الساعة {time}{clinic}. "
            "سيتم تأكيده قريباً."
        ),
        "confirmed": (
            "مرحباً {patient}، تم تأكيد موعدك مع {doctor} يوم {date} الساعة {time}{clinic}. "
            "في انتظارك!"
        ),
        "completed": (
            "شكراً لزيارتك {doctor} يا {patient}. إجمالي زيارة {date}: {total} {currency}. "
            "نتمنى لك الشفاء العاجل!"
        ),
        "cancelled": (
            "مرحباً {patient}، تم إلغاء موعدك مع {doctor} يوم {date} الساعة {time}{clinic}. "
            "تواصل مع العيادة لحجز موعد جديد."
        ),
    },
}

_CLINIC_SUFFIX = {"en": " at {name}", "ar": " في {name}"}


def format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}"


def resolve_language(language: Optional[str]) -> str:
    if not language:
        from clinic_scheduling.config import get_settings
        language = get_settings().default_language
    return "ar" if language.lower().startswith("ar") else "en"


def build_status_message(appointment: Appointment, status: str, language: Optional[str] = None) -> str:
    """Render the patient-facing message for a status."""
    lang = resolve_language(language)
    template = STATUS_TEMPLATES[lang].get(status)
    if template is None:
        raise KeyError(f"No notification template for status {status!r}")

    if lang == "ar":
        doctor = appointment.doctor_name_ar or appointment.doctor_name_en
        clinic_name = appointment.clinic_name_ar or appointment.clinic_name_en
        patient = appointment.patient_name or "عزيزنا المريض"
        doctor = doctor or "الطبيب"
    else:
        doctor = appointment.doctor_name_en or appointment.doctor_name_ar
        clinic_name = appointment.clinic_name_en or appointment.clinic_name_ar
        patient = appointment.patient_name or "there"
        doctor = doctor or "your doctor"

    clinic = _CLINIC_SUFFIX[lang].format(name=clinic_name) if clinic_name else ""
    total = appointment_total(appointment)
    return template.format(
        patient=patient,
        doctor=doctor,
        date=appointment.appointment_date.isoformat(),
        time=appointment.appointment_time,
        clinic=clinic,
        total=format_amount(total),
        currency=appointment.price_currency or "",
    )


def normalize_patient_phone(phone: Optional[str], country_code: Optional[str] = None) -> Optional[str]:
    """
    E.164-ish number for messaging. Local numbers starting with 0 get the
    clinic's country code ("01012345678" -> "+201012345678").
    """
    if not phone:
        return None
    raw = phone.strip()
    digits = re.sub(r"\D", "", raw)
    if len(digits) < 8:
        return None
    if raw.startswith("+"):
        return "+" + digits
    if digits.startswith("00"):
        return "+" + digits[2:]
    if digits.startswith("0"):
        if country_code is None:
            from clinic_scheduling.config import get_settings
            country_code = get_settings().default_country_code
        return f"+{country_code}{digits[1:]}"
    return "+" + digits


def whatsapp_link(phone: Optional[str], message: str) -> Optional[str]:
    """wa.me deep link with a pre-filled message, for manual sending from the desk."""
    normalized = normalize_patient_phone(phone)
    if not normalized:
        return None
    return f"https://wa.me/{normalized.lstrip('+')}?text={quote(message)}"


async def notify_status_change(
    appointment: Appointment,
    status: str,
    language: Optional[str] = None,
) -> dict:
    """
    Tell the patient about a status change.
    Returns {"sent": bool, "error": str|None}. Never raises.
    """
    from clinic_scheduling.config import get_settings
    if not get_settings().notifications_enabled:
        return {"sent": False, "error": None, "skipped": True}

    to = normalize_patient_phone(appointment.patient_phone)
    if not to:
        logger.warning("No usable phone for appointment %s - patient not notified", str(appointment.id)[:8])
        return {"sent": False, "error": "No patient phone number available"}

    try:
        body = build_status_message(appointment, status, language)
        result = await send_sms(to=to, body=body)
    except Exception as e:
        logger.error("Exception notifying patient %s: %s", mask_phone(to), str(e))
        return {"sent": False, "error": str(e)}

    if result.get("error"):
        logger.error("Failed to notify patient %s: %s", mask_phone(to), result["error"])
        return {"sent": False, "error": result["error"]}
    logger.info("Patient %s notified of %s appointment", mask_phone(to), status)
    return {"sent": True, "error": None}
