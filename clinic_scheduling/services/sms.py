"""
Patient messaging over Twilio - plain SMS or the WhatsApp channel.

One attempt per message. Failures are classified (permanent: bad number,
landline, carrier opt-out; transient: unreachable handset) for the logs only.
Never raises: callers get a result dict and decide what a failure means for them.
"""
import asyncio
import logging
import math
from typing import Optional

logger = logging.getLogger(__name__)

# Segment limits (Arabic templates fall back to UCS-2)
GSM_SINGLE_SEGMENT = 160
GSM_MULTI_SEGMENT = 153
UCS2_SINGLE_SEGMENT = 70
UCS2_MULTI_SEGMENT = 67
MAX_SEGMENTS = 3

PERMANENT_ERRORS = {
    "21211",  # Invalid "To" number
    "21408",  # Region not enabled
    "21610",  # Recipient opted out at carrier
    "21612",  # Number cannot receive SMS
    "30006",  # Landline or unreachable
    "63003",  # WhatsApp: invalid recipient
}
TRANSIENT_ERRORS = {
    "30003",  # Handset unreachable
    "30008",  # Unknown carrier error
    "63016",  # WhatsApp: outside session window
}

TWILIO_CLIENT_TIMEOUT = 10

_GSM7_CHARS = set(
    "@£$¥èéùìòÇ\nØø\rÅåΔ_ΦΓΛΩΠΨΣΘΞ ÆæßÉ"
    " !\"#¤%&'()*+,-./0123456789:;<=>?"
    "¡ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "ÄÖÑÜabcdefghijklmnopqrstuvwxyz"
    "äöñüà§^{}\\[~]|€"
)


def mask_phone(phone: Optional[str]) -> str:
    """Mask phone number for logging - keep the first 6 characters."""
    if not phone:
        return ""
    if len(phone) > 6:
        return phone[:6] + "***"
    return phone


def count_segments(message: str) -> int:
    if all(c in _GSM7_CHARS for c in message):
        single, multi = GSM_SINGLE_SEGMENT, GSM_MULTI_SEGMENT
    else:
        single, multi = UCS2_SINGLE_SEGMENT, UCS2_MULTI_SEGMENT
    if len(message) <= single:
        return 1
    return math.ceil(len(message) / multi)


def truncate_to_segments(message: str, max_segments: int = MAX_SEGMENTS) -> str:
    if count_segments(message) <= max_segments:
        return message
    gsm = all(c in _GSM7_CHARS for c in message)
    limit = (GSM_MULTI_SEGMENT if gsm else UCS2_MULTI_SEGMENT) * max_segments - 3
    logger.warning("Patient message truncated to %d segments", max_segments)
    return message[:limit] + "..."


def classify_error(error_code: Optional[str]) -> str:
    """Returns "permanent", "transient", or "unknown"."""
    if not error_code:
        return "unknown"
    code = str(error_code)
    if code in PERMANENT_ERRORS:
        return "permanent"
    if code in TRANSIENT_ERRORS:
        return "transient"
    return "unknown"


def _extract_error_code(error: Exception) -> Optional[str]:
    code = getattr(error, "code", None)
    return str(code) if code is not None else None


def _get_twilio_client():
    """Twilio REST client with a bounded HTTP timeout."""
    from twilio.rest import Client as TwilioClient
    from twilio.http.http_client import TwilioHttpClient
    from clinic_scheduling.config import get_settings
    settings = get_settings()
    return TwilioClient(
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        http_client=TwilioHttpClient(timeout=TWILIO_CLIENT_TIMEOUT),
    )


async def _run_sync(func, *args, **kwargs):
    """Run the blocking Twilio SDK call in the thread pool."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: func(*args, **kwargs))


def _address(phone: str, channel: str) -> str:
    if channel == "whatsapp" and not phone.startswith("whatsapp:"):
        return f"whatsapp:{phone}"
    return phone


async def _send_twilio(to: str, body: str, channel: str) -> dict:
    from clinic_scheduling.config import get_settings
    settings = get_settings()
    client = _get_twilio_client()

    kwargs = {"to": _address(to, channel), "body": body}
    if settings.twilio_messaging_service_sid and channel == "sms":
        kwargs["messaging_service_sid"] = settings.twilio_messaging_service_sid
    elif settings.twilio_from_number:
        kwargs["from_"] = _address(settings.twilio_from_number, channel)
    else:
        raise ValueError("TWILIO_FROM_NUMBER or TWILIO_MESSAGING_SERVICE_SID required")

    message = await _run_sync(client.messages.create, **kwargs)
    return {"sid": message.sid, "status": message.status}


def _result(sid=None, status="failed", error=None, error_code=None, segments=0, channel="sms") -> dict:
    return {
        "sid": sid,
        "status": status,
        "channel": channel,
        "segments": segments,
        "error": error,
        "error_code": error_code,
    }


async def send_sms(to: str, body: str, channel: Optional[str] = None) -> dict:
    """
    Send one patient message. A single attempt: failures are logged and
    returned, never retried.

    Returns: {"sid", "status", "channel", "segments", "error", "error_code"}
    with error=None on success.
    """
    from clinic_scheduling.config import get_settings
    settings = get_settings()
    channel = channel or settings.notification_channel
    body = truncate_to_segments(body)
    segments = count_segments(body)
    masked = mask_phone(to)

    if not to:
        return _result(error="No recipient phone number", segments=segments, channel=channel)

    try:
        sent = await _send_twilio(to, body, channel)
    except Exception as e:
        error_code = _extract_error_code(e)
        logger.error(
            "Send to %s failed (%s): code=%s %s",
            masked, classify_error(error_code), error_code, str(e),
        )
        return _result(error=str(e), error_code=error_code, segments=segments, channel=channel)

    logger.info("Message sent via %s to %s: %s", channel, masked, sent.get("sid"))
    return _result(
        sid=sent.get("sid"), status=sent.get("status", "sent"),
        segments=segments, channel=channel,
    )
