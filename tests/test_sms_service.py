"""
SMS service tests - error classification, segments, single-attempt delivery, channel addressing.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from clinic_scheduling.services.sms import (
    MAX_SEGMENTS,
    _address,
    classify_error,
    count_segments,
    mask_phone,
    send_sms,
    truncate_to_segments,
)


class CarrierError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.code = code


class TestClassifyError:
    def test_invalid_number_is_permanent(self):
        assert classify_error("21211") == "permanent"

    def test_landline_is_permanent(self):
        assert classify_error("30006") == "permanent"

    def test_whatsapp_invalid_recipient_is_permanent(self):
        assert classify_error(63003) == "permanent"

    def test_unreachable_is_transient(self):
        assert classify_error("30003") == "transient"

    def test_unknown_code(self):
        assert classify_error("99999") == "unknown"

    def test_none_code(self):
        assert classify_error(None) == "unknown"


class TestSegments:
    def test_short_gsm_one_segment(self):
        assert count_segments("Hello") == 1

    def test_161_gsm_two_segments(self):
        assert count_segments("x" * 161) == 2

    def test_arabic_uses_ucs2_limits(self):
        assert count_segments("م" * 70) == 1
        assert count_segments("م" * 71) == 2

    def test_truncation_respects_max_segments(self):
        msg = truncate_to_segments("x" * 1000)
        assert count_segments(msg) <= MAX_SEGMENTS
        assert msg.endswith("...")

    def test_short_message_unchanged(self):
        assert truncate_to_segments("See you at 09:00") == "See you at 09:00"


class TestHelpers:
    def test_mask_phone(self):
        assert mask_phone("+201012345678") == "+20101***"
        assert mask_phone("") == ""

    def test_whatsapp_address(self):
        assert _address("+201012345678", "whatsapp") == "whatsapp:+201012345678"
        assert _address("whatsapp:+201012345678", "whatsapp") == "whatsapp:+201012345678"
        assert _address("+201012345678", "sms") == "+201012345678"


class TestSendSms:
    @pytest.mark.asyncio
    async def test_success(self):
        with patch(
            "clinic_scheduling.services.sms._send_twilio",
            new_callable=AsyncMock,
            return_value={"sid": "SM123", "status": "queued"},
        ) as mock_send:
            result = await send_sms("+201012345678", "Your appointment is confirmed", channel="sms")

        assert result["error"] is None
        assert result["sid"] == "SM123"
        assert result["segments"] == 1
        mock_send.assert_called_once_with("+201012345678", "Your appointment is confirmed", "sms")

    @pytest.mark.asyncio
    async def test_transient_error_sent_once(self):
        mock_send = AsyncMock(side_effect=CarrierError("Handset unreachable", 30003))
        with (
            patch("clinic_scheduling.services.sms._send_twilio", mock_send),
            patch("clinic_scheduling.services.sms.asyncio.sleep", new_callable=AsyncMock) as mock_sleep,
        ):
            result = await send_sms("+201012345678", "Hello", channel="sms")

        assert mock_send.call_count == 1
        mock_sleep.assert_not_awaited()
        assert result["error"] == "Handset unreachable"
        assert result["error_code"] == "30003"

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self):
        mock_send = AsyncMock(side_effect=CarrierError("Invalid To", 21211))
        with patch("clinic_scheduling.services.sms._send_twilio", mock_send):
            result = await send_sms("+201012345678", "Hello", channel="sms")

        assert mock_send.call_count == 1
        assert result["error"] == "Invalid To"
        assert result["error_code"] == "21211"
        assert result["status"] == "failed"

    @pytest.mark.asyncio
    async def test_connection_error_is_single_attempt(self):
        mock_send = AsyncMock(side_effect=RuntimeError("connection reset"))
        with patch("clinic_scheduling.services.sms._send_twilio", mock_send):
            result = await send_sms("+201012345678", "Hello", channel="sms")

        mock_send.assert_awaited_once()
        assert result["sid"] is None
        assert result["error"] == "connection reset"
        assert result["error_code"] is None

    @pytest.mark.asyncio
    async def test_missing_sender_config_not_retried(self):
        mock_send = AsyncMock(side_effect=ValueError("TWILIO_FROM_NUMBER or TWILIO_MESSAGING_SERVICE_SID required"))
        with patch("clinic_scheduling.services.sms._send_twilio", mock_send):
            result = await send_sms("+201012345678", "Hello", channel="sms")
        assert mock_send.call_count == 1
        assert "TWILIO_FROM_NUMBER" in result["error"]

    @pytest.mark.asyncio
    async def test_no_recipient(self):
        result = await send_sms("", "Hello", channel="sms")
        assert result["error"] == "No recipient phone number"

    @pytest.mark.asyncio
    async def test_whatsapp_uses_prefixed_addresses(self):
        client = MagicMock()
        client.messages.create.return_value = MagicMock(sid="SMwa", status="queued")
        settings = MagicMock(
            twilio_messaging_service_sid="MG123",
            twilio_from_number="+20200000000",
            notification_channel="sms",
        )
        with (
            patch("clinic_scheduling.services.sms._get_twilio_client", return_value=client),
            patch("clinic_scheduling.config.get_settings", return_value=settings),
        ):
            result = await send_sms("+201012345678", "Hello", channel="whatsapp")

        assert result["sid"] == "SMwa"
        assert result["channel"] == "whatsapp"
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["to"] == "whatsapp:+201012345678"
        assert kwargs["from_"] == "whatsapp:+20200000000"
        assert "messaging_service_sid" not in kwargs
