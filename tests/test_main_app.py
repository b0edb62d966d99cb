"""
Tests for clinic_scheduling/main.py - app factory, correlation IDs, lifespan.
"""
import json
import logging
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi import FastAPI
from fastapi.testclient import TestClient

from clinic_scheduling.main import create_app, lifespan
from clinic_scheduling.utils.logging import (
    JsonLogFormatter,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)


def _make_mock_settings(**overrides):
    defaults = {
        "app_env": "test",
        "log_level": "WARNING",
        "cors_origins": ["http://localhost:3000"],
        "clinic_timezone": "Africa/Cairo",
        "slot_granularity_minutes": 30,
        "notifications_enabled": False,
        "twilio_account_sid": "",
    }
    defaults.update(overrides)
    settings = MagicMock()
    for k, v in defaults.items():
        setattr(settings, k, v)
    return settings


class TestCreateApp:
    def test_returns_fastapi_instance(self):
        with (
            patch("clinic_scheduling.main.get_settings", return_value=_make_mock_settings()),
            patch("clinic_scheduling.main.configure_structured_logging"),
        ):
            app = create_app()
        assert isinstance(app, FastAPI)
        assert app.title == "Clinic Scheduling"

    def test_configures_logging_level(self):
        with (
            patch("clinic_scheduling.main.get_settings", return_value=_make_mock_settings(log_level="DEBUG")),
            patch("clinic_scheduling.main.configure_structured_logging") as mock_log,
        ):
            create_app()
        mock_log.assert_called_once_with("DEBUG")

    def test_routes_registered(self):
        with (
            patch("clinic_scheduling.main.get_settings", return_value=_make_mock_settings()),
            patch("clinic_scheduling.main.configure_structured_logging"),
        ):
            app = create_app()
        paths = {route.path for route in app.routes}
        assert "/health" in paths
        assert "/api/v1/doctors/{doctor_id}/availability" in paths
        assert "/api/v1/appointments/{appointment_id}/status" in paths


class TestCorrelationId:
    def _client(self):
        with (
            patch("clinic_scheduling.main.get_settings", return_value=_make_mock_settings()),
            patch("clinic_scheduling.main.configure_structured_logging"),
        ):
            app = create_app()
        return TestClient(app)

    def test_generated_when_missing(self):
        response = self._client().get("/health")
        assert response.status_code == 200
        assert len(response.headers["X-Correlation-ID"]) == 32

    def test_echoed_when_provided(self):
        response = self._client().get("/health", headers={"X-Correlation-ID": "abc123"})
        assert response.headers["X-Correlation-ID"] == "abc123"


class TestLifespan:
    @pytest.mark.asyncio
    async def test_development_creates_tables_and_disposes(self):
        with (
            patch("clinic_scheduling.main.get_settings", return_value=_make_mock_settings(app_env="development")),
            patch("clinic_scheduling.main.init_models", new_callable=AsyncMock) as mock_init,
            patch("clinic_scheduling.main.dispose_engine", new_callable=AsyncMock) as mock_dispose,
        ):
            async with lifespan(FastAPI()):
                mock_init.assert_awaited_once()
            mock_dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_production_skips_create_all(self):
        with (
            patch("clinic_scheduling.main.get_settings", return_value=_make_mock_settings(app_env="production")),
            patch("clinic_scheduling.main.init_models", new_callable=AsyncMock) as mock_init,
            patch("clinic_scheduling.main.dispose_engine", new_callable=AsyncMock),
        ):
            async with lifespan(FastAPI()):
                pass
        mock_init.assert_not_called()


class TestStructuredLogging:
    def test_correlation_id_roundtrip(self):
        cid = generate_correlation_id()
        set_correlation_id(cid)
        assert get_correlation_id() == cid

    def test_json_line_includes_context(self):
        set_correlation_id("req-1")
        record = logging.LogRecord(
            "clinic_scheduling.services.booking", logging.INFO, __file__, 1,
            "Booked %s", ("09:00",), None,
        )
        record.appointment_id = "a1b2"
        entry = json.loads(JsonLogFormatter().format(record))
        assert entry["message"] == "Booked 09:00"
        assert entry["correlation_id"] == "req-1"
        assert entry["appointment_id"] == "a1b2"
        assert entry["level"] == "INFO"
