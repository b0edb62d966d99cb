"""
Clinic scheduling API - FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from clinic_scheduling.config import get_settings
from clinic_scheduling.api.router import api_router
from clinic_scheduling.database import dispose_engine, init_models
from clinic_scheduling.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger("clinic_scheduling")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(
        "Clinic scheduling starting up (env=%s, tz=%s, slot=%dmin)",
        settings.app_env, settings.clinic_timezone, settings.slot_granularity_minutes,
    )

    if settings.notifications_enabled and not settings.twilio_account_sid:
        logger.warning(
            "NOTIFICATIONS_ENABLED=true but TWILIO_ACCOUNT_SID is not set. "
            "Status changes will be saved with a notification warning."
        )

    if settings.app_env == "development":
        await init_models()

    yield

    await dispose_engine()
    logger.info("Clinic scheduling shutdown complete")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()
    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="Clinic Scheduling",
        description="Doctor availability, appointment booking and same-day queue",
        version="1.0.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Authorization", "Content-Type", "X-Correlation-ID",
            "Accept", "Origin", "X-Requested-With",
        ],
    )

    # Added after CORS so it runs on every request
    application.add_middleware(CorrelationIdMiddleware)

    application.include_router(api_router)

    return application


app = create_app()
