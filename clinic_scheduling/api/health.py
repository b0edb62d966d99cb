"""
Health check endpoints - used by load balancers and Docker healthcheck.

- GET /health       - basic liveness (always 200 if app running)
- GET /health/ready - readiness check (database reachable)
"""
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from clinic_scheduling.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])

VERSION = "1.0.0"


@router.get("/health")
async def health_check():
    """Basic liveness check - returns 200 if the app is running."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
    }


@router.get("/health/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
):
    """Readiness check - the appointment store must answer a trivial query."""
    try:
        await db.execute(text("SELECT 1"))
        database_ok = True
    except Exception as e:
        logger.error("Database health check failed: %s", str(e))
        database_ok = False

    body = {
        "status": "ready" if database_ok else "not_ready",
        "checks": {"database": database_ok},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return JSONResponse(status_code=200 if database_ok else 503, content=body)
