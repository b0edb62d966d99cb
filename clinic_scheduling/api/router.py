"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from clinic_scheduling.api.appointments import router as appointments_router
from clinic_scheduling.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(appointments_router)
api_router.include_router(health_router)
