"""
Database models - import all models here so Alembic can discover them.
"""
from clinic_scheduling.models.doctor import Doctor
from clinic_scheduling.models.appointment import Appointment

__all__ = [
    "Doctor",
    "Appointment",
]
