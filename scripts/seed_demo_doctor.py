"""
Seed a demo doctor with two clinics into the database.

Usage:
    python scripts/seed_demo_doctor.py
"""
import asyncio
import logging

from clinic_scheduling.database import _get_session_factory, dispose_engine, init_models
from clinic_scheduling.models.doctor import Doctor

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_DOCTOR_ID = "demo-doctor"

DEMO_CLINICS = [
    {
        "id": "downtown",
        "name_en": "Downtown Clinic",
        "name_ar": "عيادة وسط البلد",
        "active": True,
        "working_hours": {
            "sun": {"open": True, "start": "10:00", "end": "14:00"},
            "tue": {"open": True, "start": "10:00", "end": "14:00"},
            "thu": {"open": True, "start": "10:00", "end": "14:00"},
        },
    },
    {
        "id": "heliopolis",
        "name_en": "Heliopolis Clinic",
        "name_ar": "عيادة مصر الجديدة",
        "active": True,
        "working_hours": {
            "mon": "17:00-21:00",
            "wed": "17:00-21:00",
            "sat": ["12:00-14:00", "18:00-20:00"],
        },
    },
]


async def seed():
    await init_models()
    async with _get_session_factory()() as session:
        existing = await session.get(Doctor, DEMO_DOCTOR_ID)
        if existing:
            logger.info("Demo doctor already exists (id=%s). Skipping.", existing.id)
        else:
            session.add(Doctor(
                id=DEMO_DOCTOR_ID,
                name_en="Dr. Sara Adel",
                name_ar="د. سارة عادل",
                phone="+201000000000",
                checkup_price=300.0,
                follow_up_price=150.0,
                price_currency="EGP",
                working_hours={"sun": "09:00-12:00"},
                clinics=DEMO_CLINICS,
            ))
            await session.commit()
            logger.info("Created demo doctor %s with %d clinics", DEMO_DOCTOR_ID, len(DEMO_CLINICS))
    await dispose_engine()


if __name__ == "__main__":
    asyncio.run(seed())
