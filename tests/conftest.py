"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests. Mocks Twilio.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "true")

import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.dialects.postgresql import JSONB
from clinic_scheduling.database import Base
from clinic_scheduling.models.doctor import Doctor


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest.fixture
async def db():
    """In-memory SQLite database for tests."""
    import clinic_scheduling.models  # noqa: F401
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def mock_sms():
    """Mock for async send_sms - prevents real Twilio calls in tests."""
    with patch("clinic_scheduling.services.notifications.send_sms", new_callable=AsyncMock) as mock:
        mock.return_value = {
            "sid": "SM_test_123",
            "status": "queued",
            "channel": "sms",
            "segments": 1,
            "error": None,
            "error_code": None,
        }
        yield mock


@pytest.fixture
def weekday_hours():
    """Sun-Thu 09:00-12:00, Fri/Sat closed."""
    day = {"open": True, "start": "09:00", "end": "12:00"}
    closed = {"open": False}
    return {
        "sun": day, "mon": day, "tue": day, "wed": day, "thu": day,
        "fri": closed, "sat": closed,
    }


@pytest.fixture
async def doctor(db, weekday_hours):
    """Single-location doctor using doctor-level hours."""
    doc = Doctor(
        id="doc-1",
        name_en="Dr. Sara Adel",
        name_ar="د. سارة عادل",
        checkup_price=300.0,
        follow_up_price=150.0,
        price_currency="EGP",
        working_hours=weekday_hours,
        clinics=[],
    )
    db.add(doc)
    await db.commit()
    return doc


@pytest.fixture
async def multi_clinic_doctor(db):
    """Doctor with two active clinics and one inactive clinic."""
    doc = Doctor(
        id="doc-2",
        name_en="Dr. Omar Nabil",
        name_ar="د. عمر نبيل",
        checkup_price=400.0,
        price_currency="EGP",
        working_hours=None,
        clinics=[
            {
                "id": "downtown",
                "name_en": "Downtown",
                "name_ar": "وسط البلد",
                "working_hours": {"mon": {"open": True, "start": "10:00", "end": "11:00"}},
            },
            {
                "id": "heliopolis",
                "name": "Heliopolis",
                "workingHours": {"mon": "17:00-18:00"},
            },
            {
                "id": "old",
                "name_en": "Old branch",
                "active": False,
                "working_hours": {"mon": "09:00-17:00"},
            },
        ],
    )
    db.add(doc)
    await db.commit()
    return doc
