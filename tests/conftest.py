import os
from datetime import date, datetime, timedelta

import pytest

os.environ.setdefault('DATABASE_URL', 'sqlite+aiosqlite:///./test_salonbook.db')
os.environ.setdefault('SECRET_KEY', 'test-secret-key')
os.environ['ENV'] = 'test'
os.environ['SCHEDULER_ENABLED'] = 'false'
os.environ['BUSINESS_TIMEZONE'] = ''
os.environ['ADMIN_EMAILS'] = 'owner@example.com'

from sqlmodel import SQLModel  # noqa: E402

from salonbook.core.db import async_session_maker, engine, init_db  # noqa: E402
from salonbook.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from salonbook.models.service import Service  # noqa: E402
from salonbook.models.user import User  # noqa: E402
from salonbook.services.calendar_service import business_calendar  # noqa: E402
import salonbook.models  # noqa: E402,F401 - register every table before drop_all


@pytest.fixture
def future_monday() -> date:
    """A Monday at least two weeks out, so bookings on it are never in the past."""
    today = date.today()
    return today + timedelta(days=(0 - today.weekday()) % 7 + 14)


@pytest.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await init_db()
    yield
    await engine.dispose()


@pytest.fixture
async def session(db):
    async with async_session_maker() as s:
        yield s


@pytest.fixture
async def user(session) -> User:
    u = User(email='ana@example.com', full_name='Ana Souza', phone='+5511987654321')
    session.add(u)
    await session.commit()
    await session.refresh(u)
    return u


@pytest.fixture
async def service(session) -> Service:
    s = Service(name='Haircut', duration_minutes=30, price=50.0)
    session.add(s)
    await session.commit()
    await session.refresh(s)
    return s


@pytest.fixture
def make_appointment(session, user, service):
    """Insert a booking directly, bypassing admission checks."""

    async def _make(
        start: datetime,
        minutes: int | None = None,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        owner: User | None = None,
    ) -> Appointment:
        appointment = Appointment(
            user_id=(owner or user).id,
            service_id=service.id,
            start_at=start,
            end_at=start + timedelta(minutes=minutes or service.duration_minutes),
            status=status,
        )
        session.add(appointment)
        await session.commit()
        await session.refresh(appointment)
        return appointment

    return _make


@pytest.fixture(autouse=True)
def fresh_business_calendar():
    business_calendar.invalidate()
    yield
    business_calendar.invalidate()
