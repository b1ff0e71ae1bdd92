import os
from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

# The app reads its settings at import time; point it at SQLite before that
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CACHE_ENABLED"] = "false"
os.environ["CLINIC_TIMEZONE"] = "UTC"
os.environ["LOG_FORMAT"] = "console"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from carequeue.database import get_db
from carequeue.dependencies import get_cache_manager, get_clock
from carequeue.main import app
from carequeue.models import metadata
from carequeue.schemas.appointments import AppointmentCreate, AppointmentResponse
from carequeue.schemas.availability import AvailabilityWindowCreate
from carequeue.schemas.patients import PatientCreate, PatientResponse
from carequeue.services.appointment_service import AppointmentService
from carequeue.services.availability_service import AvailabilityService
from carequeue.services.patient_service import PatientService
from carequeue.services.queue_service import QueueService
from carequeue.services.scheduling_service import SchedulingEngine

CLINIC_TZ = ZoneInfo("UTC")

# Monday
TODAY = date(2026, 10, 19)


class FrozenClock:
    """Clock that returns a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, hour: int, minute: int) -> None:
        self.now = datetime(TODAY.year, TODAY.month, TODAY.day, hour, minute, tzinfo=UTC)


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with all tables created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'carequeue_test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at 13:55 on the test day."""
    return FrozenClock(datetime(2026, 10, 19, 13, 55, tzinfo=UTC))


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    clock: FrozenClock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: None
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def build_engine(session: AsyncSession, timeout: float | None = None) -> SchedulingEngine:
    """Scheduling engine over the database-backed services of one session."""
    return SchedulingEngine(
        availability=AvailabilityService(session),
        appointments=AppointmentService(session),
        patients=PatientService(session),
        queue=QueueService(session),
        tz=CLINIC_TZ,
        timeout=timeout,
    )


@pytest.fixture
def engine(db_session: AsyncSession) -> SchedulingEngine:
    """Scheduling engine over the test session."""
    return build_engine(db_session)


@pytest.fixture
def clinician_id() -> UUID:
    return uuid4()


@pytest_asyncio.fixture
async def patient(db_session: AsyncSession) -> PatientResponse:
    """A registered patient record."""
    service = PatientService(db_session)
    return await service.register_patient(
        PatientCreate(user_id=uuid4(), full_name="Ada Lovelace", phone="+15550100")
    )


async def book(
    session: AsyncSession,
    clinician_id: UUID,
    patient_ref: UUID,
    hhmm: str = "14:00",
    on_date: date = TODAY,
) -> AppointmentResponse:
    """Insert an appointment straight into the ledger, skipping slot checks."""
    service = AppointmentService(session)
    return await service.create_appointment(
        AppointmentCreate(
            clinician_id=clinician_id,
            patient_id=patient_ref,
            appointment_date=on_date,
            appointment_time=hhmm,
            reason="Follow-up",
        )
    )


@pytest_asyncio.fixture
async def appointment(
    db_session: AsyncSession,
    clinician_id: UUID,
    patient: PatientResponse,
) -> AppointmentResponse:
    """Appointment at 14:00 on the test day for the registered patient."""
    return await book(db_session, clinician_id, patient.user_id)


@pytest_asyncio.fixture
async def weekday_calendar(db_session: AsyncSession, clinician_id: UUID) -> None:
    """Monday 09:00-17:00 and an overnight Friday 22:00-02:00."""
    service = AvailabilityService(db_session)
    await service.replace_windows(
        clinician_id,
        [
            AvailabilityWindowCreate(day_of_week=1, start_time="09:00", end_time="17:00"),
            AvailabilityWindowCreate(day_of_week=5, start_time="22:00", end_time="02:00"),
        ],
    )
