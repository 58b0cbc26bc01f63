import os
from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from pathlib import Path
from uuid import uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file, then pin what tests rely on.
# Settings are read at import time, so this must run before importing app.
load_dotenv()
os.environ.setdefault("DATABASE_URL", "sqlite:///./dental_pms_test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ["CACHE_ENABLED"] = "false"

from app.core.security import create_access_token  # noqa: E402
from app.database import get_async_database_url, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import clinics, metadata, patients, users  # noqa: E402

# Postgres can be used by setting TEST_DATABASE_URL; otherwise each test gets
# a throwaway SQLite file.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

APPOINTMENT_DATE = "2024-06-01"


@pytest_asyncio.fixture
async def db_session(tmp_path: Path) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on freshly created tables."""
    url = get_async_database_url(TEST_DATABASE_URL or f"sqlite:///{tmp_path / 'test.db'}")
    engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _insert_clinic(db: AsyncSession, subdomain: str, settings: dict | None = None) -> dict:
    values = {
        "id": uuid4(),
        "name": f"{subdomain.title()} Dental",
        "subdomain": subdomain,
        "email": f"hello@{subdomain}.example.com",
        "phone": "+639171234567",
        "city": "Makati",
        "province": "Metro Manila",
        "settings": settings or {},
    }
    await db.execute(insert(clinics).values(**values))
    await db.commit()
    return values


async def _insert_staff(
    db: AsyncSession,
    clinic_id,
    role: str,
    first_name: str,
    last_name: str,
    is_active: bool = True,
) -> dict:
    values = {
        "id": uuid4(),
        "clinic_id": clinic_id,
        "email": f"{first_name.lower()}.{last_name.lower()}@example.com",
        "first_name": first_name,
        "last_name": last_name,
        "role": role,
        "is_active": is_active,
    }
    await db.execute(insert(users).values(**values))
    await db.commit()
    return values


async def _insert_patient(
    db: AsyncSession, clinic_id, created_by, number: str, first_name: str, last_name: str
) -> dict:
    values = {
        "id": uuid4(),
        "clinic_id": clinic_id,
        "patient_number": number,
        "first_name": first_name,
        "last_name": last_name,
        "allergies": [],
        "medications": [],
        "created_by": created_by,
    }
    await db.execute(insert(patients).values(**values))
    await db.commit()
    return values


@pytest_asyncio.fixture
async def clinic(db_session: AsyncSession) -> dict:
    """Clinic C1."""
    return await _insert_clinic(db_session, "smile")


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession, clinic: dict) -> dict:
    """Clinic administrator of C1."""
    return await _insert_staff(db_session, clinic["id"], "clinic_admin", "Ana", "Reyes")


@pytest_asyncio.fixture
async def receptionist(db_session: AsyncSession, clinic: dict) -> dict:
    """Front desk staff of C1."""
    return await _insert_staff(db_session, clinic["id"], "receptionist", "Liza", "Cruz")


@pytest_asyncio.fixture
async def dentist(db_session: AsyncSession, clinic: dict) -> dict:
    """Dentist D1."""
    return await _insert_staff(db_session, clinic["id"], "dentist", "Jose", "Santos")


@pytest_asyncio.fixture
async def second_dentist(db_session: AsyncSession, clinic: dict) -> dict:
    """Another dentist of C1."""
    return await _insert_staff(db_session, clinic["id"], "dentist", "Maria", "Garcia")


@pytest_asyncio.fixture
async def assistant(db_session: AsyncSession, clinic: dict) -> dict:
    """Dental assistant of C1."""
    return await _insert_staff(db_session, clinic["id"], "dental_assistant", "Ben", "Torres")


@pytest_asyncio.fixture
async def patient(db_session: AsyncSession, clinic: dict, admin: dict) -> dict:
    """Patient P1."""
    return await _insert_patient(
        db_session, clinic["id"], admin["id"], "000001", "Pedro", "Dela Cruz"
    )


@pytest_asyncio.fixture
async def second_patient(db_session: AsyncSession, clinic: dict, admin: dict) -> dict:
    """Another patient of C1."""
    return await _insert_patient(
        db_session, clinic["id"], admin["id"], "000002", "Rosa", "Mendoza"
    )


@pytest_asyncio.fixture
async def other_clinic(db_session: AsyncSession) -> dict:
    """A second tenant."""
    return await _insert_clinic(db_session, "brightteeth")


@pytest_asyncio.fixture
async def other_admin(db_session: AsyncSession, other_clinic: dict) -> dict:
    """Administrator of the second tenant."""
    return await _insert_staff(db_session, other_clinic["id"], "clinic_admin", "Carlo", "Lim")


@pytest_asyncio.fixture
async def other_patient(db_session: AsyncSession, other_clinic: dict, other_admin: dict) -> dict:
    """Patient of the second tenant."""
    return await _insert_patient(
        db_session, other_clinic["id"], other_admin["id"], "000001", "Elena", "Tan"
    )


@pytest.fixture
def headers_for() -> Callable[[dict], dict]:
    """Build bearer headers for a staff member."""

    def _headers(user: dict) -> dict:
        token = create_access_token(
            data={"sub": str(user["id"]), "email": user["email"]},
            expires_delta=timedelta(minutes=30),
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_headers(admin: dict, headers_for) -> dict:
    """Authentication headers for the clinic administrator."""
    return headers_for(admin)


@pytest.fixture
def booking(patient: dict, dentist: dict) -> Callable[..., dict]:
    """Build a booking request for P1 with D1 on the scenario date."""

    def _booking(start_minute: int, duration_minutes: int | None = 60, **overrides) -> dict:
        data = {
            "patient_id": str(patient["id"]),
            "staff_ids": [str(dentist["id"])],
            "appointment_date": APPOINTMENT_DATE,
            "start_minute": start_minute,
            "complaint": "Toothache",
        }
        if duration_minutes is not None:
            data["duration_minutes"] = duration_minutes
        data.update(overrides)
        return data

    return _booking
