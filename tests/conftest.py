"""Test configuration and fixtures."""

import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("HOSPITAL_PROVIDER", "mock")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, Generator, Optional, Protocol
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from hospital_mpi.core.auth import create_access_token
from hospital_mpi.core.dependencies import (
    get_audit_dispatcher,
    get_hospital_source,
    get_patient_store,
    get_staff_store,
)
from hospital_mpi.domains.audit.repositories.audit_repository import InMemoryAuditSink
from hospital_mpi.domains.audit.services.audit_dispatcher import AuditDispatcher
from hospital_mpi.domains.patient.models.patient import PatientRecord
from hospital_mpi.domains.patient.repositories.memory_store import InMemoryPatientStore
from hospital_mpi.domains.staff.repositories.staff_repository import InMemoryStaffStore
from hospital_mpi.main import app
from hospital_mpi.providers.base_provider import BaseHospitalSource

HOSPITAL_A = "hospital-a"
HOSPITAL_B = "hospital-b"
STAFF_ID = "staff-1"

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Configure pytest-anyio to use asyncio."""
    return "asyncio"


def make_patient(n: int = 0, **overrides) -> PatientRecord:
    """Patient with deterministic ids and created_at spaced one minute apart."""
    values = dict(
        internal_id=f"p-{n}",
        national_id=f"N-{n}",
        first_name_en="Somchai",
        last_name_en="Jaidee",
        first_name_th="สมชาย",
        last_name_th="ใจดี",
        date_of_birth=date(1990, 1, 15),
        phone_number="0812345678",
        email=f"patient{n}@example.com",
        gender="M",
        hospital_id=HOSPITAL_A,
        created_at=BASE_TIME + timedelta(minutes=n),
    )
    values.update(overrides)
    return PatientRecord(**values)


@pytest.fixture
def store() -> InMemoryPatientStore:
    return InMemoryPatientStore()


@pytest.fixture
def staff_store() -> InMemoryStaffStore:
    return InMemoryStaffStore()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def audit_dispatcher(audit_sink: InMemoryAuditSink) -> AuditDispatcher:
    return AuditDispatcher(audit_sink)


@pytest.fixture
def hospital_source() -> AsyncMock:
    """Hospital source that knows nobody unless a test says otherwise."""
    mock = AsyncMock(spec=BaseHospitalSource)
    mock.lookup.return_value = None
    return mock


@pytest.fixture
def auth_headers() -> Callable[..., Dict[str, str]]:
    """Build a bearer header for a staff member of a hospital."""

    def _headers(hospital_id: str = HOSPITAL_A, staff_id: Optional[str] = STAFF_ID) -> Dict[str, str]:
        token = create_access_token(staff_id, hospital_id, username="nurse")
        return {"Authorization": f"Bearer {token}"}

    return _headers


class ClientFactory(Protocol):
    """Protocol for client factory fixture."""

    def __call__(self) -> AsyncClient: ...


@pytest.fixture
def client_factory(
    store: InMemoryPatientStore,
    hospital_source: AsyncMock,
    audit_dispatcher: AuditDispatcher,
    staff_store: InMemoryStaffStore,
) -> Generator[ClientFactory, None, None]:
    """Factory for creating test clients with in-memory dependencies."""

    def _create_client() -> AsyncClient:
        app.dependency_overrides[get_patient_store] = lambda: store
        app.dependency_overrides[get_hospital_source] = lambda: hospital_source
        app.dependency_overrides[get_audit_dispatcher] = lambda: audit_dispatcher
        app.dependency_overrides[get_staff_store] = lambda: staff_store

        transport = ASGITransport(app=app)
        return AsyncClient(transport=transport, base_url="http://testserver")

    yield _create_client

    app.dependency_overrides.clear()
