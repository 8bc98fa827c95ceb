import os
from collections.abc import AsyncGenerator
from datetime import timedelta
from uuid import uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient

load_dotenv()

# Settings are read at import time, so the test environment must exist first.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-embassy-tests")
os.environ.setdefault("LOG_FORMAT", "console")

from embassy.config import Settings, get_settings  # noqa: E402
from embassy.core.permissions import Actor, Role  # noqa: E402
from embassy.core.security import create_access_token  # noqa: E402
from embassy.dependencies import enforce_booking_rate_limit, get_appointment_service  # noqa: E402
from embassy.main import app  # noqa: E402
from embassy.services.appointment_service import AppointmentService  # noqa: E402
from tests.fakes import (  # noqa: E402
    NOW,
    InMemoryAppointmentRepository,
    RecordingNotifier,
    ScriptedReferenceGenerator,
)


@pytest.fixture
def test_settings() -> Settings:
    return get_settings().model_copy(
        update={
            "office_open_hour": 9,
            "office_close_hour": 17,
            "office_timezone": "UTC",
            "default_slot_duration_minutes": 30,
            "min_slot_duration_minutes": 15,
            "max_slot_duration_minutes": 180,
            "appointment_reference_attempts": 3,
        }
    )


@pytest.fixture
def repository() -> InMemoryAppointmentRepository:
    return InMemoryAppointmentRepository()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def id_generator() -> ScriptedReferenceGenerator:
    return ScriptedReferenceGenerator()


@pytest.fixture
def service(
    repository: InMemoryAppointmentRepository,
    notifier: RecordingNotifier,
    id_generator: ScriptedReferenceGenerator,
    test_settings: Settings,
) -> AppointmentService:
    return AppointmentService(
        repository,
        notifier,
        settings=test_settings,
        id_generator=id_generator,
        clock=lambda: NOW,
    )


@pytest.fixture
def citizen() -> Actor:
    return Actor(actor_id=uuid4(), role=Role.CITIZEN)


@pytest.fixture
def other_citizen() -> Actor:
    return Actor(actor_id=uuid4(), role=Role.CITIZEN)


@pytest.fixture
def staff() -> Actor:
    return Actor(actor_id=uuid4(), role=Role.STAFF)


@pytest.fixture
def admin() -> Actor:
    return Actor(actor_id=uuid4(), role=Role.ADMIN)


def auth_headers_for(actor: Actor) -> dict[str, str]:
    """Bearer header carrying the actor's id and role."""
    token = create_access_token(
        data={"sub": str(actor.actor_id), "role": actor.role.value},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def citizen_headers(citizen: Actor) -> dict[str, str]:
    return auth_headers_for(citizen)


@pytest.fixture
def other_citizen_headers(other_citizen: Actor) -> dict[str, str]:
    return auth_headers_for(other_citizen)


@pytest.fixture
def staff_headers(staff: Actor) -> dict[str, str]:
    return auth_headers_for(staff)


@pytest_asyncio.fixture
async def client(service: AppointmentService) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose appointment service runs on the in-memory repository."""

    async def no_rate_limit() -> None:
        return None

    app.dependency_overrides[get_appointment_service] = lambda: service
    app.dependency_overrides[enforce_booking_rate_limit] = no_rate_limit

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_appointment_data() -> dict:
    """Booking payload for 10:00 on the test booking day."""
    return {
        "appointment_type": "visa_interview",
        "scheduled_date": "2030-01-07T10:00:00Z",
        "duration": 30,
        "priority": "normal",
        "notes": "First visa interview",
        "documents_required": "Passport, photo",
        "interpreter_required": True,
        "interpreter_language": "Spanish",
    }
