from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rideops.config.settings import Settings, get_settings
from rideops.infra.database import Database, get_database
from rideops.v1.captures.gateway import CaptureResult
from rideops.v1.captures.models import PaymentIntent, PaymentIntentStatus
from rideops.v1.core.registries import JobRegistry, job_registry
from rideops.v1.infra.jobs.registry_init import register_job_tasks
from rideops.v1.rides.models import Conversation, Message, Ride, RideStatus

T0 = datetime(2026, 3, 14, 12, 0, tzinfo=UTC)


class FakeGateway:
    """Scriptable payment gateway recording every capture call."""

    def __init__(self):
        self.calls: list[tuple[str, int, str]] = []
        self.outcomes: dict[str, CaptureResult | Exception] = {}
        self.on_capture: Callable[[str], Awaitable[None]] | None = None

    async def capture(
        self, external_reference_id: str, amount: int, idempotency_key: str
    ) -> CaptureResult:
        self.calls.append((external_reference_id, amount, idempotency_key))
        if self.on_capture is not None:
            await self.on_capture(external_reference_id)

        outcome = self.outcomes.get(
            external_reference_id, CaptureResult.success(f"ch_{external_reference_id}")
        )
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def calls_for(self, external_reference_id: str) -> int:
        return sum(1 for call in self.calls if call[0] == external_reference_id)


@pytest.fixture
def test_settings() -> Settings:
    """Settings for an in-memory SQLite database and the stub gateway."""
    return Settings(
        database_url="sqlite+aiosqlite://",
        environment="development",
        debug=False,
        capture_batch_size=10,
        retention_window_hours=8.0,
    )


@pytest.fixture
async def database(test_settings) -> AsyncGenerator[Database, None]:
    """Create a fresh in-memory database with all tables."""
    # Import models to ensure they're registered
    from rideops.v1.captures import models as capture_models  # noqa: F401
    from rideops.v1.infra.jobs import models as job_models  # noqa: F401

    db = Database(test_settings)
    await db.create_all()
    yield db
    await db.close()


@pytest.fixture
def session_factory(database) -> async_sessionmaker[AsyncSession]:
    return database.SessionLocal


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for arranging and asserting test data."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def test_registry(test_settings, gateway) -> JobRegistry:
    """Private job registry wired to the fake gateway."""
    registry = JobRegistry()
    register_job_tasks(test_settings, gateway=gateway, registry=registry)
    return registry


@pytest.fixture
def create_ride(db_session):
    """Factory inserting a ride with optional conversations and messages."""

    async def _create_ride(
        status: str = RideStatus.SCHEDULED.value,
        completed_at: datetime | None = None,
        updated_at: datetime | None = None,
        conversations: int = 0,
        messages_per_conversation: int = 0,
    ) -> Ride:
        ride = Ride(
            status=status,
            completed_at=completed_at,
            created_at=T0 - timedelta(days=1),
            updated_at=updated_at or completed_at or T0 - timedelta(days=1),
        )
        db_session.add(ride)
        await db_session.flush()

        for _ in range(conversations):
            conversation = Conversation(ride_id=ride.id)
            db_session.add(conversation)
            await db_session.flush()
            for index in range(messages_per_conversation):
                db_session.add(
                    Message(
                        conversation_id=conversation.id,
                        sender_id="rider",
                        content=f"message {index}",
                    )
                )

        await db_session.commit()
        return ride

    return _create_ride


@pytest.fixture
def create_intent(db_session):
    """Factory inserting an authorized payment intent for a ride."""

    async def _create_intent(
        ride: Ride,
        amount: int = 5000,
        external_reference_id: str | None = None,
        status: str = PaymentIntentStatus.AUTHORIZED.value,
    ) -> PaymentIntent:
        intent = PaymentIntent(
            ride_id=ride.id,
            external_reference_id=external_reference_id or f"pi_{uuid4().hex[:12]}",
            amount=amount,
            status=status,
        )
        db_session.add(intent)
        await db_session.commit()
        return intent

    return _create_intent


@pytest.fixture
def app(test_settings, database, gateway):
    """Create a test FastAPI application bound to the test database."""
    from rideops.main import create_app

    app = create_app()

    # Override the database and settings dependencies
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_settings] = lambda: test_settings

    # Route-triggered runs go through the global registry
    register_job_tasks(test_settings, gateway=gateway, registry=job_registry)

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
