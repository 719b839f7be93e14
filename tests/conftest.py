"""
Pytest configuration and fixtures for testing
"""
import json
from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from jobs.trial_scheduler import TrialJobScheduler
from services.feature_service import FeatureService
from services.kv_store import MemoryStore
from services.paystack_service import PaystackService
from services.subscription_status import to_millis
from services.trial_service import TrialService

PAYSTACK_TEST_KEY = "sk_test_tailorflow"

# Fixed sweep instant used across processor tests
NOW = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock returning epoch millis; tests move it forward explicitly."""

    def __init__(self, start: datetime = NOW):
        self.current = to_millis(start)

    def __call__(self) -> int:
        return self.current

    def advance(self, ms: int):
        self.current += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def test_engine(tmp_path):
    """
    File-backed SQLite database per test, so every session gets its own
    connection and transaction like in production.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False, future=True)
    async with engine.begin() as conn:
        # Import models to ensure they're registered with Base
        import database_models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """A clean AsyncSession for the test."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest.fixture
def paystack_transactions():
    """reference -> transaction data returned by the mocked verify endpoint."""
    return {}


@pytest.fixture
def paystack_service(paystack_transactions):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/transaction/initialize":
            body = json.loads(request.content)
            return httpx.Response(200, json={
                "status": True,
                "message": "Authorization URL created",
                "data": {
                    "authorization_url": f"https://checkout.paystack.com/{body['reference']}",
                    "access_code": "access_123",
                    "reference": body["reference"],
                },
            })
        if request.url.path.startswith("/transaction/verify/"):
            reference = request.url.path.rsplit("/", 1)[-1]
            if reference not in paystack_transactions:
                return httpx.Response(404, json={"status": False, "message": "Transaction reference not found"})
            return httpx.Response(200, json={
                "status": True,
                "message": "Verification successful",
                "data": paystack_transactions[reference],
            })
        return httpx.Response(404, json={"status": False, "message": "Not found"})

    return PaystackService(PAYSTACK_TEST_KEY, transport=httpx.MockTransport(handler))


@pytest.fixture
def trial_service():
    return TrialService(MemoryStore(), trial_days=3)


@pytest.fixture
async def async_client(session_factory, trial_service, paystack_service):
    """
    Async HTTP client against the app, with the test database and
    test-scoped services installed on app.state.
    """
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.trial_service = trial_service
    app.state.paystack_service = paystack_service
    app.state.feature_service = FeatureService()
    app.state.trial_scheduler = TrialJobScheduler(session_factory)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
