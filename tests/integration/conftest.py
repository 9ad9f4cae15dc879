"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool (created at import time) remains valid across
the entire test session.

Pre-condition: a PostgreSQL reachable at DATABASE_URL with `alembic upgrade
head` applied. Without it the whole directory is skipped.
"""

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.main import app
from src.vd_common.database import async_session_factory
from src.vd_gateway.auth.jwt_handler import create_access_token
from src.vd_purchase.api.dependencies import get_reconciliation_handler
from src.vd_purchase.application.reconciliation import ReconciliationHandler
from src.vd_purchase.infrastructure.stripe_processor import StripePaymentProcessor

WEBHOOK_SECRET = "whsec_test_secret"

_INSERT_USER_SQL = text("""
    INSERT INTO users (google_id, email, display_name, role)
    VALUES (:google_id, :email, :display_name, :role)
    RETURNING id
""")


@pytest_asyncio.fixture(loop_scope="session", scope="session", autouse=True)
async def _migrated_database() -> None:
    try:
        async with async_session_factory() as db:
            found = (await db.execute(text("SELECT to_regclass('public.ledger_entries')"))).scalar()
    except Exception as exc:
        pytest.skip(f"PostgreSQL unavailable: {exc}")
    if found is None:
        pytest.skip("database schema missing, run `alembic upgrade head`")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncGenerator[AsyncClient, None]:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def stripe_webhook() -> Generator[ReconciliationHandler, None, None]:
    """Real processor and stores; no CRM notifier (the lifespan is not run)."""
    processor = StripePaymentProcessor(
        api_key="sk_test",
        webhook_secret=WEBHOOK_SECRET,
        success_url="http://test/ok",
        cancel_url="http://test/cancel",
    )
    handler = ReconciliationHandler(processor)
    app.dependency_overrides[get_reconciliation_handler] = lambda: handler
    yield handler
    app.dependency_overrides.pop(get_reconciliation_handler, None)


@pytest.fixture
def create_user() -> Callable[..., Awaitable[tuple[str, dict[str, str]]]]:
    """Provision a user the way the identity edge would; return (user_id, auth headers)."""

    async def _create(role: str = "user") -> tuple[str, dict[str, str]]:
        uid = uuid.uuid4().hex[:12]
        async with async_session_factory() as db:
            user_id = (await db.execute(_INSERT_USER_SQL, {
                "google_id": f"g_{uid}",
                "email": f"user_{uid}@example.com",
                "display_name": f"User {uid}",
                "role": role,
            })).scalar_one()
            await db.commit()
        token = create_access_token(str(user_id))
        return str(user_id), {"Authorization": f"Bearer {token}"}

    return _create
