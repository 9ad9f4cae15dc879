"""HTTP-level tests for the JWT-protected routes and the CRM agent webhook."""

import uuid
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

import src.vd_admin.api.router as admin_api
import src.vd_calls.api.router as calls_api
import src.vd_catalog.api.webhook_router as crm_webhook_api
from config.settings import settings
from src.main import app
from src.vd_admin.application.service import AdminService
from src.vd_calls.application.service import CallBillingService
from src.vd_catalog.application.service import CatalogService
from src.vd_catalog.domain.models import Agent, Product
from src.vd_common.database import get_db_session
from src.vd_gateway.auth.dependencies import get_current_user
from src.vd_gateway.middleware.rate_limit import checkout_rate_limit
from src.vd_purchase.api.dependencies import get_checkout_initiator
from src.vd_purchase.application.checkout import CheckoutInitiator
from src.vd_purchase.domain.models import CheckoutHandle
from src.vd_wallet.application.service import WalletApplicationService


def _user(role: str = "user") -> MagicMock:
    user = MagicMock()
    user.id = uuid.uuid4()
    user.email = "ada@example.com"
    user.display_name = "Ada"
    user.avatar = None
    user.role = role
    user.last_login_at = None
    user.is_active = True
    return user


@pytest.fixture
def as_user(db):  # type: ignore[no-untyped-def]
    def _login(role: str = "user") -> MagicMock:
        user = _user(role)

        async def _db() -> AsyncGenerator[MagicMock, None]:
            yield db

        app.dependency_overrides[get_db_session] = _db
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login


class TestIdentityAndWallet:
    async def test_unauthenticated_is_401(self, client, db) -> None:
        async def _db() -> AsyncGenerator[MagicMock, None]:
            yield db

        app.dependency_overrides[get_db_session] = _db
        resp = await client.get("/api/v1/wallet")
        assert resp.status_code == 401

    async def test_me_includes_balance(self, client, as_user, db) -> None:
        user = as_user()
        wallet_row = MagicMock(user_id=str(user.id), balance=120, version=2, created_at=None, updated_at=None)
        result = MagicMock()
        result.fetchone.return_value = wallet_row
        db.execute.return_value = result

        resp = await client.get("/api/v1/me")

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["user_id"] == str(user.id)
        assert data["balance"] == 120
        assert data["role"] == "user"


class TestCheckoutRoute:
    async def test_creates_checkout(self, client, as_user, purchases, db) -> None:
        as_user()
        catalog = AsyncMock()
        catalog.get_product.return_value = Product(
            product_id="prod_1", name="300 Credits", price_cents=1999, currency="usd", credits=300
        )
        processor = AsyncMock()
        processor.create_checkout_session.return_value = CheckoutHandle("cs_1", "https://pay/cs_1")
        app.dependency_overrides[get_checkout_initiator] = lambda: CheckoutInitiator(
            processor, catalog=catalog, purchases=purchases
        )
        app.dependency_overrides[checkout_rate_limit] = lambda: None

        resp = await client.post("/api/v1/checkout", json={"product_id": "prod_1"})

        assert resp.status_code == 201
        body = resp.json()["data"]
        assert body["checkout_url"] == "https://pay/cs_1"
        assert purchases.records[body["purchase_id"]].status == "pending"

    async def test_unknown_product_is_404(self, client, as_user, purchases) -> None:
        as_user()
        catalog = AsyncMock()
        catalog.get_product.return_value = None
        app.dependency_overrides[get_checkout_initiator] = lambda: CheckoutInitiator(
            AsyncMock(), catalog=catalog, purchases=purchases
        )
        app.dependency_overrides[checkout_rate_limit] = lambda: None

        resp = await client.post("/api/v1/checkout", json={"product_id": "nope"})

        assert resp.status_code == 404
        assert resp.json()["code"] == 3001


class TestCallsRoute:
    async def test_end_call_debits(self, client, as_user, ledger, monkeypatch) -> None:
        user = as_user()
        ledger.balances[str(user.id)] = 10
        catalog = AsyncMock()
        catalog.get_agent.return_value = Agent(record_id="rec_1", name="Luna", rate_per_minute=1, status="active")
        calls = AsyncMock()
        calls.insert.return_value = MagicMock(id="call-1")
        monkeypatch.setattr(
            calls_api, "_service", CallBillingService(calls=calls, catalog=catalog, ledger=ledger)
        )

        resp = await client.post("/api/v1/calls/end", json={"agent_id": "rec_1", "duration_seconds": 125})

        assert resp.status_code == 200
        assert resp.json()["data"]["credits_charged"] == 3
        assert resp.json()["data"]["balance"] == 7

    async def test_insufficient_balance_is_422(self, client, as_user, ledger, monkeypatch) -> None:
        as_user()
        catalog = AsyncMock()
        catalog.get_agent.return_value = Agent(record_id="rec_1", name="Luna", rate_per_minute=5, status="active")
        calls = AsyncMock()
        calls.insert.return_value = MagicMock(id="call-1")
        monkeypatch.setattr(
            calls_api, "_service", CallBillingService(calls=calls, catalog=catalog, ledger=ledger)
        )

        resp = await client.post("/api/v1/calls/end", json={"agent_id": "rec_1", "duration_seconds": 60})

        assert resp.status_code == 422
        assert resp.json()["code"] == 2001


class TestAdminRoutes:
    async def test_non_admin_forbidden(self, client, as_user) -> None:
        as_user("user")
        resp = await client.get(f"/api/v1/admin/wallets/{uuid.uuid4()}/audit")
        assert resp.status_code == 403
        assert resp.json()["code"] == 1003

    async def test_manual_credit_goes_through_ledger(self, client, as_user, ledger, db, monkeypatch) -> None:
        as_user("admin")
        target = str(uuid.uuid4())
        exists = MagicMock()
        exists.fetchone.return_value = (1,)
        db.execute.return_value = exists
        monkeypatch.setattr(
            admin_api, "_service", AdminService(wallet=WalletApplicationService(store=ledger))
        )

        resp = await client.post(
            f"/api/v1/admin/wallets/{target}/credit", json={"amount": 25, "reason": "refund"}
        )

        assert resp.status_code == 200
        assert resp.json()["data"]["balance"] == 25
        assert ledger.entries[0].reason == "refund"

    async def test_manual_credit_rejects_non_positive(self, client, as_user) -> None:
        as_user("admin")
        resp = await client.post(
            f"/api/v1/admin/wallets/{uuid.uuid4()}/credit", json={"amount": 0}
        )
        assert resp.status_code == 422

    async def test_unknown_user_is_404(self, client, as_user, db) -> None:
        as_user("admin")
        missing = MagicMock()
        missing.fetchone.return_value = None
        db.execute.return_value = missing
        resp = await client.get(f"/api/v1/admin/wallets/{uuid.uuid4()}/audit")
        assert resp.status_code == 404


class TestCrmAgentWebhook:
    @pytest.fixture
    def repo(self, db, monkeypatch):  # type: ignore[no-untyped-def]
        async def _db() -> AsyncGenerator[MagicMock, None]:
            yield db

        app.dependency_overrides[get_db_session] = _db
        repo = AsyncMock()
        repo.upsert_agent.return_value = True
        monkeypatch.setattr(crm_webhook_api, "_service", CatalogService(repo=repo))
        return repo

    async def test_upsert(self, client, repo) -> None:
        resp = await client.post(
            "/api/v1/webhooks/crm/agents",
            json={"id": "rec_1", "name": "Luna", "ratePerMinute": 2, "updatedAt": "2026-05-01T00:00:00Z"},
        )
        assert resp.status_code == 200
        assert resp.json()["data"] == {"id": "rec_1", "applied": True}
        repo.upsert_agent.assert_awaited_once()

    async def test_missing_name_is_400(self, client, repo) -> None:
        resp = await client.post("/api/v1/webhooks/crm/agents", json={"id": "rec_1"})
        assert resp.status_code == 400
        assert resp.json()["code"] == 3004
        repo.upsert_agent.assert_not_awaited()

    async def test_secret_checked_when_configured(self, client, repo, monkeypatch) -> None:
        monkeypatch.setattr(settings, "CRM_WEBHOOK_SECRET", "s3cret")
        payload = {"id": "rec_1", "name": "Luna"}

        denied = await client.post("/api/v1/webhooks/crm/agents", json=payload)
        allowed = await client.post(
            "/api/v1/webhooks/crm/agents", json=payload, headers={"X-Webhook-Secret": "s3cret"}
        )

        assert denied.status_code == 403
        assert allowed.status_code == 200


class TestVoiceSocket:
    def test_missing_agent_id_closes_with_policy_violation(self, db) -> None:
        async def _db() -> AsyncGenerator[MagicMock, None]:
            yield db

        app.dependency_overrides[get_db_session] = _db
        try:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with TestClient(app).websocket_connect("/ws/voice?token=abc") as ws:
                    ws.receive_text()
        finally:
            app.dependency_overrides.clear()
        assert exc_info.value.code == 1008
