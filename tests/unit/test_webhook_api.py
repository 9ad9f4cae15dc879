"""HTTP-level tests for POST /api/v1/webhooks/stripe through the ASGI app."""

import json
import uuid
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.main import app
from src.vd_common.database import get_db_session
from src.vd_common.tasks import BackgroundDispatcher
from src.vd_purchase.api.dependencies import get_reconciliation_handler
from src.vd_purchase.application.reconciliation import ReconciliationHandler
from src.vd_purchase.infrastructure.stripe_processor import StripePaymentProcessor

URL = "/api/v1/webhooks/stripe"


@pytest.fixture
def wired(purchases, ledger, db):  # type: ignore[no-untyped-def]
    processor = StripePaymentProcessor(
        api_key="sk_test",
        webhook_secret="whsec_test_secret",
        success_url="http://localhost/ok",
        cancel_url="http://localhost/cancel",
    )
    notifier = MagicMock()
    notifier.notify_paid = AsyncMock()
    handler = ReconciliationHandler(
        processor,
        dispatcher=BackgroundDispatcher(),
        notifier=notifier,
        purchases=purchases,
        ledger=ledger,
    )

    async def _db() -> AsyncGenerator[MagicMock, None]:
        yield db

    app.dependency_overrides[get_db_session] = _db
    app.dependency_overrides[get_reconciliation_handler] = lambda: handler
    return handler


def _completed(purchase_id: str, user_id: str, credits: str = "300") -> bytes:
    return json.dumps({
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_1",
            "payment_intent": "pi_1",
            "metadata": {"purchase_id": purchase_id, "user_id": user_id, "credits": credits},
        }},
    }).encode()


class TestStripeWebhookEndpoint:
    async def test_credit_then_duplicate(self, client, wired, purchases, ledger, sign_payload) -> None:
        user_id = str(uuid.uuid4())
        record = purchases.add(user_id)
        body = _completed(record.id, user_id)
        headers = {"Stripe-Signature": sign_payload(body), "Content-Type": "application/json"}

        first = await client.post(URL, content=body, headers=headers)
        second = await client.post(URL, content=body, headers=headers)

        assert first.status_code == 200
        assert first.json()["data"] == {"received": True, "outcome": "credited"}
        assert second.status_code == 200
        assert second.json()["data"]["outcome"] == "duplicate"
        assert ledger.balances[user_id] == 300

    async def test_bad_signature_is_400(self, client, wired, ledger, sign_payload) -> None:
        body = _completed(str(uuid.uuid4()), str(uuid.uuid4()))
        resp = await client.post(
            URL, content=body, headers={"Stripe-Signature": sign_payload(body, secret="whsec_wrong")}
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == 4002
        assert ledger.entries == []

    async def test_missing_signature_is_400(self, client, wired) -> None:
        resp = await client.post(URL, content=b"{}")
        assert resp.status_code == 400

    async def test_malformed_metadata_is_acknowledged(self, client, wired, sign_payload) -> None:
        body = _completed("not-a-uuid", str(uuid.uuid4()))
        resp = await client.post(URL, content=body, headers={"Stripe-Signature": sign_payload(body)})
        assert resp.status_code == 200
        assert resp.json()["data"]["outcome"] == "malformed"

    async def test_settlement_failure_is_500(self, client, wired, ledger, purchases, db, sign_payload) -> None:
        ledger.credit = AsyncMock(side_effect=RuntimeError("db gone"))
        user_id = str(uuid.uuid4())
        record = purchases.add(user_id)
        body = _completed(record.id, user_id)

        resp = await client.post(URL, content=body, headers={"Stripe-Signature": sign_payload(body)})

        assert resp.status_code == 500
        db.rollback.assert_awaited()


async def test_health(client) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
