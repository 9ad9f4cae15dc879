"""Unit tests for DownstreamNotifier — best-effort CRM invoice propagation."""

import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.vd_catalog.domain.models import Product
from src.vd_common.errors import UpstreamUnavailableError
from src.vd_crm.notifier import DownstreamNotifier
from src.vd_purchase.domain.models import PurchaseRecord

USER_ID = uuid.UUID("8d0f5c3e-2222-4c2b-9a57-000000000002")


def _purchase() -> PurchaseRecord:
    return PurchaseRecord(
        id="8d0f5c3e-1111-4c2b-9a57-000000000001",
        user_id=str(USER_ID),
        product_id="prod_1",
        product_name="300 Credits",
        amount=1999,
        currency="usd",
        credits=300,
        status="paid",
        processor_payment_id="pi_1",
        paid_at=datetime(2026, 5, 1, tzinfo=UTC),
    )


def _user(crm_contact_id: str | None = None, email: str | None = "ada@example.com") -> MagicMock:
    user = MagicMock()
    user.id = USER_ID
    user.email = email
    user.display_name = "Ada"
    user.avatar = None
    user.crm_contact_id = crm_contact_id
    return user


def _session_factory(user: MagicMock | None) -> tuple[MagicMock, MagicMock]:
    result = MagicMock()
    result.scalar_one_or_none.return_value = user
    db = MagicMock()
    db.execute = AsyncMock(return_value=result)
    db.commit = AsyncMock()

    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=db)
    ctx.__aexit__ = AsyncMock(return_value=False)
    factory = MagicMock(return_value=ctx)
    return factory, db


def _catalog() -> AsyncMock:
    catalog = AsyncMock()
    catalog.get_product.return_value = Product(
        product_id="prod_1", name="300 Credits", price_cents=1999, currency="usd",
        credits=300, price_id="price_1",
    )
    return catalog


@pytest.fixture
def crm() -> AsyncMock:
    crm = AsyncMock()
    crm.create_draft_invoice.return_value = {"_id": "inv_1"}
    crm.record_invoice_payment.return_value = {}
    return crm


class TestNotifyPaid:
    async def test_stored_contact_invoice_and_payment(self, crm) -> None:
        factory, db = _session_factory(_user(crm_contact_id="c_1"))

        invoice_id = await DownstreamNotifier(crm, factory, catalog=_catalog()).notify_paid(_purchase())

        assert invoice_id == "inv_1"
        crm.find_contact_by_email.assert_not_awaited()
        kwargs = crm.create_draft_invoice.await_args.kwargs
        assert kwargs["amount"] == 19.99  # from the stored purchase amount
        assert kwargs["price_id"] == "price_1"
        assert kwargs["contact"]["id"] == "c_1"
        assert crm.record_invoice_payment.await_args.args[0] == "inv_1"
        db.commit.assert_not_awaited()

    async def test_found_contact_is_persisted(self, crm) -> None:
        crm.find_contact_by_email.return_value = {"id": "c_found"}
        factory, db = _session_factory(_user())

        await DownstreamNotifier(crm, factory, catalog=_catalog()).notify_paid(_purchase())

        crm.create_contact.assert_not_awaited()
        db.commit.assert_awaited_once()
        assert crm.create_draft_invoice.await_args.kwargs["contact"]["id"] == "c_found"

    async def test_contact_created_when_missing(self, crm) -> None:
        crm.find_contact_by_email.return_value = None
        crm.create_contact.return_value = {"id": "c_new"}
        factory, _ = _session_factory(_user())

        await DownstreamNotifier(crm, factory, catalog=_catalog()).notify_paid(_purchase())

        crm.create_contact.assert_awaited_once_with("ada@example.com", "Ada", None)

    async def test_invoice_failure_is_swallowed(self, crm) -> None:
        crm.create_draft_invoice.side_effect = UpstreamUnavailableError("crm", "500")
        factory, _ = _session_factory(_user(crm_contact_id="c_1"))

        assert await DownstreamNotifier(crm, factory, catalog=_catalog()).notify_paid(_purchase()) is None
        crm.record_invoice_payment.assert_not_awaited()

    async def test_payment_failure_leaves_orphan_invoice(self, crm) -> None:
        crm.record_invoice_payment.side_effect = UpstreamUnavailableError("crm", "timeout")
        factory, _ = _session_factory(_user(crm_contact_id="c_1"))

        result = await DownstreamNotifier(crm, factory, catalog=_catalog()).notify_paid(_purchase())

        assert result is None
        crm.create_draft_invoice.assert_awaited_once()

    async def test_unexpected_error_is_swallowed(self, crm) -> None:
        factory = MagicMock(side_effect=RuntimeError("pool exhausted"))
        assert await DownstreamNotifier(crm, factory, catalog=_catalog()).notify_paid(_purchase()) is None

    async def test_unknown_user_skips(self, crm) -> None:
        factory, _ = _session_factory(None)
        assert await DownstreamNotifier(crm, factory, catalog=_catalog()).notify_paid(_purchase()) is None
        crm.create_draft_invoice.assert_not_awaited()

    async def test_user_without_email_or_contact_skips(self, crm) -> None:
        factory, _ = _session_factory(_user(email=None))
        assert await DownstreamNotifier(crm, factory, catalog=_catalog()).notify_paid(_purchase()) is None
        crm.find_contact_by_email.assert_not_awaited()
