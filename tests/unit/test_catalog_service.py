"""Unit tests for CatalogService: freshness-based product sync and agent webhook upserts."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.vd_catalog.application.schemas import AgentWebhookPayload
from src.vd_catalog.application.service import CatalogService
from src.vd_catalog.domain.models import Agent, Product
from src.vd_common.errors import AgentNotFoundError, ProductNotFoundError, UpstreamUnavailableError

OLD = datetime(2026, 1, 1, tzinfo=UTC)


def _db() -> MagicMock:
    db = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


def _raw(pid: str, updated: str | None, name: str = "300 Credits") -> dict:
    return {"_id": pid, "name": name, "updatedAt": updated, "productType": "DIGITAL"}


class TestSyncProducts:
    async def test_new_and_changed_products_are_upserted(self) -> None:
        repo = AsyncMock()
        repo.get_product_stamps.return_value = {"p_old": OLD, "p_same": OLD}
        repo.upsert_product.return_value = True
        source = AsyncMock()
        source.fetch_products.return_value = [
            _raw("p_new", "2026-03-01T00:00:00Z"),
            _raw("p_old", "2026-02-01T00:00:00.000Z"),
            _raw("p_same", "2026-01-01T00:00:00Z"),
        ]
        source.fetch_product_price.return_value = {"_id": "price_1", "amount": 19.99, "currency": "USD"}
        db = _db()

        report = await CatalogService(repo=repo).sync_products(db, source)

        assert (report.fetched, report.upserted, report.unchanged, report.failed) == (3, 2, 1, 0)
        upserted = [c.args[1] for c in repo.upsert_product.await_args_list]
        assert {p.product_id for p in upserted} == {"p_new", "p_old"}
        product = upserted[0]
        assert product.price_cents == 1999
        assert product.currency == "usd"
        assert product.price_id == "price_1"
        assert product.credits == 300
        db.commit.assert_awaited_once()

    async def test_price_failure_skips_only_that_product(self) -> None:
        repo = AsyncMock()
        repo.get_product_stamps.return_value = {}
        repo.upsert_product.return_value = True
        source = AsyncMock()
        source.fetch_products.return_value = [_raw("p1", None), _raw("p2", None)]
        source.fetch_product_price.side_effect = [
            UpstreamUnavailableError("crm", "500"),
            {"amount": "5", "currency": "usd"},
        ]

        report = await CatalogService(repo=repo).sync_products(_db(), source)

        assert report.failed == 1
        assert report.upserted == 1

    async def test_stale_row_reported_unchanged(self) -> None:
        repo = AsyncMock()
        repo.get_product_stamps.return_value = {}
        repo.upsert_product.return_value = False  # SQL freshness guard refused it
        source = AsyncMock()
        source.fetch_products.return_value = [_raw("p1", "2026-01-01T00:00:00Z")]
        source.fetch_product_price.return_value = None

        report = await CatalogService(repo=repo).sync_products(_db(), source)

        assert report.unchanged == 1
        assert repo.upsert_product.await_args.args[1].price_cents is None

    async def test_listing_failure_propagates(self) -> None:
        source = AsyncMock()
        source.fetch_products.side_effect = UpstreamUnavailableError("crm", "timeout")
        with pytest.raises(UpstreamUnavailableError):
            await CatalogService(repo=AsyncMock()).sync_products(_db(), source)

    async def test_product_without_id_counts_as_failed(self) -> None:
        repo = AsyncMock()
        repo.get_product_stamps.return_value = {}
        source = AsyncMock()
        source.fetch_products.return_value = [{"name": "orphan"}]
        report = await CatalogService(repo=repo).sync_products(_db(), source)
        assert report.failed == 1
        repo.upsert_product.assert_not_awaited()


class TestLookups:
    async def test_get_product_missing(self) -> None:
        repo = AsyncMock()
        repo.get_product.return_value = None
        with pytest.raises(ProductNotFoundError):
            await CatalogService(repo=repo).get_product(_db(), "nope")

    async def test_get_agent_missing(self) -> None:
        repo = AsyncMock()
        repo.get_agent.return_value = None
        with pytest.raises(AgentNotFoundError):
            await CatalogService(repo=repo).get_agent(_db(), "nope")

    async def test_list_products_maps_display_price(self) -> None:
        repo = AsyncMock()
        repo.list_products.return_value = [
            Product(product_id="p1", name="Starter", price_cents=1999, currency="usd", credits=300),
            Product(product_id="p2", name="Draft", price_cents=None, currency="usd", credits=50),
        ]
        items = await CatalogService(repo=repo).list_products(_db())
        assert items[0].price_display == "$19.99"
        assert items[0].purchasable is True
        assert items[1].price_display is None
        assert items[1].purchasable is False


class TestAgentWebhook:
    async def test_upsert_commits(self) -> None:
        repo = AsyncMock()
        repo.upsert_agent.return_value = True
        db = _db()
        payload = AgentWebhookPayload.model_validate({
            "id": "rec_1",
            "name": "Luna",
            "ratePerMinute": "3",
            "voiceAgentId": "agent_abc",
            "updatedAt": "2026-05-01T12:00:00Z",
        })

        applied = await CatalogService(repo=repo).apply_agent_webhook(db, payload)

        assert applied is True
        agent: Agent = repo.upsert_agent.await_args.args[1]
        assert agent.rate_per_minute == 3
        assert agent.voice_agent_id == "agent_abc"
        assert agent.status == "active"
        assert agent.crm_updated_at == datetime(2026, 5, 1, 12, tzinfo=UTC)
        db.commit.assert_awaited_once()

    def test_payload_defaults(self) -> None:
        payload = AgentWebhookPayload.model_validate(
            {"id": "rec_1", "name": "Luna", "ratePerMinute": "", "status": "INACTIVE"}
        )
        assert payload.rate_per_minute == 1
        assert payload.status == "inactive"
