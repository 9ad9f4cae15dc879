"""CatalogService — product/agent reads and CRM-driven upserts.

Product sync is freshness based: a CRM product is re-fetched (price lookup)
and upserted only when it is new or its `updatedAt` moved past the stored
`crm_updated_at`. A failing price lookup skips that one product; a failing
product listing aborts the sync with UpstreamUnavailableError.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.vd_catalog.application.schemas import (
    AgentItem,
    AgentWebhookPayload,
    ProductItem,
    SyncReportResponse,
)
from src.vd_catalog.domain.credits import extract_credits
from src.vd_catalog.domain.models import Agent, Product, SyncReport
from src.vd_catalog.domain.repository import CatalogRepositoryProtocol, CatalogSourceProtocol
from src.vd_catalog.infrastructure.persistence import CatalogRepository
from src.vd_common.datetime_utils import parse_iso8601
from src.vd_common.errors import AgentNotFoundError, ProductNotFoundError, UpstreamUnavailableError
from src.vd_common.money import major_to_cents

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(self, repo: CatalogRepositoryProtocol | None = None) -> None:
        self._repo: CatalogRepositoryProtocol = repo or CatalogRepository()

    async def list_products(self, db: AsyncSession) -> list[ProductItem]:
        return [ProductItem.from_domain(p) for p in await self._repo.list_products(db)]

    async def get_product(self, db: AsyncSession, product_id: str) -> Product:
        product = await self._repo.get_product(db, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    async def list_agents(self, db: AsyncSession) -> list[AgentItem]:
        return [AgentItem.from_domain(a) for a in await self._repo.list_active_agents(db)]

    async def get_agent(self, db: AsyncSession, record_id: str) -> Agent:
        agent = await self._repo.get_agent(db, record_id)
        if agent is None:
            raise AgentNotFoundError(record_id)
        return agent

    async def sync_products(
        self, db: AsyncSession, source: CatalogSourceProtocol
    ) -> SyncReportResponse:
        raw_products = await source.fetch_products()
        report = SyncReport(fetched=len(raw_products))
        try:
            stamps = await self._repo.get_product_stamps(db)
            for raw in raw_products:
                product_id = raw.get("_id")
                if not product_id:
                    report.failed += 1
                    continue
                crm_updated_at = parse_iso8601(raw.get("updatedAt"))
                known = product_id in stamps
                stored = stamps.get(product_id)
                if known and stored and crm_updated_at and crm_updated_at <= stored:
                    report.unchanged += 1
                    continue

                try:
                    price = await source.fetch_product_price(product_id)
                except UpstreamUnavailableError as exc:
                    logger.warning("catalog sync: price lookup failed for %s: %s", product_id, exc.message)
                    report.failed += 1
                    continue

                product = Product(
                    product_id=product_id,
                    name=str(raw.get("name") or product_id),
                    image=raw.get("image"),
                    product_type=raw.get("productType"),
                    price_cents=major_to_cents(price.get("amount")) if price else None,
                    currency=str((price or {}).get("currency") or "usd").lower(),
                    price_id=(price or {}).get("_id"),
                    credits=extract_credits(raw, settings.DEFAULT_PRODUCT_CREDITS),
                    crm_updated_at=crm_updated_at,
                )
                if await self._repo.upsert_product(db, product):
                    logger.info("catalog sync: %s %s (%d credits)",
                                "updated" if known else "new", product.name, product.credits)
                    report.upserted += 1
                else:
                    report.unchanged += 1
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("catalog sync done: fetched=%d upserted=%d unchanged=%d failed=%d",
                    report.fetched, report.upserted, report.unchanged, report.failed)
        return SyncReportResponse(
            fetched=report.fetched,
            upserted=report.upserted,
            unchanged=report.unchanged,
            failed=report.failed,
        )

    async def apply_agent_webhook(self, db: AsyncSession, payload: AgentWebhookPayload) -> bool:
        """Upsert an agent row from the CRM webhook. Returns False if a fresher row already exists."""
        agent = Agent(
            record_id=payload.id,
            name=payload.name,
            image_url=payload.image_url,
            rate_per_minute=payload.rate_per_minute,
            voice_agent_id=payload.voice_agent_id,
            status=payload.status,
            crm_updated_at=parse_iso8601(payload.updated_at),
        )
        try:
            applied = await self._repo.upsert_agent(db, agent)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if not applied:
            logger.info("agent webhook: stale update ignored for %s", payload.id)
        return applied
