"""Background loop that refreshes the product catalog from the CRM."""

import asyncio
import logging

from src.vd_catalog.application.service import CatalogService
from src.vd_catalog.domain.repository import CatalogSourceProtocol
from src.vd_common.database import async_session_factory

logger = logging.getLogger(__name__)


async def periodic_catalog_sync(
    source: CatalogSourceProtocol,
    interval_minutes: int,
    service: CatalogService | None = None,
) -> None:
    """Run a product sync every `interval_minutes`. A failed tick is logged and the loop goes on."""
    if interval_minutes <= 0:
        return
    service = service or CatalogService()
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            async with async_session_factory() as db:
                report = await service.sync_products(db, source)
            if report.upserted or report.failed:
                logger.info("catalog sync tick: upserted=%d failed=%d", report.upserted, report.failed)
        except Exception:
            logger.exception("catalog sync tick failed")
