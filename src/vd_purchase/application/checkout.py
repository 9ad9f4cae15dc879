"""CheckoutInitiator — turns a catalog product into a hosted-checkout redirect.

The purchase record is committed in `initiated` BEFORE the processor is
called, so a completion event can always be correlated with a stored record.
A processor failure leaves that record in `initiated` and surfaces as
UpstreamUnavailableError (502).
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_catalog.domain.repository import CatalogRepositoryProtocol
from src.vd_catalog.infrastructure.persistence import CatalogRepository
from src.vd_common.errors import ProductInvalidError, ProductNotFoundError
from src.vd_purchase.application.schemas import CheckoutResponse, PurchaseItem
from src.vd_purchase.domain.models import PurchaseRecord
from src.vd_purchase.domain.repository import (
    PaymentProcessorProtocol,
    PurchaseRepositoryProtocol,
)
from src.vd_purchase.infrastructure.persistence import PurchaseRepository

logger = logging.getLogger(__name__)


def build_metadata(purchase: PurchaseRecord) -> dict[str, str]:
    """Correlation metadata the processor echoes back verbatim on completion."""
    return {
        "purchase_id": purchase.id,
        "user_id": purchase.user_id,
        "product_id": purchase.product_id,
        "product_name": purchase.product_name,
        "credits": str(purchase.credits),
        "price": str(purchase.amount),
    }


class CheckoutInitiator:
    def __init__(
        self,
        processor: PaymentProcessorProtocol,
        catalog: CatalogRepositoryProtocol | None = None,
        purchases: PurchaseRepositoryProtocol | None = None,
    ) -> None:
        self._processor = processor
        self._catalog: CatalogRepositoryProtocol = catalog or CatalogRepository()
        self._purchases: PurchaseRepositoryProtocol = purchases or PurchaseRepository()

    async def start(
        self,
        db: AsyncSession,
        user_id: str,
        email: str | None,
        product_id: str,
    ) -> CheckoutResponse:
        product = await self._catalog.get_product(db, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if not product.price_cents or product.price_cents <= 0:
            raise ProductInvalidError(product_id, "no price")
        if product.credits <= 0:
            raise ProductInvalidError(product_id, "no credit grant")

        try:
            purchase = await self._purchases.create_initiated(
                db,
                user_id=user_id,
                product_id=product.product_id,
                product_name=product.name,
                amount=product.price_cents,
                currency=product.currency,
                credits=product.credits,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        # Processor failure propagates; the record stays `initiated`
        handle = await self._processor.create_checkout_session(
            purchase, email, build_metadata(purchase), image=product.image
        )

        try:
            await self._purchases.mark_pending(db, purchase.id, handle.session_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("checkout started purchase=%s user=%s product=%s session=%s",
                    purchase.id, user_id, product_id, handle.session_id)
        return CheckoutResponse(purchase_id=purchase.id, checkout_url=handle.url)


class PurchaseQueryService:
    def __init__(self, purchases: PurchaseRepositoryProtocol | None = None) -> None:
        self._purchases: PurchaseRepositoryProtocol = purchases or PurchaseRepository()

    async def list_for_user(
        self, db: AsyncSession, user_id: str, limit: int = 50
    ) -> list[PurchaseItem]:
        records = await self._purchases.list_for_user(db, user_id, limit)
        return [PurchaseItem.from_domain(r) for r in records]
