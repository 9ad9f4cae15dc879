"""DownstreamNotifier — mirrors a paid purchase into the CRM as an invoice.

Runs detached from the webhook response (see BackgroundDispatcher) with its
own database session. Steps: resolve the user's CRM contact (stored id, else
search by email, else create and remember it), create a draft invoice for the
purchase's stored amount, record a payment against it.

Nothing here is transactional with the credit: every failure is logged with the
purchase id and swallowed. A failure after invoice creation leaves an orphan
draft invoice in the CRM, logged with its id for manual follow-up.
"""

import logging
import uuid
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.vd_catalog.domain.repository import CatalogRepositoryProtocol
from src.vd_catalog.infrastructure.persistence import CatalogRepository
from src.vd_common.datetime_utils import utc_now
from src.vd_common.errors import UpstreamUnavailableError
from src.vd_crm.client import CrmClient
from src.vd_gateway.user.db_models import UserModel
from src.vd_purchase.domain.models import PurchaseRecord

logger = logging.getLogger(__name__)


class DownstreamNotifier:
    def __init__(
        self,
        crm: CrmClient,
        session_factory: async_sessionmaker[AsyncSession],
        catalog: CatalogRepositoryProtocol | None = None,
    ) -> None:
        self._crm = crm
        self._session_factory = session_factory
        self._catalog: CatalogRepositoryProtocol = catalog or CatalogRepository()

    async def notify_paid(self, purchase: PurchaseRecord) -> str | None:
        """Returns the CRM invoice id, or None when propagation failed (already logged)."""
        try:
            async with self._session_factory() as db:
                return await self._propagate(db, purchase)
        except UpstreamUnavailableError as exc:
            logger.error("crm propagation failed purchase=%s: %s", purchase.id, exc.message)
        except Exception:
            logger.exception("crm propagation crashed purchase=%s", purchase.id)
        return None

    async def _propagate(self, db: AsyncSession, purchase: PurchaseRecord) -> str | None:
        user = (
            await db.execute(select(UserModel).where(UserModel.id == uuid.UUID(purchase.user_id)))
        ).scalar_one_or_none()
        if user is None:
            logger.warning("crm propagation skipped purchase=%s: user %s not found",
                           purchase.id, purchase.user_id)
            return None

        contact = await self._resolve_contact(db, user)
        if contact is None:
            logger.warning("crm propagation skipped purchase=%s: no contact for user %s",
                           purchase.id, purchase.user_id)
            return None

        product = await self._catalog.get_product(db, purchase.product_id)
        amount = purchase.amount / 100
        invoice = await self._crm.create_draft_invoice(
            contact=contact,
            item_name=purchase.product_name,
            product_id=purchase.product_id,
            price_id=product.price_id if product else None,
            amount=amount,
            currency=purchase.currency,
            invoice_number=f"VD-{purchase.id.split('-')[0].upper()}",
        )
        invoice_id = invoice["_id"]
        logger.info("crm invoice created purchase=%s invoice=%s", purchase.id, invoice_id)

        try:
            await self._crm.record_invoice_payment(
                invoice_id,
                amount=amount,
                note=f"Paid via card checkout (purchase {purchase.id}, "
                     f"payment {purchase.processor_payment_id or 'n/a'})",
                fulfilled_at=(purchase.paid_at or utc_now()).isoformat(),
            )
        except UpstreamUnavailableError as exc:
            logger.error("orphan draft invoice=%s purchase=%s: payment not recorded: %s",
                         invoice_id, purchase.id, exc.message)
            return None

        logger.info("crm payment recorded purchase=%s invoice=%s", purchase.id, invoice_id)
        return invoice_id

    async def _resolve_contact(self, db: AsyncSession, user: UserModel) -> dict[str, Any] | None:
        base = {"name": user.display_name or user.email, "email": user.email}
        if user.crm_contact_id:
            return {"id": user.crm_contact_id, **base}
        if not user.email:
            return None

        contact = await self._crm.find_contact_by_email(user.email)
        if contact is None:
            contact = await self._crm.create_contact(user.email, user.display_name, user.avatar)
        if not contact or not contact.get("id"):
            return None

        await db.execute(
            update(UserModel)
            .where(UserModel.id == user.id)
            .values(crm_contact_id=contact["id"], updated_at=utc_now())
        )
        await db.commit()
        logger.info("crm contact linked user=%s contact=%s", user.id, contact["id"])
        return {"id": contact["id"], **base}
