"""ReconciliationHandler — turns verified processor events into wallet credits.

Flow for a `checkout.session.completed` delivery:
  1. verify the signature over the raw bytes        (fail -> 400, no side effects)
  2. parse the event                                (unknown type -> ack, ignored)
  3. validate the echoed metadata                   (invalid -> ack, malformed)
  4. conditional UPDATE purchases ... status='paid' (0 rows -> ack, duplicate)
  5. credit the ledger in the SAME transaction
  6. after commit, hand the paid purchase to the downstream notifier on a
     detached task; its outcome never reaches the response
  7. ack with the outcome

Any failure inside 4-5 rolls the whole unit back and propagates, so the
endpoint answers 500 and the processor redelivers. Redelivery is safe: the
conditional update lets exactly one delivery settle a purchase, and the unique
(reason, reference_id) index on purchase credits backs it up.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_common.enums import (
    LedgerReason,
    PaymentEventType,
    PurchaseStatus,
    ReconciliationOutcome,
)
from src.vd_common.errors import MalformedEventError
from src.vd_common.tasks import BackgroundDispatcher
from src.vd_purchase.domain.models import (
    CreditMetadata,
    PaymentEvent,
    PurchaseRecord,
    ReconciliationResult,
    purchase_id_from,
)
from src.vd_purchase.domain.repository import (
    PaymentProcessorProtocol,
    PurchaseNotifierProtocol,
    PurchaseRepositoryProtocol,
)
from src.vd_purchase.infrastructure.persistence import PurchaseRepository
from src.vd_wallet.domain.repository import LedgerStoreProtocol
from src.vd_wallet.infrastructure.persistence import LedgerStore

logger = logging.getLogger(__name__)

_CLOSING_EVENTS = {
    PaymentEventType.CHECKOUT_EXPIRED.value: PurchaseStatus.EXPIRED,
    PaymentEventType.CHECKOUT_ASYNC_PAYMENT_FAILED.value: PurchaseStatus.FAILED,
}


class ReconciliationHandler:
    def __init__(
        self,
        processor: PaymentProcessorProtocol,
        dispatcher: BackgroundDispatcher | None = None,
        notifier: PurchaseNotifierProtocol | None = None,
        purchases: PurchaseRepositoryProtocol | None = None,
        ledger: LedgerStoreProtocol | None = None,
    ) -> None:
        self._processor = processor
        self._dispatcher = dispatcher
        self._notifier = notifier
        self._purchases: PurchaseRepositoryProtocol = purchases or PurchaseRepository()
        self._ledger: LedgerStoreProtocol = ledger or LedgerStore()

    async def handle(
        self, db: AsyncSession, payload: bytes, signature: str | None
    ) -> ReconciliationResult:
        # AuthenticityFailureError propagates: the endpoint rejects with 400
        try:
            event = self._processor.verify_and_parse(payload, signature)
        except MalformedEventError as exc:
            logger.warning("payment webhook dropped: %s", exc.message)
            return ReconciliationResult(outcome=ReconciliationOutcome.MALFORMED.value)

        if event.type == PaymentEventType.CHECKOUT_COMPLETED.value:
            return await self._reconcile(db, event)
        if event.type in _CLOSING_EVENTS:
            return await self._close(db, event, _CLOSING_EVENTS[event.type])

        logger.info("payment webhook ignored: type=%s event=%s", event.type, event.event_id)
        return ReconciliationResult(outcome=ReconciliationOutcome.IGNORED.value)

    async def _reconcile(self, db: AsyncSession, event: PaymentEvent) -> ReconciliationResult:
        try:
            meta = CreditMetadata.parse(event.metadata)
        except MalformedEventError as exc:
            logger.error("malformed completion event=%s session=%s: %s",
                         event.event_id, event.session_id, exc.message)
            return ReconciliationResult(outcome=ReconciliationOutcome.MALFORMED.value)

        balance: int | None = None
        try:
            purchase = await self._purchases.settle_paid(
                db, meta.purchase_id, meta.user_id, event.session_id, event.payment_id
            )
            if purchase is None:
                await db.rollback()
                logger.info("duplicate completion purchase=%s event=%s (already paid or unknown)",
                            meta.purchase_id, event.event_id)
                return ReconciliationResult(
                    outcome=ReconciliationOutcome.DUPLICATE.value, purchase_id=meta.purchase_id
                )
            if meta.credits > 0:
                wallet, _ = await self._ledger.credit(
                    db,
                    meta.user_id,
                    meta.credits,
                    LedgerReason.PURCHASE.value,
                    meta.purchase_id,
                    f"Purchase: {meta.product_name or purchase.product_name}",
                )
                balance = wallet.balance
            else:
                logger.warning("purchase=%s settled with zero credits, no ledger entry",
                               meta.purchase_id)
            await db.commit()
        except IntegrityError:
            # unique (reason, reference_id): a purchase credit for this id already exists
            await db.rollback()
            logger.warning("purchase credit already recorded purchase=%s event=%s",
                           meta.purchase_id, event.event_id)
            return ReconciliationResult(
                outcome=ReconciliationOutcome.DUPLICATE.value, purchase_id=meta.purchase_id
            )
        except Exception:
            await db.rollback()
            logger.exception("reconciliation failed purchase=%s event=%s, rolled back",
                             meta.purchase_id, event.event_id)
            raise

        logger.info("purchase paid purchase=%s user=%s credits=%d balance=%s",
                    purchase.id, meta.user_id, meta.credits, balance)
        self._dispatch_notification(purchase)
        return ReconciliationResult(
            outcome=ReconciliationOutcome.CREDITED.value,
            purchase_id=purchase.id,
            credited=meta.credits,
            balance=balance,
        )

    async def _close(
        self, db: AsyncSession, event: PaymentEvent, status: PurchaseStatus
    ) -> ReconciliationResult:
        purchase_id = purchase_id_from(event.metadata)
        if purchase_id is None and not event.session_id:
            logger.warning("cannot correlate %s event=%s", event.type, event.event_id)
            return ReconciliationResult(outcome=ReconciliationOutcome.MALFORMED.value)

        try:
            closed = await self._purchases.close(db, purchase_id, event.session_id, status.value)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if closed is None:
            logger.info("%s event=%s matched no open purchase", event.type, event.event_id)
            return ReconciliationResult(
                outcome=ReconciliationOutcome.IGNORED.value, purchase_id=purchase_id
            )
        logger.info("purchase %s purchase=%s", status.value, closed.id)
        return ReconciliationResult(
            outcome=ReconciliationOutcome.CLOSED.value, purchase_id=closed.id
        )

    def _dispatch_notification(self, purchase: PurchaseRecord) -> None:
        if self._dispatcher is None or self._notifier is None:
            return
        job = self._notifier.notify_paid(purchase)
        try:
            self._dispatcher.submit(f"notify-purchase-{purchase.id}", job)
        except Exception:
            job.close()
            # the credit is committed; notification is best-effort
            logger.exception("could not dispatch notification purchase=%s", purchase.id)
