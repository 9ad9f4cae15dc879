"""Repository and payment-processor Protocols for vd_purchase."""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_purchase.domain.models import CheckoutHandle, PaymentEvent, PurchaseRecord


class PurchaseRepositoryProtocol(Protocol):
    async def create_initiated(
        self,
        db: AsyncSession,
        user_id: str,
        product_id: str,
        product_name: str,
        amount: int,
        currency: str,
        credits: int,
    ) -> PurchaseRecord: ...

    async def mark_pending(
        self, db: AsyncSession, purchase_id: str, session_id: str
    ) -> PurchaseRecord | None: ...

    async def settle_paid(
        self,
        db: AsyncSession,
        purchase_id: str,
        user_id: str,
        session_id: str | None,
        payment_id: str | None,
    ) -> PurchaseRecord | None: ...

    async def close(
        self,
        db: AsyncSession,
        purchase_id: str | None,
        session_id: str | None,
        status: str,
    ) -> PurchaseRecord | None: ...

    async def get(self, db: AsyncSession, purchase_id: str) -> PurchaseRecord | None: ...

    async def list_for_user(
        self, db: AsyncSession, user_id: str, limit: int
    ) -> list[PurchaseRecord]: ...


class PaymentProcessorProtocol(Protocol):
    async def create_checkout_session(
        self,
        purchase: PurchaseRecord,
        customer_email: str | None,
        metadata: dict[str, str],
        image: str | None = None,
    ) -> CheckoutHandle: ...

    def verify_and_parse(self, payload: bytes, signature: str | None) -> PaymentEvent: ...


class PurchaseNotifierProtocol(Protocol):
    async def notify_paid(self, purchase: PurchaseRecord) -> Any: ...
