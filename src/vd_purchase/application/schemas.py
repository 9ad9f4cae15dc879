"""Pydantic schemas for vd_purchase API."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.vd_common.money import cents_to_display
from src.vd_purchase.domain.models import PurchaseRecord


class CheckoutRequest(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=64)


class CheckoutResponse(BaseModel):
    purchase_id: str
    checkout_url: str


class PurchaseItem(BaseModel):
    purchase_id: str
    product_id: str
    product_name: str
    amount: int
    amount_display: str
    currency: str
    credits: int
    status: str
    created_at: datetime | None
    paid_at: datetime | None

    @classmethod
    def from_domain(cls, p: PurchaseRecord) -> "PurchaseItem":
        return cls(
            purchase_id=p.id,
            product_id=p.product_id,
            product_name=p.product_name,
            amount=p.amount,
            amount_display=cents_to_display(p.amount, p.currency),
            currency=p.currency,
            credits=p.credits,
            status=p.status,
            created_at=p.created_at,
            paid_at=p.paid_at,
        )


class PurchaseListResponse(BaseModel):
    items: list[PurchaseItem]


class WebhookAck(BaseModel):
    received: bool = True
    outcome: str
