"""Pydantic schemas for vd_catalog API and the CRM agent webhook."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.vd_catalog.domain.models import Agent, Product
from src.vd_common.money import cents_to_display


class ProductItem(BaseModel):
    product_id: str
    name: str
    image: str | None
    product_type: str | None
    price_cents: int | None
    price_display: str | None
    currency: str
    credits: int
    purchasable: bool

    @classmethod
    def from_domain(cls, p: Product) -> "ProductItem":
        return cls(
            product_id=p.product_id,
            name=p.name,
            image=p.image,
            product_type=p.product_type,
            price_cents=p.price_cents,
            price_display=(
                cents_to_display(p.price_cents, p.currency) if p.price_cents is not None else None
            ),
            currency=p.currency,
            credits=p.credits,
            purchasable=p.purchasable,
        )


class AgentItem(BaseModel):
    record_id: str
    name: str
    image_url: str | None
    rate_per_minute: int
    voice_agent_id: str | None

    @classmethod
    def from_domain(cls, a: Agent) -> "AgentItem":
        return cls(
            record_id=a.record_id,
            name=a.name,
            image_url=a.image_url,
            rate_per_minute=a.rate_per_minute,
            voice_agent_id=a.voice_agent_id,
        )


class AgentWebhookPayload(BaseModel):
    """CRM custom-object webhook body. Field names follow the CRM's camelCase."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    image_url: str | None = Field(None, alias="imageUrl")
    rate_per_minute: int = Field(1, alias="ratePerMinute", ge=0)
    voice_agent_id: str | None = Field(None, alias="voiceAgentId")
    status: str = "active"
    updated_at: str | None = Field(None, alias="updatedAt")

    @field_validator("rate_per_minute", mode="before")
    @classmethod
    def _coerce_rate(cls, v: object) -> object:
        # CRM sends numbers as strings; unparsable or empty falls back to 1 credit/min
        if v is None or v == "":
            return 1
        try:
            return int(float(v))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 1

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, v: object) -> str:
        return "inactive" if str(v or "active").lower() == "inactive" else "active"


class SyncReportResponse(BaseModel):
    fetched: int
    upserted: int
    unchanged: int
    failed: int
