"""Domain models for vd_catalog — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Product:
    product_id: str              # CRM product id
    name: str
    price_cents: int | None      # None when the CRM has no price yet
    currency: str
    credits: int
    image: str | None = None
    product_type: str | None = None
    price_id: str | None = None
    crm_updated_at: datetime | None = None
    last_synced_at: datetime | None = None

    @property
    def purchasable(self) -> bool:
        return (self.price_cents or 0) > 0 and self.credits > 0


@dataclass
class Agent:
    record_id: str               # CRM custom object record id
    name: str
    rate_per_minute: int         # credits per minute
    status: str                  # AgentStatus value
    image_url: str | None = None
    voice_agent_id: str | None = None
    crm_updated_at: datetime | None = None


@dataclass
class SyncReport:
    fetched: int = 0
    upserted: int = 0
    unchanged: int = 0
    failed: int = 0
