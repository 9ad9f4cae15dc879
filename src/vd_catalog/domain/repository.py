"""Repository and upstream Protocols for vd_catalog."""

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_catalog.domain.models import Agent, Product


class CatalogRepositoryProtocol(Protocol):
    async def get_product(self, db: AsyncSession, product_id: str) -> Product | None: ...

    async def list_products(self, db: AsyncSession) -> list[Product]: ...

    async def get_product_stamps(self, db: AsyncSession) -> dict[str, datetime | None]: ...

    async def upsert_product(self, db: AsyncSession, product: Product) -> bool: ...

    async def get_agent(self, db: AsyncSession, record_id: str) -> Agent | None: ...

    async def list_active_agents(self, db: AsyncSession) -> list[Agent]: ...

    async def upsert_agent(self, db: AsyncSession, agent: Agent) -> bool: ...


class CatalogSourceProtocol(Protocol):
    """The slice of the CRM client the product sync needs."""

    async def fetch_products(self) -> list[dict[str, Any]]: ...

    async def fetch_product_price(self, product_id: str) -> dict[str, Any] | None: ...
