"""CatalogRepository — concrete implementation of CatalogRepositoryProtocol.

Upserts are keyed by the CRM id and guarded by freshness in SQL: the
ON CONFLICT branch only fires when the incoming `crm_updated_at` is newer
than the stored one (or the stored one is unknown), so concurrent or
out-of-order syncs can never overwrite a fresher row with a stale one.
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_catalog.domain.models import Agent, Product

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_PRODUCT_COLUMNS = """
    product_id, name, image, product_type, price_cents, currency,
    price_id, credits, crm_updated_at, last_synced_at
"""

_GET_PRODUCT_SQL = text(f"""
    SELECT {_PRODUCT_COLUMNS}
    FROM products
    WHERE product_id = :product_id
""")

_LIST_PRODUCTS_SQL = text(f"""
    SELECT {_PRODUCT_COLUMNS}
    FROM products
    ORDER BY price_cents ASC NULLS LAST, product_id ASC
""")

_PRODUCT_STAMPS_SQL = text("SELECT product_id, crm_updated_at FROM products")

_UPSERT_PRODUCT_SQL = text("""
    INSERT INTO products
        (product_id, name, image, product_type, price_cents, currency,
         price_id, credits, crm_updated_at, last_synced_at)
    VALUES
        (:product_id, :name, :image, :product_type, :price_cents, :currency,
         :price_id, :credits, :crm_updated_at, NOW())
    ON CONFLICT (product_id) DO UPDATE
        SET name           = EXCLUDED.name,
            image          = EXCLUDED.image,
            product_type   = EXCLUDED.product_type,
            price_cents    = EXCLUDED.price_cents,
            currency       = EXCLUDED.currency,
            price_id       = EXCLUDED.price_id,
            credits        = EXCLUDED.credits,
            crm_updated_at = EXCLUDED.crm_updated_at,
            last_synced_at = NOW(),
            updated_at     = NOW()
        WHERE products.crm_updated_at IS NULL
           OR CAST(:crm_updated_at AS TIMESTAMPTZ) IS NULL
           OR products.crm_updated_at < EXCLUDED.crm_updated_at
    RETURNING product_id
""")

_AGENT_COLUMNS = """
    record_id, name, image_url, rate_per_minute, voice_agent_id, status, crm_updated_at
"""

_GET_AGENT_SQL = text(f"""
    SELECT {_AGENT_COLUMNS}
    FROM agents
    WHERE record_id = :record_id
""")

_LIST_ACTIVE_AGENTS_SQL = text(f"""
    SELECT {_AGENT_COLUMNS}
    FROM agents
    WHERE status = 'active'
    ORDER BY created_at DESC
""")

_UPSERT_AGENT_SQL = text("""
    INSERT INTO agents
        (record_id, name, image_url, rate_per_minute, voice_agent_id, status, crm_updated_at)
    VALUES
        (:record_id, :name, :image_url, :rate_per_minute, :voice_agent_id, :status, :crm_updated_at)
    ON CONFLICT (record_id) DO UPDATE
        SET name            = EXCLUDED.name,
            image_url       = EXCLUDED.image_url,
            rate_per_minute = EXCLUDED.rate_per_minute,
            voice_agent_id  = COALESCE(EXCLUDED.voice_agent_id, agents.voice_agent_id),
            status          = EXCLUDED.status,
            crm_updated_at  = EXCLUDED.crm_updated_at,
            updated_at      = NOW()
        WHERE agents.crm_updated_at IS NULL
           OR CAST(:crm_updated_at AS TIMESTAMPTZ) IS NULL
           OR agents.crm_updated_at < EXCLUDED.crm_updated_at
    RETURNING record_id
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_product(row: object) -> Product:
    return Product(
        product_id=row.product_id,  # type: ignore[attr-defined]
        name=row.name,  # type: ignore[attr-defined]
        image=row.image,  # type: ignore[attr-defined]
        product_type=row.product_type,  # type: ignore[attr-defined]
        price_cents=row.price_cents,  # type: ignore[attr-defined]
        currency=row.currency,  # type: ignore[attr-defined]
        price_id=row.price_id,  # type: ignore[attr-defined]
        credits=row.credits,  # type: ignore[attr-defined]
        crm_updated_at=row.crm_updated_at,  # type: ignore[attr-defined]
        last_synced_at=row.last_synced_at,  # type: ignore[attr-defined]
    )


def _row_to_agent(row: object) -> Agent:
    return Agent(
        record_id=row.record_id,  # type: ignore[attr-defined]
        name=row.name,  # type: ignore[attr-defined]
        image_url=row.image_url,  # type: ignore[attr-defined]
        rate_per_minute=row.rate_per_minute,  # type: ignore[attr-defined]
        voice_agent_id=row.voice_agent_id,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        crm_updated_at=row.crm_updated_at,  # type: ignore[attr-defined]
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CatalogRepository:
    async def get_product(self, db: AsyncSession, product_id: str) -> Product | None:
        result = await db.execute(_GET_PRODUCT_SQL, {"product_id": product_id})
        row = result.fetchone()
        return _row_to_product(row) if row else None

    async def list_products(self, db: AsyncSession) -> list[Product]:
        result = await db.execute(_LIST_PRODUCTS_SQL)
        return [_row_to_product(row) for row in result.fetchall()]

    async def get_product_stamps(self, db: AsyncSession) -> dict[str, datetime | None]:
        result = await db.execute(_PRODUCT_STAMPS_SQL)
        return {row.product_id: row.crm_updated_at for row in result.fetchall()}

    async def upsert_product(self, db: AsyncSession, product: Product) -> bool:
        """Insert or refresh a product. Returns False when the stored row is at least as fresh."""
        result = await db.execute(
            _UPSERT_PRODUCT_SQL,
            {
                "product_id": product.product_id,
                "name": product.name,
                "image": product.image,
                "product_type": product.product_type,
                "price_cents": product.price_cents,
                "currency": product.currency,
                "price_id": product.price_id,
                "credits": product.credits,
                "crm_updated_at": product.crm_updated_at,
            },
        )
        return result.fetchone() is not None

    async def get_agent(self, db: AsyncSession, record_id: str) -> Agent | None:
        result = await db.execute(_GET_AGENT_SQL, {"record_id": record_id})
        row = result.fetchone()
        return _row_to_agent(row) if row else None

    async def list_active_agents(self, db: AsyncSession) -> list[Agent]:
        result = await db.execute(_LIST_ACTIVE_AGENTS_SQL)
        return [_row_to_agent(row) for row in result.fetchall()]

    async def upsert_agent(self, db: AsyncSession, agent: Agent) -> bool:
        result = await db.execute(
            _UPSERT_AGENT_SQL,
            {
                "record_id": agent.record_id,
                "name": agent.name,
                "image_url": agent.image_url,
                "rate_per_minute": agent.rate_per_minute,
                "voice_agent_id": agent.voice_agent_id,
                "status": agent.status,
                "crm_updated_at": agent.crm_updated_at,
            },
        )
        return result.fetchone() is not None
