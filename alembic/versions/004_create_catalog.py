"""004: create products and agents tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE products (
            product_id      VARCHAR(64)     PRIMARY KEY,
            name            VARCHAR(255)    NOT NULL,
            image           VARCHAR(1024),
            product_type    VARCHAR(32),
            price_cents     BIGINT,
            currency        VARCHAR(8)      NOT NULL DEFAULT 'usd',
            price_id        VARCHAR(64),
            credits         INTEGER         NOT NULL DEFAULT 50,
            crm_updated_at  TIMESTAMPTZ,
            last_synced_at  TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_products_credits_gte_0 CHECK (credits >= 0),
            CONSTRAINT ck_products_price_gte_0 CHECK (price_cents IS NULL OR price_cents >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_products_updated_at
            BEFORE UPDATE ON products
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE agents (
            record_id       VARCHAR(64)     PRIMARY KEY,
            name            VARCHAR(255)    NOT NULL,
            image_url       VARCHAR(1024),
            rate_per_minute INTEGER         NOT NULL DEFAULT 1,
            voice_agent_id  VARCHAR(128),
            status          VARCHAR(16)     NOT NULL DEFAULT 'active',
            crm_updated_at  TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_agents_status CHECK (status IN ('active', 'inactive')),
            CONSTRAINT ck_agents_rate_gte_0 CHECK (rate_per_minute >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_agents_status ON agents (status, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_agents_updated_at
            BEFORE UPDATE ON agents
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS agents CASCADE;")
    op.execute("DROP TABLE IF EXISTS products CASCADE;")
