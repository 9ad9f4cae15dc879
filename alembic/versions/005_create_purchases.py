"""005: create purchases table

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE purchases (
            id                      UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id                 VARCHAR(64)     NOT NULL,
            product_id              VARCHAR(64)     NOT NULL,
            product_name            VARCHAR(255)    NOT NULL,
            amount                  BIGINT          NOT NULL,
            currency                VARCHAR(8)      NOT NULL DEFAULT 'usd',
            credits                 INTEGER         NOT NULL,
            status                  VARCHAR(16)     NOT NULL DEFAULT 'initiated',
            processor_session_id    VARCHAR(255),
            processor_payment_id    VARCHAR(255),
            paid_at                 TIMESTAMPTZ,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_purchases_status CHECK (
                status IN ('initiated', 'pending', 'paid', 'failed', 'expired')
            ),
            CONSTRAINT ck_purchases_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_purchases_credits_gte_0 CHECK (credits >= 0),
            CONSTRAINT ck_purchases_paid_at CHECK (status <> 'paid' OR paid_at IS NOT NULL)
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_purchases_session
        ON purchases (processor_session_id)
        WHERE processor_session_id IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_purchases_user_time ON purchases (user_id, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_purchases_updated_at
            BEFORE UPDATE ON purchases
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS purchases CASCADE;")
