"""003: create wallets and ledger_entries tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallets (
            user_id         VARCHAR(64)     PRIMARY KEY,
            balance         BIGINT          NOT NULL DEFAULT 0,
            version         BIGINT          NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_wallets_balance_gte_0 CHECK (balance >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_wallets_updated_at
            BEFORE UPDATE ON wallets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE ledger_entries (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            direction       VARCHAR(8)      NOT NULL,
            amount          BIGINT          NOT NULL,
            reason          VARCHAR(16)     NOT NULL,
            reference_id    VARCHAR(64),
            balance_after   BIGINT          NOT NULL,
            description     VARCHAR(500),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledger_direction CHECK (direction IN ('credit', 'debit')),
            CONSTRAINT ck_ledger_reason CHECK (reason IN ('purchase', 'call', 'refund', 'admin')),
            CONSTRAINT ck_ledger_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_ledger_balance_gte_0 CHECK (balance_after >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_ledger_user_time ON ledger_entries (user_id, created_at DESC);")
    op.execute("CREATE INDEX idx_ledger_user_id ON ledger_entries (user_id, id DESC);")
    # Second guard against double credit: one purchase credit per purchase record
    op.execute("""
        CREATE UNIQUE INDEX uq_ledger_purchase_reference
        ON ledger_entries (reason, reference_id)
        WHERE reason = 'purchase';
    """)
    op.execute("""
        CREATE TRIGGER trg_ledger_entries_append_only
            BEFORE UPDATE OR DELETE ON ledger_entries
            FOR EACH ROW EXECUTE FUNCTION fn_forbid_mutation();
    """)
    op.execute("COMMENT ON TABLE ledger_entries IS 'Credit ledger, append-only, amounts in whole credits';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
    op.execute("DROP TABLE IF EXISTS wallets CASCADE;")
