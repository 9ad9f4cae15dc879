"""006: create call_logs table

Revision ID: 006
Revises: 005
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE call_logs (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id             VARCHAR(64)     NOT NULL,
            agent_id            VARCHAR(64)     NOT NULL,
            duration_seconds    INTEGER         NOT NULL,
            rate_per_minute     INTEGER         NOT NULL,
            credits_charged     INTEGER         NOT NULL,
            status              VARCHAR(16)     NOT NULL DEFAULT 'completed',
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_call_logs_status CHECK (status IN ('completed', 'disconnected')),
            CONSTRAINT ck_call_logs_duration_gte_0 CHECK (duration_seconds >= 0),
            CONSTRAINT ck_call_logs_charged_gte_0 CHECK (credits_charged >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_call_logs_user_time ON call_logs (user_id, created_at DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS call_logs CASCADE;")
