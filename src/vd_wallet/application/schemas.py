"""Pydantic schemas and cursor utilities for vd_wallet API."""

import base64
import json
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.vd_wallet.domain.models import LedgerEntry

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except Exception:
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ManualCreditRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Credits to grant")
    reason: Literal["admin", "refund"] = "admin"
    reference_id: str | None = Field(None, max_length=64)
    description: str | None = Field(None, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    balance: int


class BalanceChangeResponse(BaseModel):
    user_id: str
    balance: int
    amount: int
    ledger_entry_id: int


class LedgerEntryItem(BaseModel):
    id: int
    direction: str
    amount: int
    signed_amount: int
    reason: str
    reference_id: str | None
    balance_after: int
    description: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, e: LedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=e.id,
            direction=e.direction,
            amount=e.amount,
            signed_amount=e.signed_amount,
            reason=e.reason,
            reference_id=e.reference_id,
            balance_after=e.balance_after,
            description=e.description,
            created_at=e.created_at.isoformat() if e.created_at else "",
        )


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool


class AuditResponse(BaseModel):
    user_id: str
    balance: int
    ledger_sum: int
    entry_count: int
    consistent: bool


class PointInTimeBalanceResponse(BaseModel):
    user_id: str
    at: datetime
    balance: int
    entry_count: int
