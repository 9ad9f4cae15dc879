"""Domain models for vd_wallet — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.vd_common.enums import LedgerDirection


@dataclass
class Wallet:
    user_id: str
    balance: int             # credits, never negative
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class LedgerEntry:
    id: int                          # BIGSERIAL
    user_id: str
    direction: str                   # LedgerDirection value
    amount: int                      # credits, always positive; sign comes from direction
    reason: str                      # LedgerReason value
    balance_after: int               # wallet balance snapshot after this entry
    reference_id: str | None = None  # purchase id or call id
    description: str | None = None
    created_at: datetime | None = None

    @property
    def signed_amount(self) -> int:
        return self.amount if self.direction == LedgerDirection.CREDIT else -self.amount


@dataclass
class WalletAudit:
    user_id: str
    balance: int
    ledger_sum: int
    entry_count: int

    @property
    def consistent(self) -> bool:
        return self.balance == self.ledger_sum
