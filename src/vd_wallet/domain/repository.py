"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_wallet.domain.models import LedgerEntry, Wallet


class LedgerStoreProtocol(Protocol):
    async def get_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None: ...

    async def credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        reference_id: str | None,
        description: str | None = None,
    ) -> tuple[Wallet, LedgerEntry]: ...

    async def debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        reference_id: str | None,
        description: str | None = None,
    ) -> tuple[Wallet, LedgerEntry]: ...

    async def list_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        reason: str | None,
    ) -> list[LedgerEntry]: ...

    async def replay_balance(
        self, db: AsyncSession, user_id: str, until: datetime | None
    ) -> tuple[int, int]: ...
