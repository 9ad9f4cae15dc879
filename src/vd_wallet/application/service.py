"""WalletApplicationService — thin composition layer over the ledger store.

Mutations (manual credit, debit) own their transaction: commit on success,
rollback on any error. Reads run without an explicit transaction.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_wallet.application.schemas import (
    AuditResponse,
    BalanceChangeResponse,
    BalanceResponse,
    LedgerEntryItem,
    LedgerResponse,
    PointInTimeBalanceResponse,
    cursor_decode,
    cursor_encode,
)
from src.vd_wallet.domain.models import WalletAudit
from src.vd_wallet.domain.repository import LedgerStoreProtocol
from src.vd_wallet.infrastructure.persistence import LedgerStore

logger = logging.getLogger(__name__)


class WalletApplicationService:
    def __init__(self, store: LedgerStoreProtocol | None = None) -> None:
        self._store: LedgerStoreProtocol = store or LedgerStore()

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        wallet = await self._store.get_wallet(db, user_id)
        return BalanceResponse(user_id=user_id, balance=wallet.balance if wallet else 0)

    async def credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        reference_id: str | None,
        description: str | None = None,
    ) -> BalanceChangeResponse:
        try:
            wallet, entry = await self._store.credit(
                db, user_id, amount, reason, reference_id, description
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("wallet credit user=%s amount=%d reason=%s balance=%d",
                    user_id, amount, reason, wallet.balance)
        return BalanceChangeResponse(
            user_id=user_id, balance=wallet.balance, amount=amount, ledger_entry_id=entry.id
        )

    async def debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        reference_id: str | None,
        description: str | None = None,
    ) -> BalanceChangeResponse:
        try:
            wallet, entry = await self._store.debit(
                db, user_id, amount, reason, reference_id, description
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("wallet debit user=%s amount=%d reason=%s balance=%d",
                    user_id, amount, reason, wallet.balance)
        return BalanceChangeResponse(
            user_id=user_id, balance=wallet.balance, amount=amount, ledger_entry_id=entry.id
        )

    async def list_ledger(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        reason: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._store.list_entries(db, user_id, cursor_id, limit + 1, reason)
        has_more = len(entries) > limit
        page = entries[:limit]

        items = [LedgerEntryItem.from_domain(e) for e in page]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(items=items, next_cursor=next_cursor, has_more=has_more)

    async def audit(self, db: AsyncSession, user_id: str) -> AuditResponse:
        """Compare the materialized balance with a full replay of the entry log."""
        wallet = await self._store.get_wallet(db, user_id)
        total, count = await self._store.replay_balance(db, user_id, None)
        audit = WalletAudit(
            user_id=user_id,
            balance=wallet.balance if wallet else 0,
            ledger_sum=total,
            entry_count=count,
        )
        if not audit.consistent:
            logger.error(
                "wallet conservation violated user=%s balance=%d ledger_sum=%d",
                user_id, audit.balance, audit.ledger_sum,
            )
        return AuditResponse(
            user_id=user_id,
            balance=audit.balance,
            ledger_sum=audit.ledger_sum,
            entry_count=audit.entry_count,
            consistent=audit.consistent,
        )

    async def balance_at(
        self, db: AsyncSession, user_id: str, at: datetime
    ) -> PointInTimeBalanceResponse:
        total, count = await self._store.replay_balance(db, user_id, at)
        return PointInTimeBalanceResponse(user_id=user_id, at=at, balance=total, entry_count=count)
