"""LedgerStore — concrete implementation of LedgerStoreProtocol.

Every balance mutation is a single atomic PostgreSQL statement with RETURNING:
  - credit: INSERT ... ON CONFLICT DO UPDATE (creates the wallet on first credit)
  - debit:  UPDATE ... WHERE balance >= :amount (0 rows = insufficient balance)
The row lock taken by the statement serializes concurrent mutations of the
same wallet, so balance_after is always the exact post-image.

Transaction ownership: The CALLER (application service or reconciliation
handler) commits or rolls back. The wallet update and its ledger entry are
only ever visible together.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_common.enums import LedgerDirection
from src.vd_common.errors import InsufficientBalanceError, InternalError, InvalidAmountError
from src.vd_wallet.domain.models import LedgerEntry, Wallet

# ---------------------------------------------------------------------------
# SQL: wallet mutations
# ---------------------------------------------------------------------------

_CREDIT_SQL = text("""
    INSERT INTO wallets (user_id, balance, version)
    VALUES (:user_id, :amount, 1)
    ON CONFLICT (user_id) DO UPDATE
        SET balance = wallets.balance + EXCLUDED.balance,
            version = wallets.version + 1,
            updated_at = NOW()
    RETURNING user_id, balance, version, created_at, updated_at
""")

_DEBIT_SQL = text("""
    UPDATE wallets
    SET balance = balance - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND balance >= :amount
    RETURNING user_id, balance, version, created_at, updated_at
""")

_INSERT_LEDGER_SQL = text("""
    INSERT INTO ledger_entries
        (user_id, direction, amount, reason, reference_id, balance_after, description)
    VALUES
        (:user_id, :direction, :amount, :reason, :reference_id, :balance_after, :description)
    RETURNING id, user_id, direction, amount, reason, reference_id,
              balance_after, description, created_at
""")

# ---------------------------------------------------------------------------
# SQL: reads
# ---------------------------------------------------------------------------

_GET_WALLET_SQL = text("""
    SELECT user_id, balance, version, created_at, updated_at
    FROM wallets
    WHERE user_id = :user_id
""")

_LIST_LEDGER_SQL = text("""
    SELECT id, user_id, direction, amount, reason, reference_id,
           balance_after, description, created_at
    FROM ledger_entries
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
      AND (CAST(:reason AS TEXT) IS NULL OR reason = CAST(:reason AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")

_REPLAY_SQL = text("""
    SELECT
        COALESCE(SUM(CASE WHEN direction = 'credit' THEN amount ELSE -amount END), 0) AS total,
        COUNT(*) AS entry_count
    FROM ledger_entries
    WHERE user_id = :user_id
      AND (CAST(:until AS TIMESTAMPTZ) IS NULL OR created_at <= CAST(:until AS TIMESTAMPTZ))
""")


def _row_to_wallet(row: object) -> Wallet:
    return Wallet(
        user_id=row.user_id,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_ledger(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        direction=row.direction,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        reason=row.reason,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _check_amount(amount: int) -> None:
    # bool is an int subclass; True must not pass as one credit
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount)


class LedgerStore:
    """Concrete ledger store. Every mutation is atomic at the SQL level."""

    async def get_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None:
        result = await db.execute(_GET_WALLET_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        reference_id: str | None,
        description: str | None = None,
    ) -> tuple[Wallet, LedgerEntry]:
        _check_amount(amount)
        result = await db.execute(_CREDIT_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Wallet upsert returned no rows for user {user_id}")
        wallet = _row_to_wallet(row)
        entry = await self._append(
            db, wallet, LedgerDirection.CREDIT, amount, reason, reference_id, description
        )
        return wallet, entry

    async def debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        reason: str,
        reference_id: str | None,
        description: str | None = None,
    ) -> tuple[Wallet, LedgerEntry]:
        _check_amount(amount)
        result = await db.execute(_DEBIT_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            wallet = await self.get_wallet(db, user_id)
            raise InsufficientBalanceError(amount, wallet.balance if wallet else 0)
        wallet = _row_to_wallet(row)
        entry = await self._append(
            db, wallet, LedgerDirection.DEBIT, amount, reason, reference_id, description
        )
        return wallet, entry

    async def _append(
        self,
        db: AsyncSession,
        wallet: Wallet,
        direction: LedgerDirection,
        amount: int,
        reason: str,
        reference_id: str | None,
        description: str | None,
    ) -> LedgerEntry:
        result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "user_id": wallet.user_id,
                "direction": direction.value,
                "amount": amount,
                "reason": str(reason),
                "reference_id": reference_id,
                "balance_after": wallet.balance,
                "description": description,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows")
        return _row_to_ledger(row)

    async def list_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        reason: str | None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "reason": reason,
                "limit": limit,
            },
        )
        return [_row_to_ledger(row) for row in result.fetchall()]

    async def replay_balance(
        self, db: AsyncSession, user_id: str, until: datetime | None
    ) -> tuple[int, int]:
        """Sum of signed entry amounts up to `until` (None = all). Returns (total, entry_count)."""
        result = await db.execute(_REPLAY_SQL, {"user_id": user_id, "until": until})
        row = result.fetchone()
        if row is None:
            return 0, 0
        return int(row.total), int(row.entry_count)  # type: ignore[attr-defined]
