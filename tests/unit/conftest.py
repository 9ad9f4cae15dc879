"""In-memory stand-ins for the purchase repository and the ledger store.

Both keep the contract of their SQL counterparts: a status transition is a
single check-and-set with no await in between (the conditional UPDATE), and a
second purchase credit for the same reference raises IntegrityError (the
unique partial index). That is enough to exercise idempotency and
conservation under concurrent deliveries without PostgreSQL.
"""

import asyncio
import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from src.vd_common.errors import InsufficientBalanceError, InvalidAmountError
from src.vd_purchase.domain.models import PurchaseRecord
from src.vd_wallet.domain.models import LedgerEntry, Wallet


class InMemoryPurchases:
    def __init__(self) -> None:
        self.records: dict[str, PurchaseRecord] = {}

    def add(self, user_id: str, credits: int = 300, amount: int = 1999, status: str = "pending") -> PurchaseRecord:
        record = PurchaseRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            product_id="prod_1",
            product_name="300 Credits",
            amount=amount,
            currency="usd",
            credits=credits,
            status=status,
            processor_session_id=f"cs_{uuid.uuid4().hex[:8]}",
            created_at=datetime.now(UTC),
        )
        self.records[record.id] = record
        return record

    async def create_initiated(self, db, user_id, product_id, product_name, amount, currency, credits):  # type: ignore[no-untyped-def]
        record = PurchaseRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            product_id=product_id,
            product_name=product_name,
            amount=amount,
            currency=currency,
            credits=credits,
            status="initiated",
        )
        self.records[record.id] = record
        return record

    async def mark_pending(self, db, purchase_id, session_id):  # type: ignore[no-untyped-def]
        record = self.records.get(purchase_id)
        if record is None or record.status != "initiated":
            return None
        record.status = "pending"
        record.processor_session_id = session_id
        return record

    async def settle_paid(self, db, purchase_id, user_id, session_id, payment_id):  # type: ignore[no-untyped-def]
        await asyncio.sleep(0)  # let concurrent deliveries interleave
        record = self.records.get(purchase_id)
        if record is None or record.user_id != user_id or record.status == "paid":
            return None
        record.status = "paid"
        record.processor_session_id = record.processor_session_id or session_id
        record.processor_payment_id = payment_id
        record.paid_at = datetime.now(UTC)
        return record

    async def close(self, db, purchase_id, session_id, status):  # type: ignore[no-untyped-def]
        for record in self.records.values():
            matches = record.id == purchase_id or (
                session_id is not None and record.processor_session_id == session_id
            )
            if matches and record.status in ("initiated", "pending"):
                record.status = status
                return record
        return None

    async def get(self, db, purchase_id):  # type: ignore[no-untyped-def]
        return self.records.get(purchase_id)

    async def list_for_user(self, db, user_id, limit):  # type: ignore[no-untyped-def]
        return [r for r in self.records.values() if r.user_id == user_id][:limit]


class InMemoryLedger:
    def __init__(self) -> None:
        self.balances: dict[str, int] = {}
        self.entries: list[LedgerEntry] = []

    def _append(self, user_id: str, direction: str, amount: int, reason: str,
                reference_id: str | None, description: str | None) -> tuple[Wallet, LedgerEntry]:
        entry = LedgerEntry(
            id=len(self.entries) + 1,
            user_id=user_id,
            direction=direction,
            amount=amount,
            reason=reason,
            balance_after=self.balances[user_id],
            reference_id=reference_id,
            description=description,
            created_at=datetime.now(UTC),
        )
        self.entries.append(entry)
        return Wallet(user_id=user_id, balance=self.balances[user_id], version=len(self.entries)), entry

    async def get_wallet(self, db, user_id):  # type: ignore[no-untyped-def]
        if user_id not in self.balances:
            return None
        return Wallet(user_id=user_id, balance=self.balances[user_id], version=1)

    async def credit(self, db, user_id, amount, reason, reference_id, description=None):  # type: ignore[no-untyped-def]
        if isinstance(amount, bool) or amount <= 0:
            raise InvalidAmountError(amount)
        await asyncio.sleep(0)
        if reason == "purchase" and any(
            e.reason == "purchase" and e.reference_id == reference_id for e in self.entries
        ):
            raise IntegrityError("INSERT INTO ledger_entries", {}, Exception("uq_ledger_purchase_reference"))
        self.balances[user_id] = self.balances.get(user_id, 0) + amount
        return self._append(user_id, "credit", amount, reason, reference_id, description)

    async def debit(self, db, user_id, amount, reason, reference_id, description=None):  # type: ignore[no-untyped-def]
        if isinstance(amount, bool) or amount <= 0:
            raise InvalidAmountError(amount)
        available = self.balances.get(user_id, 0)
        if available < amount:
            raise InsufficientBalanceError(amount, available)
        self.balances[user_id] = available - amount
        return self._append(user_id, "debit", amount, reason, reference_id, description)

    async def list_entries(self, db, user_id, cursor_id, limit, reason):  # type: ignore[no-untyped-def]
        return [e for e in reversed(self.entries) if e.user_id == user_id][:limit]

    async def replay_balance(self, db, user_id, until):  # type: ignore[no-untyped-def]
        mine = [e for e in self.entries if e.user_id == user_id]
        return sum(e.signed_amount for e in mine), len(mine)


@pytest.fixture
def purchases() -> InMemoryPurchases:
    return InMemoryPurchases()


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def db() -> MagicMock:
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    return session
