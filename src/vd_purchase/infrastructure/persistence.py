"""PurchaseRepository — concrete implementation of PurchaseRepositoryProtocol.

Every status transition is one conditional UPDATE ... RETURNING. The WHERE
clause encodes the allowed source states, so the row lock plus the re-checked
predicate (READ COMMITTED) is the only serialization needed: of N concurrent
deliveries for the same purchase exactly one gets a row back.

Transaction ownership: the caller commits or rolls back.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_common.errors import InternalError
from src.vd_purchase.domain.models import PurchaseRecord

_COLUMNS = """
    id, user_id, product_id, product_name, amount, currency, credits, status,
    processor_session_id, processor_payment_id, created_at, updated_at, paid_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO purchases
        (user_id, product_id, product_name, amount, currency, credits, status)
    VALUES
        (:user_id, :product_id, :product_name, :amount, :currency, :credits, 'initiated')
    RETURNING {_COLUMNS}
""")

_MARK_PENDING_SQL = text(f"""
    UPDATE purchases
    SET status = 'pending',
        processor_session_id = :session_id,
        updated_at = NOW()
    WHERE id = CAST(:purchase_id AS UUID) AND status = 'initiated'
    RETURNING {_COLUMNS}
""")

_SETTLE_PAID_SQL = text(f"""
    UPDATE purchases
    SET status = 'paid',
        processor_session_id = COALESCE(processor_session_id, CAST(:session_id AS TEXT)),
        processor_payment_id = CAST(:payment_id AS TEXT),
        paid_at = NOW(),
        updated_at = NOW()
    WHERE id = CAST(:purchase_id AS UUID)
      AND user_id = :user_id
      AND status <> 'paid'
    RETURNING {_COLUMNS}
""")

_CLOSE_SQL = text(f"""
    UPDATE purchases
    SET status = :status,
        updated_at = NOW()
    WHERE (id = CAST(:purchase_id AS UUID)
           OR processor_session_id = CAST(:session_id AS TEXT))
      AND status IN ('initiated', 'pending')
    RETURNING {_COLUMNS}
""")

_GET_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM purchases
    WHERE id = CAST(:purchase_id AS UUID)
""")

_LIST_FOR_USER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM purchases
    WHERE user_id = :user_id
    ORDER BY created_at DESC
    LIMIT :limit
""")


def _row_to_purchase(row: object) -> PurchaseRecord:
    return PurchaseRecord(
        id=str(row.id),  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        product_id=row.product_id,  # type: ignore[attr-defined]
        product_name=row.product_name,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        currency=row.currency,  # type: ignore[attr-defined]
        credits=row.credits,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        processor_session_id=row.processor_session_id,  # type: ignore[attr-defined]
        processor_payment_id=row.processor_payment_id,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
        paid_at=row.paid_at,  # type: ignore[attr-defined]
    )


class PurchaseRepository:
    async def create_initiated(
        self,
        db: AsyncSession,
        user_id: str,
        product_id: str,
        product_name: str,
        amount: int,
        currency: str,
        credits: int,
    ) -> PurchaseRecord:
        result = await db.execute(
            _INSERT_SQL,
            {
                "user_id": user_id,
                "product_id": product_id,
                "product_name": product_name,
                "amount": amount,
                "currency": currency,
                "credits": credits,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Purchase insert returned no rows")
        return _row_to_purchase(row)

    async def mark_pending(
        self, db: AsyncSession, purchase_id: str, session_id: str
    ) -> PurchaseRecord | None:
        result = await db.execute(
            _MARK_PENDING_SQL, {"purchase_id": purchase_id, "session_id": session_id}
        )
        row = result.fetchone()
        return _row_to_purchase(row) if row else None

    async def settle_paid(
        self,
        db: AsyncSession,
        purchase_id: str,
        user_id: str,
        session_id: str | None,
        payment_id: str | None,
    ) -> PurchaseRecord | None:
        """Move a purchase to paid. None means it was already paid (or never existed)."""
        result = await db.execute(
            _SETTLE_PAID_SQL,
            {
                "purchase_id": purchase_id,
                "user_id": user_id,
                "session_id": session_id,
                "payment_id": payment_id,
            },
        )
        row = result.fetchone()
        return _row_to_purchase(row) if row else None

    async def close(
        self,
        db: AsyncSession,
        purchase_id: str | None,
        session_id: str | None,
        status: str,
    ) -> PurchaseRecord | None:
        """Move a non-terminal purchase to failed/expired. Never touches paid records."""
        result = await db.execute(
            _CLOSE_SQL,
            {"purchase_id": purchase_id, "session_id": session_id, "status": status},
        )
        row = result.fetchone()
        return _row_to_purchase(row) if row else None

    async def get(self, db: AsyncSession, purchase_id: str) -> PurchaseRecord | None:
        result = await db.execute(_GET_SQL, {"purchase_id": purchase_id})
        row = result.fetchone()
        return _row_to_purchase(row) if row else None

    async def list_for_user(
        self, db: AsyncSession, user_id: str, limit: int
    ) -> list[PurchaseRecord]:
        result = await db.execute(_LIST_FOR_USER_SQL, {"user_id": user_id, "limit": limit})
        return [_row_to_purchase(row) for row in result.fetchall()]
