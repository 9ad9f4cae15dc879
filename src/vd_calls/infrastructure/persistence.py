"""CallLogRepository — append-only call records. The caller owns the transaction."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_calls.domain.models import CallRecord
from src.vd_common.errors import InternalError

_INSERT_CALL_SQL = text("""
    INSERT INTO call_logs
        (user_id, agent_id, duration_seconds, rate_per_minute, credits_charged, status)
    VALUES
        (:user_id, :agent_id, :duration_seconds, :rate_per_minute, :credits_charged, :status)
    RETURNING id, user_id, agent_id, duration_seconds, rate_per_minute,
              credits_charged, status, created_at
""")

_LIST_CALLS_SQL = text("""
    SELECT id, user_id, agent_id, duration_seconds, rate_per_minute,
           credits_charged, status, created_at
    FROM call_logs
    WHERE user_id = :user_id
    ORDER BY created_at DESC
    LIMIT :limit
""")


def _row_to_call(row: object) -> CallRecord:
    return CallRecord(
        id=str(row.id),  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        agent_id=row.agent_id,  # type: ignore[attr-defined]
        duration_seconds=row.duration_seconds,  # type: ignore[attr-defined]
        rate_per_minute=row.rate_per_minute,  # type: ignore[attr-defined]
        credits_charged=row.credits_charged,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class CallLogRepository:
    async def insert(
        self,
        db: AsyncSession,
        user_id: str,
        agent_id: str,
        duration_seconds: int,
        rate_per_minute: int,
        credits_charged: int,
        status: str,
    ) -> CallRecord:
        result = await db.execute(
            _INSERT_CALL_SQL,
            {
                "user_id": user_id,
                "agent_id": agent_id,
                "duration_seconds": duration_seconds,
                "rate_per_minute": rate_per_minute,
                "credits_charged": credits_charged,
                "status": status,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Call log insert returned no rows")
        return _row_to_call(row)

    async def list_for_user(self, db: AsyncSession, user_id: str, limit: int) -> list[CallRecord]:
        result = await db.execute(_LIST_CALLS_SQL, {"user_id": user_id, "limit": limit})
        return [_row_to_call(row) for row in result.fetchall()]
