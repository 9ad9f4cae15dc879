"""CallBillingService — charges a finished voice call against the wallet.

cost = ceil(duration_seconds * rate_per_minute / 60). The call record and the
debit commit together: when the wallet cannot cover the cost the debit raises
InsufficientBalanceError, the transaction is rolled back and no call record
survives. A zero-cost call writes the record only.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_calls.application.schemas import CallItem, EndCallRequest, EndCallResponse
from src.vd_calls.infrastructure.persistence import CallLogRepository
from src.vd_catalog.domain.repository import CatalogRepositoryProtocol
from src.vd_catalog.infrastructure.persistence import CatalogRepository
from src.vd_common.enums import LedgerReason
from src.vd_common.errors import AgentNotFoundError, InvalidCallDurationError
from src.vd_common.money import call_cost
from src.vd_wallet.domain.repository import LedgerStoreProtocol
from src.vd_wallet.infrastructure.persistence import LedgerStore

logger = logging.getLogger(__name__)


class CallBillingService:
    def __init__(
        self,
        calls: CallLogRepository | None = None,
        catalog: CatalogRepositoryProtocol | None = None,
        ledger: LedgerStoreProtocol | None = None,
    ) -> None:
        self._calls = calls or CallLogRepository()
        self._catalog: CatalogRepositoryProtocol = catalog or CatalogRepository()
        self._ledger: LedgerStoreProtocol = ledger or LedgerStore()

    async def end_call(
        self, db: AsyncSession, user_id: str, req: EndCallRequest
    ) -> EndCallResponse:
        if req.duration_seconds < 0:
            raise InvalidCallDurationError(req.duration_seconds)
        agent = await self._catalog.get_agent(db, req.agent_id)
        if agent is None:
            raise AgentNotFoundError(req.agent_id)

        cost = call_cost(req.duration_seconds, agent.rate_per_minute)
        try:
            call = await self._calls.insert(
                db,
                user_id=user_id,
                agent_id=agent.record_id,
                duration_seconds=req.duration_seconds,
                rate_per_minute=agent.rate_per_minute,
                credits_charged=cost,
                status=req.status,
            )
            if cost > 0:
                wallet, _ = await self._ledger.debit(
                    db,
                    user_id,
                    cost,
                    LedgerReason.CALL.value,
                    call.id,
                    f"Call with {agent.name} ({req.duration_seconds}s)",
                )
                balance = wallet.balance
            else:
                existing = await self._ledger.get_wallet(db, user_id)
                balance = existing.balance if existing else 0
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("call billed call=%s user=%s agent=%s seconds=%d cost=%d balance=%d",
                    call.id, user_id, agent.record_id, req.duration_seconds, cost, balance)
        return EndCallResponse(
            call_id=call.id,
            duration_seconds=req.duration_seconds,
            credits_charged=cost,
            balance=balance,
        )

    async def list_calls(self, db: AsyncSession, user_id: str, limit: int = 50) -> list[CallItem]:
        records = await self._calls.list_for_user(db, user_id, limit)
        return [
            CallItem(
                call_id=r.id,
                agent_id=r.agent_id,
                duration_seconds=r.duration_seconds,
                credits_charged=r.credits_charged,
                status=r.status,
                created_at=r.created_at,
            )
            for r in records
        ]
