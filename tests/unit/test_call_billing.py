"""Unit tests for CallBillingService — per-second pro-rata debit of a finished call."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.vd_calls.application.schemas import EndCallRequest
from src.vd_calls.application.service import CallBillingService
from src.vd_calls.domain.models import CallRecord
from src.vd_catalog.domain.models import Agent
from src.vd_common.errors import AgentNotFoundError, InsufficientBalanceError

USER_ID = "8d0f5c3e-2222-4c2b-9a57-000000000002"


def _agent(rate: int = 2) -> Agent:
    return Agent(record_id="rec_1", name="Luna", rate_per_minute=rate, status="active")


def _calls() -> AsyncMock:
    calls = AsyncMock()

    async def insert(db, **kwargs):  # type: ignore[no-untyped-def]
        return CallRecord(id="call-1", **kwargs)

    calls.insert.side_effect = insert
    return calls


def _service(ledger, agent: Agent | None = None, calls: AsyncMock | None = None) -> CallBillingService:  # type: ignore[no-untyped-def]
    catalog = AsyncMock()
    catalog.get_agent.return_value = agent
    return CallBillingService(calls=calls or _calls(), catalog=catalog, ledger=ledger)


class TestEndCall:
    async def test_cost_rounds_up_per_second(self, ledger, db) -> None:
        ledger.balances[USER_ID] = 100

        resp = await _service(ledger, _agent(rate=2)).end_call(
            db, USER_ID, EndCallRequest(agent_id="rec_1", duration_seconds=61)
        )

        # ceil(61 * 2 / 60) = 3
        assert resp.credits_charged == 3
        assert resp.balance == 97
        [entry] = ledger.entries
        assert entry.reason == "call"
        assert entry.reference_id == "call-1"
        db.commit.assert_awaited_once()

    async def test_insufficient_balance_writes_nothing(self, ledger, db) -> None:
        ledger.balances[USER_ID] = 1

        with pytest.raises(InsufficientBalanceError):
            await _service(ledger, _agent(rate=60)).end_call(
                db, USER_ID, EndCallRequest(agent_id="rec_1", duration_seconds=60)
            )

        assert ledger.balances[USER_ID] == 1
        assert ledger.entries == []
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()

    async def test_zero_cost_call_records_only(self, ledger, db) -> None:
        calls = _calls()
        resp = await _service(ledger, _agent(rate=0), calls).end_call(
            db, USER_ID, EndCallRequest(agent_id="rec_1", duration_seconds=300)
        )
        assert resp.credits_charged == 0
        assert resp.balance == 0
        assert ledger.entries == []
        calls.insert.assert_awaited_once()

    async def test_unknown_agent(self, ledger, db) -> None:
        with pytest.raises(AgentNotFoundError):
            await _service(ledger, None).end_call(
                db, USER_ID, EndCallRequest(agent_id="nope", duration_seconds=10)
            )

    def test_negative_duration_rejected_by_schema(self) -> None:
        with pytest.raises(ValueError):
            EndCallRequest(agent_id="rec_1", duration_seconds=-1)
