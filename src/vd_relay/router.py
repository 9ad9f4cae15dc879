"""WS /ws/voice?agent_id=...&token=... — authenticated voice relay.

Browsers cannot set an Authorization header on a websocket, so the access
token travels as a query parameter and is checked with the same logic as the
HTTP bearer dependency.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, WebSocket
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.vd_catalog.infrastructure.persistence import CatalogRepository
from src.vd_common.database import get_db_session
from src.vd_common.errors import AppError
from src.vd_gateway.auth.dependencies import load_active_user
from src.vd_relay.bridge import relay, upstream_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["voice"])

_POLICY_VIOLATION = 1008

_catalog = CatalogRepository()


@router.websocket("/ws/voice")
async def voice_socket(
    websocket: WebSocket,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    agent_id: str | None = Query(None),
    token: str | None = Query(None),
) -> None:
    await websocket.accept()
    if not agent_id:
        await websocket.close(code=_POLICY_VIOLATION, reason="Agent ID missing")
        return
    if not token:
        await websocket.close(code=_POLICY_VIOLATION, reason="Token missing")
        return
    try:
        user = await load_active_user(token, db)
    except AppError as exc:
        await websocket.close(code=_POLICY_VIOLATION, reason=exc.message)
        return

    agent = await _catalog.get_agent(db, agent_id)
    if agent is None or agent.status != "active":
        await websocket.close(code=_POLICY_VIOLATION, reason="Unknown agent")
        return
    # Release the pooled connection for the lifetime of the call
    await db.close()

    logger.info("voice relay open user=%s agent=%s", user.id, agent.record_id)
    await relay(
        websocket,
        upstream_url(settings.VOICE_API_URL, agent.voice_agent_id or agent.record_id),
        settings.VOICE_API_KEY,
    )
    logger.info("voice relay closed user=%s agent=%s", user.id, agent.record_id)
