"""CRM agent webhook — upserts a voice agent keyed by its custom object id.

No JWT: the CRM authenticates with an optional shared secret header
(`X-Webhook-Secret`), checked only when CRM_WEBHOOK_SECRET is configured.
"""

import hmac
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Header, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.vd_catalog.application.schemas import AgentWebhookPayload
from src.vd_catalog.application.service import CatalogService
from src.vd_common.database import get_db_session
from src.vd_common.errors import InvalidCatalogPayloadError, WebhookForbiddenError
from src.vd_common.response import ApiResponse, success_response
from src.vd_gateway.middleware.request_log import get_request_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/crm", tags=["webhooks"])

_service = CatalogService()


def verify_crm_secret(
    x_webhook_secret: Annotated[str | None, Header()] = None,
) -> None:
    expected = settings.CRM_WEBHOOK_SECRET
    if not expected:
        return
    if x_webhook_secret is None or not hmac.compare_digest(x_webhook_secret, expected):
        raise WebhookForbiddenError()


@router.post("/agents", dependencies=[Depends(verify_crm_secret)])
async def upsert_agent(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: Annotated[dict[str, Any], Body()],
) -> ApiResponse:
    if not body.get("id") or not body.get("name"):
        raise InvalidCatalogPayloadError("id and name are required")
    try:
        payload = AgentWebhookPayload.model_validate(body)
    except ValidationError as exc:
        raise InvalidCatalogPayloadError(str(exc.errors()[0].get("msg"))) from None

    applied = await _service.apply_agent_webhook(db, payload)
    logger.info("agent webhook id=%s applied=%s", payload.id, applied)
    resp = success_response({"id": payload.id, "applied": applied})
    resp.request_id = get_request_id(request)
    return resp
