"""Payment processor webhook endpoint.

No JWT: authenticity comes from the `Stripe-Signature` header, checked over
the untouched request body. Responses:
  200 {received, outcome}  credited / duplicate / malformed / ignored / closed
  400                      signature or timestamp check failed
  500                      settlement failed and was rolled back; the sender retries
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_common.database import get_db_session
from src.vd_common.response import ApiResponse, success_response
from src.vd_gateway.middleware.request_log import get_request_id
from src.vd_purchase.api.dependencies import get_reconciliation_handler
from src.vd_purchase.application.reconciliation import ReconciliationHandler
from src.vd_purchase.application.schemas import WebhookAck

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    handler: Annotated[ReconciliationHandler, Depends(get_reconciliation_handler)],
    stripe_signature: Annotated[str | None, Header()] = None,
) -> ApiResponse:
    payload = await request.body()
    result = await handler.handle(db, payload, stripe_signature)
    resp = success_response(WebhookAck(outcome=result.outcome).model_dump())
    resp.request_id = get_request_id(request)
    return resp
