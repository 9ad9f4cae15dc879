"""vd_purchase REST API — checkout creation and purchase history, JWT required."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_common.database import get_db_session
from src.vd_common.response import ApiResponse, success_response
from src.vd_gateway.auth.dependencies import get_current_user
from src.vd_gateway.middleware.rate_limit import checkout_rate_limit
from src.vd_gateway.middleware.request_log import get_request_id
from src.vd_gateway.user.db_models import UserModel
from src.vd_purchase.api.dependencies import get_checkout_initiator
from src.vd_purchase.application.checkout import CheckoutInitiator, PurchaseQueryService
from src.vd_purchase.application.schemas import CheckoutRequest, PurchaseListResponse

router = APIRouter(tags=["purchases"])

_query_service = PurchaseQueryService()


@router.post("/checkout", status_code=201, dependencies=[Depends(checkout_rate_limit)])
async def create_checkout(
    body: CheckoutRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    initiator: Annotated[CheckoutInitiator, Depends(get_checkout_initiator)],
    request: Request,
) -> ApiResponse:
    data = await initiator.start(db, str(current_user.id), current_user.email, body.product_id)
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp


@router.get("/purchases")
async def list_purchases(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    items = await _query_service.list_for_user(db, str(current_user.id), limit)
    resp = success_response(PurchaseListResponse(items=items).model_dump(mode="json"))
    resp.request_id = get_request_id(request)
    return resp
