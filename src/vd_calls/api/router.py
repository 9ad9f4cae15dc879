"""vd_calls REST API — bill a finished call, list call history."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_calls.application.schemas import EndCallRequest
from src.vd_calls.application.service import CallBillingService
from src.vd_common.database import get_db_session
from src.vd_common.response import ApiResponse, success_response
from src.vd_gateway.auth.dependencies import get_current_user
from src.vd_gateway.middleware.request_log import get_request_id
from src.vd_gateway.user.db_models import UserModel

router = APIRouter(prefix="/calls", tags=["calls"])

_service = CallBillingService()


@router.post("/end")
async def end_call(
    body: EndCallRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.end_call(db, str(current_user.id), body)
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp


@router.get("")
async def list_calls(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    items = await _service.list_calls(db, str(current_user.id), limit)
    resp = success_response({"items": [i.model_dump(mode="json") for i in items]})
    resp.request_id = get_request_id(request)
    return resp
