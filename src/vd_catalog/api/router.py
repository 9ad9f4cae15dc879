"""vd_catalog REST API — credit packages and voice agents, JWT required."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_catalog.application.service import CatalogService
from src.vd_common.database import get_db_session
from src.vd_common.response import ApiResponse, success_response
from src.vd_gateway.auth.dependencies import get_current_user
from src.vd_gateway.middleware.request_log import get_request_id
from src.vd_gateway.user.db_models import UserModel

router = APIRouter(prefix="/catalog", tags=["catalog"])

_service = CatalogService()


@router.get("/products")
async def list_products(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    items = await _service.list_products(db)
    resp = success_response({"items": [i.model_dump() for i in items]})
    resp.request_id = get_request_id(request)
    return resp


@router.get("/agents")
async def list_agents(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    items = await _service.list_agents(db)
    resp = success_response({"items": [i.model_dump() for i in items]})
    resp.request_id = get_request_id(request)
    return resp
