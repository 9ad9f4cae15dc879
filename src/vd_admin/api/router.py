"""Admin REST API — every route requires the admin role."""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_admin.application.service import AdminService
from src.vd_common.database import get_db_session
from src.vd_common.response import ApiResponse, success_response
from src.vd_crm.client import CrmClient
from src.vd_crm.dependencies import get_crm_client
from src.vd_gateway.auth.dependencies import require_admin
from src.vd_gateway.middleware.request_log import get_request_id
from src.vd_gateway.user.db_models import UserModel
from src.vd_wallet.application.schemas import ManualCreditRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


@router.post("/wallets/{user_id}/credit")
async def grant_credits(
    user_id: str,
    body: ManualCreditRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.grant_credits(db, user_id, body, str(admin.id))
    logger.info("admin %s granted %d credits to %s (%s)", admin.id, body.amount, user_id, body.reason)
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp


@router.get("/wallets/{user_id}/audit")
async def audit_wallet(
    user_id: str,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.audit_wallet(db, user_id)
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp


@router.get("/wallets/{user_id}/balance-at")
async def balance_at(
    user_id: str,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    at: datetime = Query(..., description="ISO-8601 instant to reconstruct the balance at"),
) -> ApiResponse:
    data = await _service.balance_at(db, user_id, at)
    resp = success_response(data.model_dump(mode="json"))
    resp.request_id = get_request_id(request)
    return resp


@router.post("/catalog/sync")
async def sync_catalog(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    crm: Annotated[CrmClient, Depends(get_crm_client)],
    request: Request,
) -> ApiResponse:
    data = await _service.sync_catalog(db, crm)
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp
