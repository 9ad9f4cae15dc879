"""Identity boundary: the caller's profile plus wallet balance.

Sign-in and token issuance happen at the identity edge; this service only
validates the bearer token it receives.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_common.database import get_db_session
from src.vd_common.response import ApiResponse, success_response
from src.vd_gateway.auth.dependencies import get_current_user
from src.vd_gateway.middleware.request_log import get_request_id
from src.vd_gateway.user.db_models import UserModel
from src.vd_gateway.user.schemas import ProfileResponse
from src.vd_wallet.application.service import WalletApplicationService

router = APIRouter(tags=["identity"])

_wallet_service = WalletApplicationService()


@router.get("/me")
async def me(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    wallet = await _wallet_service.get_balance(db, str(current_user.id))
    data = ProfileResponse.build(current_user, wallet.balance)
    resp = success_response(data.model_dump(mode="json"))
    resp.request_id = get_request_id(request)
    return resp
