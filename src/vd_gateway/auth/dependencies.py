"""FastAPI dependencies: get_current_user, require_admin.

Usage in any protected router:
    from src.vd_gateway.auth.dependencies import get_current_user

    @router.get("/protected")
    async def protected(user: UserModel = Depends(get_current_user)):
        ...
"""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_common.database import get_db_session
from src.vd_common.enums import UserRole
from src.vd_common.errors import AccountDisabledError, AdminRequiredError, InvalidCredentialsError
from src.vd_gateway.auth.jwt_handler import decode_access_token
from src.vd_gateway.user.db_models import UserModel

bearer_scheme = HTTPBearer(auto_error=False)

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def load_active_user(token: str, db: AsyncSession) -> UserModel:
    """Resolve a raw access token to an active user.

    Shared by the HTTP dependency and the voice websocket, which cannot use
    header-based bearer auth from a browser.
    """
    payload = decode_access_token(token)
    try:
        user_id = uuid.UUID(payload["sub"])
    except ValueError:
        raise InvalidCredentialsError() from None

    result = await db.execute(select(UserModel).where(UserModel.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise InvalidCredentialsError()
    if not user.is_active:
        raise AccountDisabledError()
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> UserModel:
    """Extract and validate the Bearer token, return the UserModel.

    Raises HTTP 401 if the token is missing, invalid, or expired.
    Raises HTTP 403 (AccountDisabledError) if the user account is disabled.
    """
    if credentials is None:
        raise _CREDENTIALS_EXCEPTION
    try:
        return await load_active_user(credentials.credentials, db)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None


async def require_admin(
    current_user: UserModel = Depends(get_current_user),
) -> UserModel:
    """Verify the caller has the admin role (manual grants, audits, catalog sync)."""
    if current_user.role != UserRole.ADMIN:
        raise AdminRequiredError()
    return current_user
