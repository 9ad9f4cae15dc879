"""Pydantic schemas for the identity boundary."""

from datetime import datetime

from pydantic import BaseModel

from src.vd_gateway.user.db_models import UserModel


class ProfileResponse(BaseModel):
    user_id: str
    email: str | None
    display_name: str | None
    avatar: str | None
    role: str
    balance: int
    last_login_at: datetime | None

    @classmethod
    def build(cls, user: UserModel, balance: int) -> "ProfileResponse":
        return cls(
            user_id=str(user.id),
            email=user.email,
            display_name=user.display_name,
            avatar=user.avatar,
            role=user.role,
            balance=balance,
            last_login_at=user.last_login_at,
        )
