"""Admin application service: manual grants, conservation audits, catalog sync."""

import uuid
from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.vd_catalog.application.schemas import SyncReportResponse
from src.vd_catalog.application.service import CatalogService
from src.vd_catalog.domain.repository import CatalogSourceProtocol
from src.vd_common.errors import UserNotFoundError
from src.vd_wallet.application.schemas import (
    AuditResponse,
    BalanceChangeResponse,
    ManualCreditRequest,
    PointInTimeBalanceResponse,
)
from src.vd_wallet.application.service import WalletApplicationService

_USER_EXISTS_SQL = text("SELECT 1 FROM users WHERE id = CAST(:user_id AS UUID)")


class AdminService:
    def __init__(
        self,
        wallet: WalletApplicationService | None = None,
        catalog: CatalogService | None = None,
    ) -> None:
        self._wallet = wallet or WalletApplicationService()
        self._catalog = catalog or CatalogService()

    async def _require_user(self, db: AsyncSession, user_id: str) -> str:
        try:
            normalized = str(uuid.UUID(user_id))
        except ValueError:
            raise UserNotFoundError(user_id) from None
        if (await db.execute(_USER_EXISTS_SQL, {"user_id": normalized})).fetchone() is None:
            raise UserNotFoundError(user_id)
        return normalized

    async def grant_credits(
        self, db: AsyncSession, user_id: str, req: ManualCreditRequest, admin_id: str
    ) -> BalanceChangeResponse:
        user_id = await self._require_user(db, user_id)
        return await self._wallet.credit(
            db,
            user_id,
            req.amount,
            req.reason,
            req.reference_id,
            req.description or f"Manual {req.reason} grant by {admin_id}",
        )

    async def audit_wallet(self, db: AsyncSession, user_id: str) -> AuditResponse:
        user_id = await self._require_user(db, user_id)
        return await self._wallet.audit(db, user_id)

    async def balance_at(
        self, db: AsyncSession, user_id: str, at: datetime
    ) -> PointInTimeBalanceResponse:
        user_id = await self._require_user(db, user_id)
        return await self._wallet.balance_at(db, user_id, at)

    async def sync_catalog(
        self, db: AsyncSession, source: CatalogSourceProtocol
    ) -> SyncReportResponse:
        return await self._catalog.sync_products(db, source)
