"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.vd_admin.api.router import router as admin_router
from src.vd_calls.api.router import router as calls_router
from src.vd_catalog.api.router import router as catalog_router
from src.vd_catalog.api.webhook_router import router as crm_webhook_router
from src.vd_catalog.application.sync_loop import periodic_catalog_sync
from src.vd_common.database import async_session_factory, engine
from src.vd_common.errors import AppError
from src.vd_common.redis_client import close_redis, get_redis
from src.vd_common.response import error_response
from src.vd_common.tasks import BackgroundDispatcher
from src.vd_crm.client import CrmClient
from src.vd_crm.notifier import DownstreamNotifier
from src.vd_gateway.api.router import router as identity_router
from src.vd_gateway.middleware.request_log import RequestLogMiddleware
from src.vd_purchase.api.router import router as purchase_router
from src.vd_purchase.api.webhook_router import router as stripe_webhook_router
from src.vd_purchase.infrastructure.stripe_processor import StripePaymentProcessor
from src.vd_relay.router import router as voice_router
from src.vd_wallet.api.router import router as wallet_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("vd.app")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, build external clients. Shutdown: drain and dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()

    crm = CrmClient.from_settings()
    dispatcher = BackgroundDispatcher(default_timeout=settings.NOTIFIER_TIMEOUT_SECONDS)
    app.state.crm_client = crm
    app.state.payment_processor = StripePaymentProcessor.from_settings()
    app.state.dispatcher = dispatcher
    app.state.notifier = DownstreamNotifier(crm, async_session_factory)

    sync_task = None
    if settings.CATALOG_SYNC_INTERVAL_MINUTES > 0:
        sync_task = asyncio.create_task(
            periodic_catalog_sync(crm, settings.CATALOG_SYNC_INTERVAL_MINUTES)
        )
        logger.info("catalog sync loop enabled (every %d min)", settings.CATALOG_SYNC_INTERVAL_MINUTES)
    yield
    # Shutdown
    if sync_task is not None:
        sync_task.cancel()
        try:
            await sync_task
        except asyncio.CancelledError:
            pass
    await dispatcher.drain()
    await crm.aclose()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(identity_router, prefix="/api/v1")
app.include_router(wallet_router, prefix="/api/v1")
app.include_router(catalog_router, prefix="/api/v1")
app.include_router(purchase_router, prefix="/api/v1")
app.include_router(calls_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")
app.include_router(stripe_webhook_router, prefix="/api/v1")
app.include_router(crm_webhook_router, prefix="/api/v1")
app.include_router(voice_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
