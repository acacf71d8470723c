"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import exc as sa_exc

from config.settings import settings
from src.rs_common.database import check_connection, engine
from src.rs_common.errors import AppError, InvariantViolationError, LedgerUnavailableError
from src.rs_common.response import error_response
from src.rs_gateway.middleware.request_log import RequestLogMiddleware
from src.rs_ledger.api.courses_router import router as courses_router
from src.rs_ledger.api.credits_router import router as credits_router
from src.rs_members.api.router import router as members_router
from src.rs_payments.api.router import router as payments_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify the DB connection. Shutdown: dispose the pool."""
    await check_connection()
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


def _error_json(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, exc.reason)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(status_code=exc.http_status, content=resp.model_dump())


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, InvariantViolationError):
        logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    return _error_json(request, exc)


async def _store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Data store unavailable on %s %s: %r", request.method, request.url.path, exc)
    return _error_json(request, LedgerUnavailableError())


for _exc_type in (sa_exc.OperationalError, sa_exc.InterfaceError, sa_exc.TimeoutError, TimeoutError):
    app.add_exception_handler(_exc_type, _store_unavailable_handler)


app.include_router(courses_router, prefix="/api/v1")
app.include_router(credits_router, prefix="/api/v1")
app.include_router(payments_router, prefix="/api/v1")
app.include_router(members_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
