"""Credits REST API.

GET   /credits/balance/{member_id}  : sum of the member's ledger (admin or self)
GET   /credits/ledger/{member_id}   : ledger history, newest first (admin or self)
POST  /credits/grant                : administrative adjustment (admin)
GET   /credits/products             : credit bundles on sale (any member)
POST  /credits/products             : create a bundle (admin)
PATCH /credits/products/{product_id}: toggle a bundle on/off (admin)
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.rs_common.database import get_db_session
from src.rs_common.response import ApiResponse, success_response
from src.rs_gateway.auth.dependencies import (
    ensure_self_or_admin,
    get_current_principal,
    require_admin,
)
from src.rs_gateway.auth.jwt_handler import Principal
from src.rs_ledger.application.schemas import (
    CreateProductRequest,
    GrantCreditsRequest,
    UpdateProductRequest,
)
from src.rs_ledger.application.service import LedgerApplicationService

router = APIRouter(prefix="/credits", tags=["credits"])

_service = LedgerApplicationService()


def _respond(request: Request, data: Any) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/balance/{member_id}")
async def get_balance(
    member_id: str,
    request: Request,
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    ensure_self_or_admin(principal, member_id)
    data = await _service.get_balance(db, member_id)
    return _respond(request, data.model_dump())


@router.get("/ledger/{member_id}")
async def list_ledger(
    member_id: str,
    request: Request,
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    ensure_self_or_admin(principal, member_id)
    data = await _service.list_ledger(db, member_id, cursor, limit)
    return _respond(request, data.model_dump())


@router.post("/grant")
async def grant_credits(
    body: GrantCreditsRequest,
    request: Request,
    _admin: Annotated[Principal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.grant_credits(
        db, body.member_id, body.delta, body.source.value, body.note
    )
    return _respond(request, data.model_dump())


@router.get("/products")
async def list_products(
    request: Request,
    _principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    active: bool | None = Query(None),
    biody: bool | None = Query(None),
) -> ApiResponse:
    data = await _service.list_products(db, active, biody)
    return _respond(request, data.model_dump())


@router.post("/products", status_code=201)
async def create_product(
    body: CreateProductRequest,
    request: Request,
    _admin: Annotated[Principal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.create_product(
        db, body.name, body.credits, body.price_cents, body.biody, body.active
    )
    return _respond(request, data.model_dump())


@router.patch("/products/{product_id}")
async def update_product(
    product_id: str,
    body: UpdateProductRequest,
    request: Request,
    _admin: Annotated[Principal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.set_product_active(db, product_id, body.active)
    return _respond(request, data.model_dump())
