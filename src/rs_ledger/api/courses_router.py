"""Course enrollment REST API.

GET    /courses/{course_id}/roster             : enrolled members, oldest first (admin)
GET    /courses/{course_id}/fill               : capacity, fill rate, names (admin)
POST   /courses/{course_id}/enroll             : book a place (admin or self)
DELETE /courses/{course_id}/enroll/{member_id} : cancel a booking (admin or self)
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.rs_common.database import get_db_session
from src.rs_common.errors import ForbiddenError
from src.rs_common.response import ApiResponse, success_response
from src.rs_gateway.auth.dependencies import (
    ensure_self_or_admin,
    get_current_principal,
    require_admin,
)
from src.rs_gateway.auth.jwt_handler import Principal
from src.rs_ledger.application.schemas import EnrollRequest
from src.rs_ledger.application.service import LedgerApplicationService

router = APIRouter(prefix="/courses", tags=["courses"])

_service = LedgerApplicationService()


def _respond(request: Request, data: Any) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{course_id}/roster")
async def get_roster(
    course_id: str,
    request: Request,
    _admin: Annotated[Principal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.get_roster(db, course_id)
    return _respond(request, data.model_dump())


@router.get("/{course_id}/fill")
async def get_fill(
    course_id: str,
    request: Request,
    _admin: Annotated[Principal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    data = await _service.get_fill(db, course_id)
    return _respond(request, data.model_dump())


@router.post("/{course_id}/enroll")
async def enroll(
    course_id: str,
    body: EnrollRequest,
    request: Request,
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    ensure_self_or_admin(principal, body.member_id)
    if not body.require_credits and not principal.is_admin:
        raise ForbiddenError("Only staff may enroll without credits")
    data = await _service.enroll(db, course_id, body.member_id, body.require_credits)
    return _respond(request, data.model_dump())


@router.delete("/{course_id}/enroll/{member_id}")
async def unenroll(
    course_id: str,
    member_id: str,
    request: Request,
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    refund: bool = Query(False, description="Credit the booking back to the member"),
) -> ApiResponse:
    ensure_self_or_admin(principal, member_id)
    # A member cancelling their own booking gets the credit back, once per booking
    if principal.is_admin:
        data = await _service.unenroll(db, course_id, member_id, refund)
    else:
        data = await _service.unenroll(
            db, course_id, member_id, refund=True, refund_only_if_removed=True
        )
    return _respond(request, data.model_dump())
