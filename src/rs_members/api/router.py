"""Members export REST API (admin).

GET /members/export.json: every member row, oldest first
GET /members/export.csv : fixed column set, served as an attachment
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from src.rs_common.database import get_db_session
from src.rs_common.response import ApiResponse, success_response
from src.rs_gateway.auth.dependencies import require_admin
from src.rs_gateway.auth.jwt_handler import Principal
from src.rs_members.application.export import MemberExportService

router = APIRouter(prefix="/members", tags=["members"])

_service = MemberExportService()


@router.get("/export.json")
async def export_json(
    request: Request,
    _admin: Annotated[Principal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    members = await _service.export_json(db)
    resp = success_response({"members": members})
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/export.csv")
async def export_csv(
    _admin: Annotated[Principal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> Response:
    filename, content = await _service.export_csv(db)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
