"""GoCardless REST API.

POST /gc/redirect-flow: start a Direct Debit checkout for a credit bundle (member)
GET  /gc/success      : processor redirects here; answers with an app deep link
POST /gc/webhooks     : signed processor events (Webhook-Signature header)
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.rs_common.database import get_db_session
from src.rs_common.errors import AppError
from src.rs_common.response import ApiResponse, success_response
from src.rs_gateway.auth.dependencies import ensure_self_or_admin, get_current_principal
from src.rs_gateway.auth.jwt_handler import Principal
from src.rs_payments.application.schemas import RedirectFlowRequest
from src.rs_payments.application.service import PaymentApplicationService, deep_link

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gc", tags=["payments"])

_service = PaymentApplicationService()


def _respond(request: Request, data: Any) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/redirect-flow")
async def start_redirect_flow(
    body: RedirectFlowRequest,
    request: Request,
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    member_id = body.member_id or principal.member_id
    ensure_self_or_admin(principal, member_id)
    data = await _service.start_redirect_flow(
        db,
        member_id,
        body.product_id,
        body.session_token,
        email=body.email,
        description=body.description,
    )
    return _respond(request, data.model_dump())


@router.get("/success")
async def redirect_flow_success(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    session_token: str = Query(..., min_length=1),
    redirect_flow_id: str = Query(..., min_length=1),
) -> RedirectResponse:
    try:
        result = await _service.complete_redirect_flow(db, redirect_flow_id, session_token)
    except AppError as e:
        logger.warning(
            "Redirect flow completion failed: flow=%s code=%d %s",
            redirect_flow_id, e.code, e.message,
        )
        return RedirectResponse(deep_link("payment-error", message=e.message), status_code=302)
    return RedirectResponse(
        deep_link("payment-success", credits=result.credits, mandate=result.mandate_id),
        status_code=302,
    )


@router.post("/webhooks")
async def webhooks(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    webhook_signature: Annotated[str | None, Header(alias="Webhook-Signature")] = None,
) -> ApiResponse:
    body = await request.body()
    data = await _service.handle_webhook(db, body, webhook_signature)
    return _respond(request, data.model_dump())
