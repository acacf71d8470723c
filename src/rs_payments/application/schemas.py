"""Pydantic schemas for rs_payments API."""

from pydantic import BaseModel, Field


class RedirectFlowRequest(BaseModel):
    session_token: str = Field(..., min_length=8, max_length=128)
    product_id: str = Field(..., min_length=1, max_length=64)
    # Admins may start a flow on behalf of a member; defaults to the caller
    member_id: str | None = Field(None, min_length=1, max_length=64)
    email: str | None = Field(None, max_length=320)
    description: str | None = Field(None, max_length=100)


class RedirectFlowResponse(BaseModel):
    redirect_url: str
    redirect_flow_id: str


class WebhookResponse(BaseModel):
    processed: int = 0
    ignored: int = 0
