"""JSON envelope shared by the courses, credits, payments and members routes.

    {"code": 0, "message": "success", "data": {...}, "reason": null,
     "timestamp": "...", "request_id": "req_..."}

On failure ``code`` is the AppError code, ``data`` is null and ``reason`` is
the machine-readable slug the app matches on (``course_full``,
``insufficient_credits``...). The redirect and CSV endpoints do not use it.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    reason: str | None = None
    timestamp: str = Field(default_factory=_utc_now_iso)
    request_id: str = Field(default_factory=new_request_id)


def success_response(data: Any = None) -> ApiResponse:
    return ApiResponse(data=data)


def error_response(code: int, message: str, reason: str | None = None) -> ApiResponse:
    return ApiResponse(code=code, message=message, reason=reason)
