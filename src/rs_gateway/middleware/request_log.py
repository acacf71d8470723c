"""Access log and request correlation.

The id comes from an inbound ``X-Request-ID`` (set by the hosting proxy)
when it is a short token, otherwise a fresh ``req_...`` one. It is stored on
request.state for the response envelope and echoed back in ``X-Request-ID``.

Health probes log at DEBUG; server errors at WARNING.
"""

import logging
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.rs_common.response import new_request_id

logger = logging.getLogger("rs.request")

_INBOUND_ID = re.compile(r"^[A-Za-z0-9_.-]{8,64}$")
_QUIET_PATHS = {"/health"}


def resolve_request_id(inbound: str | None) -> str:
    if inbound and _INBOUND_ID.match(inbound):
        return inbound
    return new_request_id()


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get("X-Request-ID"))
        request.state.request_id = request_id

        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        path = request.url.path
        if path in _QUIET_PATHS:
            level = logging.DEBUG
        elif response.status_code >= 500:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level, "%s %s %d %.0fms %s",
            request.method, path, response.status_code, elapsed_ms, request_id,
        )
        return response
