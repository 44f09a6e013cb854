"""Request context middleware: correlation ids and the access log.

Manifesto:
    A site's log stream is read per request. Every request gets an id
    that the handler's log lines, operator alerts and the response share,
    and every request leaves one ``web.request`` line naming the site,
    the path and how long it took.

    Incoming ids are only trusted when they look like ids; anything else
    (too long, or carrying characters that would corrupt a log line) is
    replaced with a fresh one.

Tags:
    sitefactory, web, middleware, request-id, access-log

Doc-Types:
    api-reference
"""

from __future__ import annotations

import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from sitefactory.core.logging import LogContext, get_logger

log = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")


def accept_request_id(value: str | None) -> str:
    """*value* when it is a usable correlation id, else a new one."""
    if value and _REQUEST_ID_RE.match(value):
        return value
    return uuid.uuid4().hex


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Give each request an id, bind it with the site name for logging,
    and write one access-log line per request."""

    def __init__(self, app: ASGIApp, *, site_id: str | None = None, header: str = REQUEST_ID_HEADER) -> None:
        super().__init__(app)
        self.site_id = site_id
        self.header = header

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = accept_request_id(request.headers.get(self.header))
        request.state.request_id = request_id

        with LogContext(site=self.site_id, request_id=request_id):
            start = time.perf_counter()
            response = await call_next(request)
            log.info(
                "web.request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )

        response.headers[self.header] = request_id
        return response


__all__ = ["REQUEST_ID_HEADER", "RequestContextMiddleware", "accept_request_id"]
