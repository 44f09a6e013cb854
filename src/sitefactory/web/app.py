"""
FastAPI adapter.

``create_app()`` mounts a RequestHandler behind one catch-all route. Each
request is converted into a :class:`SiteRequest`, handled synchronously
in a worker thread and converted back.

Manifesto:
    The handler knows nothing about ASGI. This module is the only place
    that touches FastAPI, so a site can be served by anything that can
    build a SiteRequest.

Tags:
    sitefactory, web, fastapi, adapter

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.responses import Response as HTTPResponse

from sitefactory.core.logging import get_logger
from sitefactory.framework.factory import Factory
from sitefactory.web.handler import RequestHandler
from sitefactory.web.middleware import RequestContextMiddleware
from sitefactory.web.request import SiteRequest, Upload
from sitefactory.web.response import Response

log = get_logger(__name__)

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def to_site_request(request: Request, path: str = "") -> SiteRequest:
    """Convert a FastAPI request, including form fields and uploads."""
    params: dict[str, list[Any]] = {}
    for key, value in request.query_params.multi_items():
        params.setdefault(key, []).append(value)

    uploads: dict[str, Upload] = {}
    content_type = request.headers.get("content-type", "")
    if request.method == "POST" and content_type.startswith(_FORM_TYPES):
        form = await request.form()
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                uploads[key] = Upload(value.filename or "", value.content_type, value.file)
            else:
                params.setdefault(key, []).append(value)

    return SiteRequest(
        params,
        cookies=request.cookies,
        path_info=f"/{path}" if path else "",
        url=str(request.base_url),
        query_string=request.url.query,
        method=request.method,
        headers=dict(request.headers),
        uploads=uploads,
        request_id=getattr(request.state, "request_id", None),
    )


def to_http_response(result: Response, *, head: bool = False) -> HTTPResponse:
    response = HTTPResponse(content=b"" if head else result.text.encode("utf-8"), status_code=result.status)
    for name, value in result.header_items():
        response.headers.append(name, value)
    return response


def create_app(
    site_id: str | None = None,
    *,
    handler_class: type[RequestHandler] = RequestHandler,
    factory_class: type[Factory] = Factory,
    factory: Factory | None = None,
) -> FastAPI:
    """Build a FastAPI app serving one site.

    Args:
        site_id: Site to serve; resolved from the environment when None.
        handler_class: RequestHandler subclass run for each request.
        factory_class: Factory class used to look the site up.
        factory: A ready Factory, bypassing the instance registry.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        log.info("web.starting", site=site_id, handler=handler_class.__name__)
        yield
        log.info("web.stopping", site=site_id)

    app = FastAPI(title="sitefactory", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.site_id = site_id
    app.add_middleware(RequestContextMiddleware, site_id=site_id or (factory.id if factory else None))

    def serve(site_request: SiteRequest) -> Response:
        site = factory or factory_class.instance(site_id)
        return handler_class.handle(site_request, site)

    @app.api_route("/{path:path}", methods=["GET", "POST", "HEAD"])
    async def catch_all(request: Request, path: str = "") -> HTTPResponse:
        site_request = await to_site_request(request, path)
        result = await run_in_threadpool(serve, site_request)
        return to_http_response(result, head=request.method == "HEAD")

    return app


__all__ = ["create_app", "to_http_response", "to_site_request"]
