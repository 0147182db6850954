# dramahub/core/exception_handlers.py
from __future__ import annotations

"""
Problem+JSON exception handlers (RFC 7807).

Registered by `dramahub.main.create_app`. All HTTP errors render as
application/problem+json with the request's correlation id; `AppException`
subclasses also carry their typed `code` and `details`.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dramahub.core.exceptions import AppException
from dramahub.middleware.request_id import get_request_id

log = logging.getLogger(__name__)


def _problem(
    title: str,
    detail: str,
    status_code: int,
    request: Request,
    extra: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {
        "type": "about:blank",
        "title": title,
        "detail": detail,
        "status": status_code,
        "instance": str(request.url),
        "request_id": get_request_id(request) or "N/A",
    }
    if extra:
        content.update(extra)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(content),
        media_type="application/problem+json",
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:  # type: ignore
    title = exc.__class__.__name__.replace("Exception", "").strip() or "Error"
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    extra: Dict[str, Any] = {}
    if isinstance(exc, AppException):
        extra = exc.to_problem(fallback_request_id=get_request_id(request) or None)
    headers = getattr(exc, "headers", None)
    return _problem(title, detail, exc.status_code, request, extra, headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # type: ignore
    detail = "Validation error"
    return _problem(
        detail,
        detail,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        request,
        {"errors": jsonable_encoder(exc.errors())},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # type: ignore
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _problem("Internal Server Error", "An unexpected error occurred.", status.HTTP_500_INTERNAL_SERVER_ERROR, request)


__all__ = [
    "http_exception_handler",
    "validation_exception_handler",
    "global_exception_handler",
]
