# dramahub/core/exceptions.py
from __future__ import annotations

"""
DramaHub — Application Exceptions
=================================
A small layer on top of FastAPI/Starlette's `HTTPException` that attaches
structured metadata and renders through `dramahub.core.exception_handlers`.

Upstream client errors (`UpstreamError` and friends) live next to the client in
`dramahub.services.tmdb_client`; routers translate them into the HTTP-facing
exceptions below.

Usage
-----
    raise DramaNotFoundException(tmdb_id=1399)
    raise AppException(status_code=409, message="Conflict", details={"field": "tmdb_id"})
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

__all__ = [
    "AppException",
    "DramaNotFoundException",
    "UpstreamUnavailableException",
]


# ──────────────────────────────────────────────────────────────
# 📦 Core: AppException
# ──────────────────────────────────────────────────────────────
class AppException(HTTPException):
    """Base application-level exception with optional metadata.

    Attributes
    -----------
    status_code : int
        HTTP status code.
    message : str
        Human-readable error message (serialized as `detail` as well).
    code : int
        Optional typed error code. Defaults to `status_code`.
    request_id : str | None
        Optional request correlation id.
    details : dict | list | str | None
        Machine-readable details.
    extra : dict | None
        Additional non-sensitive metadata to surface to clients.
    """

    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Any] = None,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code: int = int(code or status_code)
        self.message: str = message
        self.request_id: Optional[str] = request_id
        self.details: Optional[Any] = details
        self.extra: Dict[str, Any] = extra or {}

    def to_problem(self, *, fallback_request_id: Optional[str] = None) -> Dict[str, Any]:
        """Members added to the problem+json body (`code`, `request_id`, `details`, extras)."""
        body: Dict[str, Any] = {
            "code": self.code,
            "request_id": self.request_id or fallback_request_id or "N/A",
        }
        if self.details is not None:
            body["details"] = self.details
        extra_sanitized = dict(self.extra) if self.extra else {}
        for k in ("token", "authorization", "api_key", "secret"):
            extra_sanitized.pop(k, None)
        body.update(extra_sanitized)
        return body


# ──────────────────────────────────────────────────────────────
# 🎬 Drama cache domain
# ──────────────────────────────────────────────────────────────
class DramaNotFoundException(AppException):
    """No cached row and the upstream fetch failed: nothing to serve."""

    def __init__(
        self,
        *,
        tmdb_id: int,
        reason: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {"tmdb_id": tmdb_id}
        if reason:
            details["reason"] = reason
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            message=f"Drama {tmdb_id} not found",
            request_id=request_id,
            details=details,
        )
        self.tmdb_id = tmdb_id


class UpstreamUnavailableException(AppException):
    """The media catalog could not answer a live-only request (502)."""

    def __init__(
        self,
        *,
        message: str = "Upstream media catalog unavailable",
        upstream_status: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            message=message,
            request_id=request_id,
            details={"upstream_status": upstream_status} if upstream_status else None,
        )
