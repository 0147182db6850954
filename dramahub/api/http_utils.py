# dramahub/api/http_utils.py
from __future__ import annotations

"""
HTTP helpers shared by the v1 routers.

- `require_admin`: gate for the cache maintenance endpoints (`X-Admin-Key`).
- `sanitize_tmdb_id`: reject non-positive catalog ids before any I/O.
"""

import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Request, status

from dramahub.core.config import settings

logger = logging.getLogger(__name__)


def _compare_ct(a: str, b: str) -> bool:
    """Constant-time string comparison to resist timing attacks."""
    return hmac.compare_digest(str(a), str(b))


def _configured_admin_key() -> Optional[str]:
    secret = settings.ADMIN_API_KEY
    value = secret.get_secret_value().strip() if secret is not None else ""
    return value or None


def require_admin(request: Request) -> None:
    """Require the administrative key.

    The admin surface is disabled (403) when ``ADMIN_API_KEY`` is not set;
    otherwise ``X-Admin-Key`` must match it (401 on mismatch).
    """
    admin_key = _configured_admin_key()
    if admin_key is None:
        logger.warning("Admin request to %s rejected: ADMIN_API_KEY not configured", request.url.path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin API disabled")

    provided = request.headers.get("x-admin-key")
    if not provided or not _compare_ct(provided, admin_key):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing admin key")


def sanitize_tmdb_id(tmdb_id: int) -> int:
    if tmdb_id <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="tmdb_id must be a positive integer")
    return tmdb_id


__all__ = ["require_admin", "sanitize_tmdb_id"]
