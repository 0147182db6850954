"""Versioned API (v1).

The aggregated router lives in the routers subpackage:

    from dramahub.api.v1.routers import router as api_v1_router
"""

__all__ = []
