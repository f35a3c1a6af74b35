"""V1 REST API routes.

Combines all sub-routers under the ``/api/v1`` prefix.
"""

from fastapi import APIRouter

from btc_portal.api.v1.portal import router as portal_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(portal_router)

__all__ = ["v1_router"]
