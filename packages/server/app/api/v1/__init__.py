"""
Functions v1 Router

Every operation is one endpoint under /functions/v1/<name>, the path the
browser client already calls.
"""

from fastapi import APIRouter
from staticsnack_shared.schemas.common import ErrorResponse

from . import assets, calendar, installations, invitations, shares, site_files, templates, users

ERROR_RESPONSES = {status: {"model": ErrorResponse} for status in (400, 401, 403, 404, 429, 500)}

router = APIRouter(responses=ERROR_RESPONSES)

router.include_router(assets.router, tags=["Assets"])
router.include_router(site_files.router, tags=["Site files"])
router.include_router(shares.router, tags=["Asset shares"])
router.include_router(invitations.router, tags=["Invitations"])
router.include_router(templates.router, tags=["Templates"])
router.include_router(calendar.router, tags=["Calendar"])
router.include_router(installations.router, tags=["GitHub"])
router.include_router(users.router, tags=["Users"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available functions."""
    return {
        "api": "functions/v1",
        "version": "0.1.0",
        "functions": sorted(
            {route.path.rsplit("/", 1)[-1] for route in router.routes if route.path != "/"}
        ),
    }
