"""
External calendar endpoint.

POST /functions/v1/sync-external-calendar  — Upcoming events from Google, Outlook or iCloud
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user, require_site_access
from app.core.database import get_session
from app.services import calendar_sync
from staticsnack_shared.schemas.calendar import SyncCalendarRequest, SyncCalendarResponse

router = APIRouter()


async def get_calendar_transport():
    """Overridden in tests with an ``httpx.MockTransport``."""
    return None


@router.post("/sync-external-calendar", response_model=SyncCalendarResponse)
async def sync_external_calendar(
    body: SyncCalendarRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    transport=Depends(get_calendar_transport),
):
    await require_site_access(session, auth, body.site_id)
    return await calendar_sync.sync_calendar(
        body.provider,
        body.calendar_id,
        api_key=body.api_key,
        access_token=body.access_token,
        username=auth.email,
        transport=transport,
    )
