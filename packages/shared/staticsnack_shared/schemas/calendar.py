"""External calendar sync schemas."""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, Field

from .common import CalendarProvider


class SyncCalendarRequest(BaseModel):
    site_id: uuid.UUID
    provider: CalendarProvider
    calendar_id: str = Field(..., min_length=1)
    api_key: Optional[str] = None
    access_token: Optional[str] = None
    asset_path: str = Field(..., min_length=1)


class CalendarEvent(BaseModel):
    """Event shape stored in calendar assets (camelCase, as the site reads it)."""
    id: str
    title: str
    description: str = ""
    startDate: str
    endDate: str
    location: str = ""
    allDay: bool = False
    recurring: str = ""
    color: str = "#3b82f6"
    attendees: str = ""
    externalId: str
    synced: bool = True


class SyncCalendarResponse(BaseModel):
    success: bool = True
    events: list[CalendarEvent]
    count: int
    lastSync: str
    provider: CalendarProvider
    calendarId: str
