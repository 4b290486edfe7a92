"""
External calendar sync — read upcoming events from Google Calendar,
Microsoft Graph (Outlook) or iCloud CalDAV and map them onto the event
shape calendar assets store.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

import httpx
import structlog
from fastapi import HTTPException

from app.core.config import get_settings
from staticsnack_shared.schemas.common import CalendarProvider

log = structlog.get_logger()

DEFAULT_EVENT_COLOR = "#3b82f6"
MAX_EVENTS = 100

CALDAV_QUERY = """<?xml version="1.0" encoding="utf-8" ?>
<C:calendar-query xmlns:D="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav">
  <D:prop>
    <D:getetag/>
    <C:calendar-data/>
  </D:prop>
  <C:filter>
    <C:comp-filter name="VCALENDAR">
      <C:comp-filter name="VEVENT"/>
    </C:comp-filter>
  </C:filter>
</C:calendar-query>"""

_CALDAV_DATA = "{urn:ietf:params:xml:ns:caldav}calendar-data"


class CalendarSyncError(Exception):
    pass


def _event(**fields) -> dict:
    event = {
        "description": "",
        "location": "",
        "allDay": False,
        "recurring": "",
        "color": DEFAULT_EVENT_COLOR,
        "attendees": "",
        "synced": True,
    }
    event.update({k: v for k, v in fields.items() if v is not None})
    return event


def map_google_event(item: dict) -> dict:
    start = item.get("start", {})
    end = item.get("end", {})
    return _event(
        id=f"google-{item['id']}",
        title=item.get("summary") or "Untitled Event",
        description=item.get("description") or "",
        startDate=start.get("dateTime") or start.get("date"),
        endDate=end.get("dateTime") or end.get("date"),
        location=item.get("location") or "",
        allDay="dateTime" not in start,
        recurring="custom" if item.get("recurrence") else "",
        color=item.get("colorId") or DEFAULT_EVENT_COLOR,
        attendees=", ".join(a["email"] for a in item.get("attendees", []) if a.get("email")),
        externalId=item["id"],
    )


def map_outlook_event(item: dict) -> dict:
    categories = item.get("categories") or []
    return _event(
        id=f"outlook-{item['id']}",
        title=item.get("subject") or "Untitled Event",
        description=item.get("bodyPreview") or "",
        startDate=item["start"]["dateTime"],
        endDate=item["end"]["dateTime"],
        location=(item.get("location") or {}).get("displayName") or "",
        allDay=bool(item.get("isAllDay")),
        recurring="custom" if item.get("recurrence") else "",
        color=categories[0] if categories else DEFAULT_EVENT_COLOR,
        attendees=", ".join(
            a["emailAddress"]["address"]
            for a in item.get("attendees", [])
            if a.get("emailAddress", {}).get("address")
        ),
        externalId=item["id"],
    )


def _ics_date(value: str) -> tuple[str, bool]:
    """iCalendar DATE or DATE-TIME to ISO 8601; second item is all-day."""
    if len(value) == 8:
        return f"{value[:4]}-{value[4:6]}-{value[6:]}", True
    parsed = datetime.strptime(value.rstrip("Z"), "%Y%m%dT%H%M%S")
    if value.endswith("Z"):
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.isoformat(), False


def parse_ics_events(calendar_data: str) -> list[dict]:
    """Minimal VEVENT reader: unfolds lines and keeps the handful of fields we map."""
    unfolded: list[str] = []
    for line in calendar_data.splitlines():
        if line[:1] in (" ", "\t") and unfolded:
            unfolded[-1] += line[1:]
        else:
            unfolded.append(line)

    events = []
    current: Optional[dict] = None
    for line in unfolded:
        if line == "BEGIN:VEVENT":
            current = {}
            continue
        if line == "END:VEVENT" and current is not None:
            if "UID" in current and "DTSTART" in current:
                start, all_day = _ics_date(current["DTSTART"])
                end, _ = _ics_date(current.get("DTEND", current["DTSTART"]))
                events.append(
                    _event(
                        id=f"apple-{current['UID']}",
                        title=current.get("SUMMARY") or "Untitled Event",
                        description=current.get("DESCRIPTION", "").replace("\\n", "\n"),
                        startDate=start,
                        endDate=end,
                        location=current.get("LOCATION", ""),
                        allDay=all_day,
                        recurring="custom" if "RRULE" in current else "",
                        externalId=current["UID"],
                    )
                )
            current = None
            continue
        if current is None or ":" not in line:
            continue
        name, _, value = line.partition(":")
        current.setdefault(name.split(";", 1)[0].upper(), value)
    return events


class CalendarClient:
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        settings = get_settings()
        self.google_url = settings.google_calendar_api_url.rstrip("/")
        self.graph_url = settings.microsoft_graph_api_url.rstrip("/")
        self.caldav_url = settings.caldav_url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=settings.calendar_request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "CalendarClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self._client.aclose()

    @staticmethod
    def _raise_for_status(response: httpx.Response, upstream: str) -> None:
        if response.status_code >= 400:
            raise CalendarSyncError(f"{upstream} error: {response.text}")

    async def google_events(self, calendar_id: str, api_key: str, now: str) -> list[dict]:
        response = await self._client.get(
            f"{self.google_url}/calendars/{quote(calendar_id, safe='')}/events",
            params={
                "key": api_key,
                "timeMin": now,
                "maxResults": MAX_EVENTS,
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        self._raise_for_status(response, "Google Calendar API")
        return [map_google_event(item) for item in response.json().get("items", [])]

    async def outlook_events(self, calendar_id: str, access_token: str, now: str) -> list[dict]:
        response = await self._client.get(
            f"{self.graph_url}/me/calendars/{calendar_id}/events",
            params={
                "$filter": f"start/dateTime ge '{now}'",
                "$top": MAX_EVENTS,
                "$orderby": "start/dateTime",
            },
            headers={"Authorization": f"Bearer {access_token}"},
        )
        self._raise_for_status(response, "Microsoft Graph API")
        return [map_outlook_event(item) for item in response.json().get("value", [])]

    async def apple_events(self, calendar_id: str, username: str, password: str) -> list[dict]:
        response = await self._client.request(
            "REPORT",
            f"{self.caldav_url}/{username}/calendars/{calendar_id}/",
            content=CALDAV_QUERY,
            auth=(username, password),
            headers={"Content-Type": "application/xml; charset=utf-8", "Depth": "1"},
        )
        self._raise_for_status(response, "Apple Calendar CalDAV")
        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as exc:
            raise CalendarSyncError(f"Apple Calendar CalDAV error: {exc}") from exc

        events = []
        for node in root.iter(_CALDAV_DATA):
            events.extend(parse_ics_events(node.text or ""))
        return events[:MAX_EVENTS]


async def sync_calendar(
    provider: CalendarProvider,
    calendar_id: str,
    api_key: Optional[str] = None,
    access_token: Optional[str] = None,
    username: Optional[str] = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """Fetch upcoming events. Missing credentials are a 400, upstream failures a 500."""
    if provider == CalendarProvider.GOOGLE and not api_key:
        raise HTTPException(status_code=400, detail="API key required for Google Calendar")
    if provider == CalendarProvider.OUTLOOK and not access_token:
        raise HTTPException(status_code=400, detail="Access token required for Outlook Calendar")
    if provider == CalendarProvider.APPLE and not api_key:
        raise HTTPException(status_code=400, detail="App-specific password required for Apple Calendar")

    now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    try:
        async with CalendarClient(transport=transport) as client:
            if provider == CalendarProvider.GOOGLE:
                events = await client.google_events(calendar_id, api_key, now)
            elif provider == CalendarProvider.OUTLOOK:
                events = await client.outlook_events(calendar_id, access_token, now)
            else:
                events = await client.apple_events(calendar_id, username or "", api_key)
    except (CalendarSyncError, httpx.HTTPError, ValueError, KeyError) as exc:
        log.error("calendar.sync_failed", provider=provider.value, calendar_id=calendar_id, error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to sync calendar")

    log.info("calendar.synced", provider=provider.value, calendar_id=calendar_id, count=len(events))
    return {
        "success": True,
        "events": events,
        "count": len(events),
        "lastSync": now,
        "provider": provider.value,
        "calendarId": calendar_id,
    }
