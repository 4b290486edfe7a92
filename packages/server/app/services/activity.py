"""Activity log — append-only audit rows for mutating actions."""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity import ActivityLog

log = structlog.get_logger()


async def log_activity(
    session: AsyncSession,
    site_id: uuid.UUID,
    user_id: Optional[uuid.UUID],
    action: str,
    **details,
) -> ActivityLog:
    entry = ActivityLog(site_id=site_id, user_id=user_id, action=action, details=details)
    session.add(entry)
    await session.flush()
    log.info("activity.logged", site_id=str(site_id), action=action)
    return entry
