"""
User lookup service — admin search over platform profiles.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.user import Profile

log = structlog.get_logger()


async def search_users(
    session: AsyncSession,
    query: Optional[str] = None,
    user_ids: Optional[list[uuid.UUID]] = None,
    limit: int = 10,
) -> list[dict]:
    """Exact ids win over an email substring search; neither gives no users."""
    if user_ids:
        statement = select(Profile).where(Profile.id.in_(user_ids))
    elif query and query.strip():
        pattern = f"%{query.strip().lower()}%"
        statement = (
            select(Profile)
            .where(func.lower(Profile.email).like(pattern))
            .order_by(Profile.email)
            .limit(limit)
        )
    else:
        return []

    result = await session.execute(statement)
    users = [{"id": p.id, "email": p.email} for p in result.scalars().all()]
    log.info("users.searched", count=len(users))
    return users
