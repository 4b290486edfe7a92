"""
Invitation service — owners invite managers by link or short code.

State machine: pending -> accepted | expired. Both targets are terminal.
"""

from __future__ import annotations

import secrets
import string
import uuid
from datetime import datetime, timedelta
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import get_site_membership
from app.core.config import get_settings
from app.models.base import as_utc, utcnow
from app.models.invitation import Invitation
from app.models.site import SiteMember
from app.services.activity import log_activity
from staticsnack_shared.schemas.common import (
    INVITATION_TRANSITIONS,
    InvitationStatus,
    SiteRole,
)

log = structlog.get_logger()

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 6


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def _transition(invitation: Invitation, new_status: InvitationStatus) -> None:
    current = InvitationStatus(invitation.status)
    if new_status not in INVITATION_TRANSITIONS[current]:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot move invitation from '{current.value}' to '{new_status.value}'",
        )
    invitation.status = new_status.value
    invitation.updated_at = utcnow()


async def create_invitation(
    session: AsyncSession,
    site_id: uuid.UUID,
    inviter_id: uuid.UUID,
    email: Optional[str] = None,
    origin: Optional[str] = None,
) -> tuple[Invitation, str]:
    """Create a pending manager invitation. Returns (invitation, invite_url)."""
    settings = get_settings()
    invitation = Invitation(
        site_id=site_id,
        inviter_user_id=inviter_id,
        email=email,
        token=str(uuid.uuid4()),
        invite_code=generate_invite_code(),
        role=SiteRole.MANAGER.value,
        status=InvitationStatus.PENDING.value,
        expires_at=utcnow() + timedelta(days=settings.invitation_ttl_days),
    )
    session.add(invitation)
    await session.flush()

    await log_activity(
        session,
        site_id,
        inviter_id,
        "create_invitation",
        invitation_id=str(invitation.id),
        email=email,
    )
    log.info("invitation.created", site_id=str(site_id), invitation_id=str(invitation.id))

    base_url = (origin or settings.invite_base_url).rstrip("/")
    return invitation, f"{base_url}/invite/{invitation.token}"


async def _find_pending(
    session: AsyncSession, token: Optional[str], invite_code: Optional[str]
) -> Invitation | None:
    query = select(Invitation).where(Invitation.status == InvitationStatus.PENDING.value)
    if token:
        query = query.where(Invitation.token == token)
    else:
        query = query.where(Invitation.invite_code == invite_code.strip().upper())
    result = await session.execute(query)
    return result.scalars().first()


async def accept_invitation(
    session: AsyncSession,
    user_id: uuid.UUID,
    token: Optional[str] = None,
    invite_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Invitation:
    """Add the caller to the invitation's site.

    An expired invitation is marked ``expired`` and committed before the 400
    is raised, since the request session rolls back on error. No membership
    row is written on any failure path.
    """
    invitation = await _find_pending(session, token, invite_code)
    if invitation is None:
        raise HTTPException(status_code=400, detail="Invalid or expired invitation")

    now = now or utcnow()
    if now > as_utc(invitation.expires_at):
        _transition(invitation, InvitationStatus.EXPIRED)
        session.add(invitation)
        await session.commit()
        log.info("invitation.expired", invitation_id=str(invitation.id))
        raise HTTPException(status_code=400, detail="This invitation has expired")

    if await get_site_membership(session, invitation.site_id, user_id) is not None:
        raise HTTPException(status_code=400, detail="You are already a member of this site")

    session.add(SiteMember(site_id=invitation.site_id, user_id=user_id, role=invitation.role))
    _transition(invitation, InvitationStatus.ACCEPTED)
    session.add(invitation)
    await session.flush()

    await log_activity(
        session,
        invitation.site_id,
        user_id,
        "accept_invitation",
        invitation_id=str(invitation.id),
        role=invitation.role,
    )
    log.info("invitation.accepted", invitation_id=str(invitation.id), user_id=str(user_id))
    return invitation


async def expire_stale_invitations(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """Mark every pending invitation past its expiry as expired."""
    now = now or utcnow()
    result = await session.execute(
        select(Invitation).where(Invitation.status == InvitationStatus.PENDING.value)
    )
    expired = 0
    for invitation in result.scalars().all():
        if now > as_utc(invitation.expires_at):
            _transition(invitation, InvitationStatus.EXPIRED)
            session.add(invitation)
            expired += 1
    await session.flush()
    return expired
