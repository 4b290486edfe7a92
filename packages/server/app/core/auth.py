"""
Authentication and authorization for StaticSnack functions.

Callers present the platform session as ``Authorization: Bearer <jwt>``; the
token is an HS256 JWT issued by the auth service with ``sub`` set to the user
id. Site scoping is decided per request from ``site_members`` and platform
roles from ``user_roles``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, HTTPException
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.models.site import Site, SiteMember
from app.models.user import UserRole
from staticsnack_shared.schemas.common import PlatformRole, SiteRole

log = structlog.get_logger()

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: uuid.UUID,
    *,
    email: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Issue a session token (used by the seed script and tests)."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "aud": settings.auth_jwt_audience,
        "role": "authenticated",
        "iat": now,
        "exp": now + (expires_delta or timedelta(hours=1)),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """Decode and verify a session token. Raises jwt.PyJWTError on failure."""
    settings = get_settings()
    return jwt.decode(
        token,
        settings.auth_jwt_secret,
        algorithms=[settings.auth_jwt_algorithm],
        audience=settings.auth_jwt_audience,
    )


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------


class AuthenticatedUser:
    """The caller behind a verified bearer token."""

    def __init__(self, user_id: uuid.UUID, email: Optional[str] = None, token: str = ""):
        self.user_id = user_id
        self.email = email
        self.token = token


async def get_authenticated_user(
    authorization: Optional[str] = Depends(authorization_header),
) -> AuthenticatedUser:
    """Main authentication dependency."""
    if not authorization:
        raise HTTPException(status_code=401, detail="No authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = token.strip()

    try:
        payload = decode_access_token(token)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Unauthorized")

    return AuthenticatedUser(user_id=user_id, email=payload.get("email"), token=token)


# ---------------------------------------------------------------------------
# Authorization checks
# ---------------------------------------------------------------------------


async def get_site_membership(
    session: AsyncSession, site_id: uuid.UUID, user_id: uuid.UUID
) -> SiteMember | None:
    result = await session.execute(
        select(SiteMember).where(SiteMember.site_id == site_id, SiteMember.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def require_site_member(
    session: AsyncSession, auth: AuthenticatedUser, site_id: uuid.UUID
) -> SiteMember:
    """Any site member (owner or manager) may proceed."""
    membership = await get_site_membership(session, site_id, auth.user_id)
    if membership is None:
        log.info("auth.not_site_member", site_id=str(site_id), user_id=str(auth.user_id))
        raise HTTPException(status_code=403, detail="You do not have access to this site")
    return membership


async def require_site_owner(
    session: AsyncSession, auth: AuthenticatedUser, site_id: uuid.UUID
) -> SiteMember:
    membership = await get_site_membership(session, site_id, auth.user_id)
    if membership is None or membership.role != SiteRole.OWNER:
        raise HTTPException(status_code=403, detail="Only site owners can perform this action")
    return membership


async def require_site_access(
    session: AsyncSession, auth: AuthenticatedUser, site_id: uuid.UUID
) -> Site:
    """Membership check plus site lookup; 404 when the site is gone."""
    await require_site_member(session, auth, site_id)
    site = await session.get(Site, site_id)
    if site is None:
        raise HTTPException(status_code=404, detail="Site not found")
    return site


async def is_platform_admin(session: AsyncSession, user_id: uuid.UUID) -> bool:
    result = await session.execute(
        select(UserRole).where(UserRole.user_id == user_id, UserRole.role == PlatformRole.ADMIN)
    )
    return result.scalar_one_or_none() is not None


async def require_admin(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """Requires the platform admin role."""
    if not await is_platform_admin(session, auth.user_id):
        raise HTTPException(status_code=403, detail="Admin access required")
    return auth
