"""
Asset share endpoints.

POST /functions/v1/create-asset-share   — Site member creates a guest upload link
POST /functions/v1/guest-upload-asset   — Upload through a share token (no account)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user, require_site_member
from app.core.database import get_session
from app.core.rate_limit import RateLimiter, get_rate_limiter
from app.services import shares as share_service
from app.services.github.app_auth import GitHubApp, get_github_app
from staticsnack_shared.schemas.shares import (
    AssetShareResponse,
    CreateAssetShareRequest,
    CreateAssetShareResponse,
    GuestUploadRequest,
    GuestUploadResponse,
)

router = APIRouter()

GUEST_UPLOAD_LIMIT = 100


@router.post("/create-asset-share", response_model=CreateAssetShareResponse)
async def create_asset_share(
    body: CreateAssetShareRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    await require_site_member(session, auth, body.site_id)
    share = await share_service.create_share(session, body, auth.user_id)
    return CreateAssetShareResponse(share=AssetShareResponse.model_validate(share))


@router.post("/guest-upload-asset", response_model=GuestUploadResponse)
async def guest_upload_asset(
    body: GuestUploadRequest,
    session: AsyncSession = Depends(get_session),
    github: GitHubApp = Depends(get_github_app),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Unauthenticated: the share token is the credential, so it keys the rate limit."""
    if not await limiter.hit(f"guest-upload:{body.token}", GUEST_UPLOAD_LIMIT):
        raise HTTPException(status_code=429, detail="Too many requests. Please try again later.")
    return await share_service.guest_upload(
        session, github, body.token, body.file_name, body.file_content
    )
