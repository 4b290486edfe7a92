"""
GitHub installation endpoints.

POST /functions/v1/github-installation-details  — Repositories visible to an installation
POST /functions/v1/list-github-installations    — The caller's linked installations
POST /functions/v1/reconnect-site-github        — Re-bind a site to its creator's installation
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user, require_site_access
from app.core.database import get_session
from app.services import installations as installation_service
from app.services.github.app_auth import GitHubApp, get_github_app
from staticsnack_shared.schemas.assets import SiteRequest
from staticsnack_shared.schemas.github import (
    InstallationDetailsRequest,
    InstallationDetailsResponse,
    InstallationListResponse,
    ReconnectSiteResponse,
)

router = APIRouter()


@router.post("/github-installation-details", response_model=InstallationDetailsResponse)
async def github_installation_details(
    body: InstallationDetailsRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    github: GitHubApp = Depends(get_github_app),
):
    repositories = await installation_service.installation_repositories(github, body.installation_id)
    return InstallationDetailsResponse(repositories=repositories)


@router.api_route("/list-github-installations", methods=["GET", "POST"], response_model=InstallationListResponse)
async def list_github_installations(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubApp = Depends(get_github_app),
):
    items = await installation_service.list_user_installations(session, github, auth.user_id)
    return InstallationListResponse(installations=items)


@router.post("/reconnect-site-github", response_model=ReconnectSiteResponse)
async def reconnect_site_github(
    body: SiteRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    site = await require_site_access(session, auth, body.site_id)
    return await installation_service.reconnect_site(session, site)
