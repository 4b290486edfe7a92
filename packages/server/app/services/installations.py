"""
GitHub installation service — repositories visible to an installation, the
caller's linked installations, and re-binding a site after a reinstall.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import utcnow
from app.models.github_installation import GitHubInstallation
from app.models.site import Site
from app.services.github.app_auth import GitHubApp
from app.services.github.exceptions import GitHubError

log = structlog.get_logger()


def _repository_summary(repo: dict) -> dict:
    return {
        "name": repo["name"],
        "full_name": repo["full_name"],
        "default_branch": repo.get("default_branch") or "main",
        "private": bool(repo.get("private")),
    }


async def installation_repositories(github: GitHubApp, installation_id: int) -> list[dict]:
    async with github.installation_client(installation_id) as client:
        repositories = await client.list_installation_repositories()
    log.info("github.installation_repositories", installation_id=installation_id, count=len(repositories))
    return [_repository_summary(repo) for repo in repositories]


async def list_user_installations(
    session: AsyncSession, github: GitHubApp, user_id: uuid.UUID
) -> list[dict]:
    """The caller's installations; a failing installation is reported, not raised."""
    result = await session.execute(
        select(GitHubInstallation).where(GitHubInstallation.user_id == user_id)
    )
    items = []
    for installation in result.scalars().all():
        item = {
            "id": installation.installation_id,
            "account": {
                "login": installation.account_login,
                "type": installation.account_type,
                "avatar_url": installation.account_avatar_url,
            },
            "repository_count": 0,
            "repositories": [],
            "created_at": installation.created_at,
            "updated_at": installation.updated_at,
        }
        try:
            item["repositories"] = await installation_repositories(github, installation.installation_id)
            item["repository_count"] = len(item["repositories"])
        except GitHubError as exc:
            log.error(
                "github.installation_fetch_failed",
                installation_id=installation.installation_id,
                error=str(exc),
            )
            item["error"] = "Failed to fetch repositories"
        items.append(item)
    return items


async def reconnect_site(session: AsyncSession, site: Site) -> dict:
    """Point the site at its creator's current installation."""
    result = await session.execute(
        select(GitHubInstallation).where(GitHubInstallation.user_id == site.created_by)
    )
    installation = result.scalar_one_or_none()
    if installation is None:
        raise HTTPException(
            status_code=404,
            detail="No GitHub installation found. Please connect your GitHub account first.",
        )

    if site.github_installation_id == installation.installation_id:
        return {
            "success": True,
            "message": "Site is already connected to GitHub",
            "installation_id": installation.installation_id,
        }

    previous = site.github_installation_id
    site.github_installation_id = installation.installation_id
    site.updated_at = utcnow()
    session.add(site)
    await session.flush()
    log.info(
        "site.github_reconnected",
        site_id=str(site.id),
        previous=previous,
        installation_id=installation.installation_id,
    )
    return {
        "success": True,
        "message": "Site reconnected to GitHub successfully",
        "installation_id": installation.installation_id,
    }
