"""
Template gallery service — starter repositories users can browse and submit,
and new sites generated from them.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.validation import validate_repo_full_name
from app.models.base import utcnow
from app.models.github_installation import GitHubInstallation
from app.models.site import Site, SiteMember
from app.models.template import Template
from app.models.user import Profile
from app.services.activity import log_activity
from app.services.github.app_auth import GitHubApp
from app.services.github.exceptions import GitHubAPIError
from staticsnack_shared.schemas.common import SiteRole
from staticsnack_shared.schemas.templates import SubmitTemplateRequest, UpdateTemplateRequest

log = structlog.get_logger()

NULLABLE_FIELDS = {"preview_image_url"}


def _serialize(template: Template, profile: Optional[Profile]) -> dict:
    data = template.model_dump()
    data["profiles"] = (
        {"id": profile.id, "full_name": profile.full_name, "avatar_url": profile.avatar_url}
        if profile
        else None
    )
    return data


async def list_templates(session: AsyncSession, tags: Optional[list[str]] = None) -> list[dict]:
    """Newest first; with ``tags``, only templates sharing at least one tag."""
    result = await session.execute(
        select(Template, Profile)
        .join(Profile, Profile.id == Template.submitted_by, isouter=True)
        .order_by(Template.created_at.desc())
    )
    wanted = set(tags or [])
    return [
        _serialize(template, profile)
        for template, profile in result.all()
        if not wanted or wanted.intersection(template.tags or [])
    ]


async def get_template(session: AsyncSession, template_id: uuid.UUID) -> Template:
    template = await session.get(Template, template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


async def _with_profile(session: AsyncSession, template: Template) -> dict:
    return _serialize(template, await session.get(Profile, template.submitted_by))


async def submit_template(
    session: AsyncSession, req: SubmitTemplateRequest, user_id: uuid.UUID
) -> dict:
    validate_repo_full_name(req.repo_full_name)
    template = Template(
        name=req.name.strip(),
        description=req.description.strip(),
        repo_full_name=req.repo_full_name,
        tags=req.tags,
        preview_image_url=req.preview_image_url,
        submitted_by=user_id,
    )
    session.add(template)
    await session.flush()
    log.info("template.submitted", template_id=str(template.id), repo=template.repo_full_name)
    return await _with_profile(session, template)


async def update_template(session: AsyncSession, req: UpdateTemplateRequest) -> dict:
    updates = {
        field: value
        for field, value in req.model_dump(exclude_unset=True, exclude={"template_id"}).items()
        if value is not None or field in NULLABLE_FIELDS
    }
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "repo_full_name" in updates:
        validate_repo_full_name(updates["repo_full_name"])

    template = await get_template(session, req.template_id)
    for field, value in updates.items():
        setattr(template, field, value)
    template.updated_at = utcnow()
    session.add(template)
    await session.flush()

    log.info("template.updated", template_id=str(template.id), fields=sorted(updates))
    return await _with_profile(session, template)


async def delete_template(session: AsyncSession, template_id: uuid.UUID) -> None:
    template = await get_template(session, template_id)
    await session.delete(template)
    await session.flush()
    log.info("template.deleted", template_id=str(template_id))


# ---------------------------------------------------------------------------
# Site from template
# ---------------------------------------------------------------------------

GENERATE_ERRORS = {
    422: (422, "Repository name already exists or is invalid"),
    404: (404, "Template repository not found or is not a template"),
    401: (502, "Authentication failed. Please reconnect your GitHub account."),
}


def _generate_error(exc: GitHubAPIError) -> HTTPException:
    if exc.status_code == 403:
        return HTTPException(
            status_code=403,
            detail=(
                f"Permission denied: {exc}. The GitHub App needs \"Administration\" "
                "permission with \"Read & write\" access to create repositories."
            ),
        )
    status, message = GENERATE_ERRORS.get(exc.status_code, (exc.http_status, f"Failed to create repository: {exc}"))
    return HTTPException(status_code=status, detail=message)


async def create_site_from_template(
    session: AsyncSession,
    github: GitHubApp,
    user_id: uuid.UUID,
    template_id: uuid.UUID,
    new_repo_name: str,
    site_name: str,
) -> tuple[Site, dict]:
    """Generate a repository from the template under the caller's installation
    account, then register it as a site owned by the caller.

    The repository is created before any row is written; if the insert fails
    the repository stays on GitHub without a site.
    """
    template = await get_template(session, template_id)
    template_owner, template_repo = validate_repo_full_name(template.repo_full_name)

    result = await session.execute(
        select(GitHubInstallation).where(GitHubInstallation.user_id == user_id)
    )
    installation = result.scalar_one_or_none()
    if installation is None:
        raise HTTPException(
            status_code=404,
            detail="No GitHub installation found. Please connect your GitHub account first.",
        )

    await github.verify_installation(installation.installation_id)
    async with github.installation_client(installation.installation_id) as client:
        try:
            repository = await client.generate_repository(
                template_owner,
                template_repo,
                owner=installation.account_login,
                name=new_repo_name,
                description=f"{site_name} - Created from {template.name}",
            )
        except GitHubAPIError as exc:
            log.error(
                "template.generate_failed",
                template_id=str(template_id),
                status=exc.status_code,
                error=str(exc),
            )
            raise _generate_error(exc)
    log.info("template.repository_generated", template_id=str(template_id), repo=repository["full_name"])

    site = Site(
        name=site_name,
        repo_full_name=repository["full_name"],
        default_branch=repository.get("default_branch") or "main",
        github_installation_id=installation.installation_id,
        created_by=user_id,
    )
    session.add(site)
    await session.flush()
    session.add(SiteMember(site_id=site.id, user_id=user_id, role=SiteRole.OWNER.value))
    await session.flush()

    await log_activity(
        session,
        site.id,
        user_id,
        "create_site_from_template",
        template_id=str(template_id),
        repo_full_name=site.repo_full_name,
    )
    return site, {"full_name": repository["full_name"], "html_url": repository.get("html_url")}
