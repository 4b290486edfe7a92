"""
Template gallery endpoints.

GET|POST /functions/v1/list-templates   — Templates, newest first, optional tag filter
POST     /functions/v1/submit-template  — Any signed-in user
POST     /functions/v1/update-template  — Platform admins
POST     /functions/v1/delete-template  — Platform admins
POST     /functions/v1/create-site-from-template — New repository + site from a template
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user, require_admin
from app.core.database import get_session
from app.services import templates as template_service
from app.services.github.app_auth import GitHubApp, get_github_app
from staticsnack_shared.schemas.common import SuccessResponse
from staticsnack_shared.schemas.templates import (
    CreateSiteFromTemplateRequest,
    CreateSiteFromTemplateResponse,
    DeleteTemplateRequest,
    ListTemplatesRequest,
    RepositoryLink,
    SiteResponse,
    SubmitTemplateRequest,
    TemplateEnvelope,
    TemplateListResponse,
    UpdateTemplateRequest,
)

router = APIRouter()


@router.get("/list-templates", response_model=TemplateListResponse)
async def list_templates(
    tags: list[str] = Query(default=[]),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    return TemplateListResponse(templates=await template_service.list_templates(session, tags))


@router.post("/list-templates", response_model=TemplateListResponse)
async def filter_templates(
    body: Optional[ListTemplatesRequest] = Body(default=None),
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    tags = body.tags if body else []
    return TemplateListResponse(templates=await template_service.list_templates(session, tags))


@router.post("/submit-template", response_model=TemplateEnvelope)
async def submit_template(
    body: SubmitTemplateRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    template = await template_service.submit_template(session, body, auth.user_id)
    return TemplateEnvelope(template=template)


@router.post("/update-template", response_model=TemplateEnvelope)
async def update_template(
    body: UpdateTemplateRequest,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return TemplateEnvelope(template=await template_service.update_template(session, body))


@router.post("/delete-template", response_model=SuccessResponse)
async def delete_template(
    body: DeleteTemplateRequest,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await template_service.delete_template(session, body.template_id)
    return SuccessResponse(message="Template deleted successfully")


@router.post("/create-site-from-template", response_model=CreateSiteFromTemplateResponse)
async def create_site_from_template(
    body: CreateSiteFromTemplateRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubApp = Depends(get_github_app),
):
    site, repository = await template_service.create_site_from_template(
        session, github, auth.user_id, body.template_id, body.new_repo_name, body.site_name
    )
    return CreateSiteFromTemplateResponse(
        site=SiteResponse.model_validate(site),
        repository=RepositoryLink(**repository),
    )
