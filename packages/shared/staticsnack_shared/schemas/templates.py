"""Template gallery schemas."""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

REPO_FULL_NAME_PATTERN = r"^[a-zA-Z0-9_-]+/[a-zA-Z0-9_.-]+$"
REPO_NAME_PATTERN = r"^[a-zA-Z0-9_.-]+$"


class ListTemplatesRequest(BaseModel):
    tags: list[str] = Field(default_factory=list)


class SubmitTemplateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    repo_full_name: str = Field(..., min_length=3)
    tags: list[str] = Field(default_factory=list)
    preview_image_url: Optional[str] = None


class UpdateTemplateRequest(BaseModel):
    template_id: uuid.UUID
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    repo_full_name: Optional[str] = None
    tags: Optional[list[str]] = None
    preview_image_url: Optional[str] = None


class DeleteTemplateRequest(BaseModel):
    template_id: uuid.UUID


class SubmitterProfile(BaseModel):
    id: uuid.UUID
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class TemplateResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    repo_full_name: str
    preview_image_url: Optional[str] = None
    tags: list[str]
    submitted_by: uuid.UUID
    created_at: datetime
    updated_at: datetime
    profiles: Optional[SubmitterProfile] = None


class TemplateListResponse(BaseModel):
    templates: list[TemplateResponse]


class TemplateEnvelope(BaseModel):
    template: TemplateResponse


class CreateSiteFromTemplateRequest(BaseModel):
    template_id: uuid.UUID
    new_repo_name: str = Field(..., min_length=1, max_length=100)
    site_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("new_repo_name")
    @classmethod
    def _check_repo_name(cls, value: str) -> str:
        if not re.match(REPO_NAME_PATTERN, value):
            raise ValueError(
                "Invalid repository name. Use only letters, numbers, hyphens, underscores, and dots."
            )
        return value


class SiteResponse(BaseModel):
    id: uuid.UUID
    name: str
    repo_full_name: str
    default_branch: str
    github_installation_id: Optional[int] = None
    created_by: uuid.UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class RepositoryLink(BaseModel):
    full_name: str
    html_url: Optional[str] = None


class CreateSiteFromTemplateResponse(BaseModel):
    site: SiteResponse
    repository: RepositoryLink
