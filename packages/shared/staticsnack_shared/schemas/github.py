"""GitHub installation and user lookup schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class InstallationDetailsRequest(BaseModel):
    installation_id: int = Field(..., ge=1)


class InstallationRepository(BaseModel):
    name: str
    full_name: str
    default_branch: str
    private: bool


class InstallationDetailsResponse(BaseModel):
    repositories: list[InstallationRepository]


class InstallationAccount(BaseModel):
    login: str
    type: str
    avatar_url: Optional[str] = None


class InstallationItem(BaseModel):
    id: int
    account: InstallationAccount
    repository_count: int = 0
    repositories: list[InstallationRepository] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    error: Optional[str] = None


class InstallationListResponse(BaseModel):
    installations: list[InstallationItem]


class ReconnectSiteResponse(BaseModel):
    success: bool = True
    message: str
    installation_id: int


class SearchUsersRequest(BaseModel):
    query: Optional[str] = None
    user_ids: list[uuid.UUID] = Field(default_factory=list, alias="userIds")
    limit: int = Field(default=10, ge=1, le=100)

    model_config = {"populate_by_name": True}


class UserSummary(BaseModel):
    id: uuid.UUID
    email: Optional[str] = None


class SearchUsersResponse(BaseModel):
    users: list[UserSummary]
