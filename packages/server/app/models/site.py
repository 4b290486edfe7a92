"""Site (repository binding) and site membership models."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, TimestampMixin, UUIDMixin


class Site(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "sites"

    name: str = Field(nullable=False)
    repo_full_name: str = Field(nullable=False, index=True)
    default_branch: str = Field(default="main", nullable=False)
    github_installation_id: Optional[int] = Field(default=None, sa_type=sa.BigInteger)
    github_app_slug: Optional[str] = None
    settings: dict = Field(default_factory=dict, sa_type=sa.JSON, nullable=False)
    created_by: uuid.UUID = Field(nullable=False, index=True)

    @property
    def owner_and_repo(self) -> tuple[str, str]:
        owner, repo = self.repo_full_name.split("/", 1)
        return owner, repo


class SiteMember(CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "site_members"

    site_id: uuid.UUID = Field(foreign_key="sites.id", primary_key=True)
    user_id: uuid.UUID = Field(primary_key=True, index=True)
    role: str = Field(nullable=False, default="manager")  # owner | manager
