"""Shareable starter-repository templates."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Template(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "templates"

    name: str = Field(nullable=False, index=True)
    description: str = Field(default="", nullable=False)
    repo_full_name: str = Field(nullable=False)
    preview_image_url: Optional[str] = None
    tags: list = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    submitted_by: uuid.UUID = Field(nullable=False, index=True)
