"""Append-only audit rows for mutating actions."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin


class ActivityLog(CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "activity_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    site_id: uuid.UUID = Field(foreign_key="sites.id", nullable=False, index=True)
    user_id: Optional[uuid.UUID] = Field(default=None, index=True)
    action: str = Field(nullable=False)
    # "metadata" is reserved on declarative classes
    details: dict = Field(
        default_factory=dict,
        sa_column=sa.Column("metadata", sa.JSON, nullable=False),
    )
