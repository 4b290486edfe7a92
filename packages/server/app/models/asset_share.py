"""Guest upload links scoped to one repository directory."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class AssetShare(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "asset_shares"

    site_id: uuid.UUID = Field(foreign_key="sites.id", nullable=False, index=True)
    asset_path: str = Field(nullable=False)
    token: str = Field(nullable=False, unique=True, index=True)
    created_by: uuid.UUID = Field(nullable=False)
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    max_uploads: Optional[int] = None
    upload_count: int = Field(default=0, nullable=False)
    # Lower-case with a leading dot: [".jpg", ".png"]
    allowed_extensions: Optional[list] = Field(default=None, sa_type=sa.JSON)
    description: Optional[str] = None
