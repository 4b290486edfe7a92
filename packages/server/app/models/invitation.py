"""Site invitations. Terminal once accepted or expired."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Invitation(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "invitations"

    site_id: uuid.UUID = Field(foreign_key="sites.id", nullable=False, index=True)
    inviter_user_id: uuid.UUID = Field(nullable=False)
    email: Optional[str] = None
    token: str = Field(nullable=False, unique=True, index=True)
    invite_code: str = Field(nullable=False, index=True)
    role: str = Field(default="manager", nullable=False)
    status: str = Field(default="pending", nullable=False, index=True)  # pending | accepted | expired
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
