"""GitHub App installations linked to platform users."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin


class GitHubInstallation(TimestampMixin, SQLModel, table=True):
    __tablename__ = "github_installations"

    installation_id: int = Field(sa_column=sa.Column(sa.BigInteger, primary_key=True, autoincrement=False))
    user_id: uuid.UUID = Field(nullable=False, unique=True, index=True)
    account_login: str = Field(nullable=False)
    account_type: str = Field(default="User", nullable=False)
    account_avatar_url: Optional[str] = None
