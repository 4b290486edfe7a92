"""Platform user profile and role models (users live in the auth platform)."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin


class Profile(CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "profiles"

    id: uuid.UUID = Field(primary_key=True)
    email: Optional[str] = Field(default=None, index=True)
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class UserRole(SQLModel, table=True):
    __tablename__ = "user_roles"

    user_id: uuid.UUID = Field(primary_key=True)
    role: str = Field(primary_key=True)  # admin
