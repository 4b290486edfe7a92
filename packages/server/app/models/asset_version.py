"""Staged asset versions awaiting a batch commit."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class AssetVersion(UUIDMixin, TimestampMixin, SQLModel, table=True):
    """At most one ``pending`` row per (site_id, repo_path); kept by lookup-then-replace."""

    __tablename__ = "asset_versions"

    site_id: uuid.UUID = Field(foreign_key="sites.id", nullable=False, index=True)
    repo_path: str = Field(nullable=False, index=True)
    storage_path: str = Field(nullable=False)
    status: str = Field(default="pending", nullable=False, index=True)  # pending | committed | discarded
    file_size_bytes: int = Field(default=0, nullable=False)
    checksum: Optional[str] = None
    batch_id: Optional[uuid.UUID] = Field(default=None, index=True)
    created_by: uuid.UUID = Field(nullable=False)
