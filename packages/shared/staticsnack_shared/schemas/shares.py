"""Asset share (guest upload link) schemas."""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

SHARE_TOKEN_PATTERN = r"^[a-f0-9]{64}$"
MAX_EXPIRY_HOURS = 8760
MAX_UPLOADS_LIMIT = 1000
MAX_ALLOWED_EXTENSIONS = 50
MAX_DESCRIPTION_LENGTH = 500

_EXTENSION = re.compile(r"^[a-zA-Z0-9]+$")


class CreateAssetShareRequest(BaseModel):
    site_id: uuid.UUID
    asset_path: str = Field(..., min_length=1, description="Repository directory guests upload into")
    expires_in_hours: int = Field(24, ge=1, le=MAX_EXPIRY_HOURS)
    max_uploads: Optional[int] = Field(None, ge=1, le=MAX_UPLOADS_LIMIT)
    allowed_extensions: Optional[list[str]] = Field(None, max_length=MAX_ALLOWED_EXTENSIONS)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)

    @field_validator("allowed_extensions")
    @classmethod
    def _normalize_extensions(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        """``"JPG"``, ``".jpg"`` -> ``".jpg"``."""
        if value is None:
            return None
        normalized = []
        for ext in value:
            bare = ext[1:] if ext.startswith(".") else ext
            if not _EXTENSION.match(bare):
                raise ValueError('Extensions must be alphanumeric (e.g., "jpg", "png", ".pdf")')
            normalized.append(f".{bare.lower()}")
        return normalized


class AssetShareResponse(BaseModel):
    id: uuid.UUID
    site_id: uuid.UUID
    asset_path: str
    token: str
    created_by: uuid.UUID
    expires_at: datetime
    max_uploads: Optional[int] = None
    upload_count: int
    allowed_extensions: Optional[list[str]] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CreateAssetShareResponse(BaseModel):
    share: AssetShareResponse


class GuestUploadRequest(BaseModel):
    token: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1)
    file_content: str = Field(..., min_length=1, description="Base64-encoded file body")

    @field_validator("token")
    @classmethod
    def _check_token(cls, value: str) -> str:
        if not re.match(SHARE_TOKEN_PATTERN, value):
            raise ValueError("Invalid token format")
        return value


class GuestUploadResponse(BaseModel):
    success: bool = True
    file_path: str
    commit_sha: str
