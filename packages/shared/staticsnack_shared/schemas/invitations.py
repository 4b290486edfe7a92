"""Invitation schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from .common import InvitationStatus, SiteRole


class CreateInvitationRequest(BaseModel):
    site_id: uuid.UUID
    email: Optional[EmailStr] = None


class AcceptInvitationRequest(BaseModel):
    token: Optional[str] = Field(None, min_length=1)
    invite_code: Optional[str] = Field(None, min_length=1)

    @model_validator(mode="after")
    def _require_token_or_code(self) -> "AcceptInvitationRequest":
        if not self.token and not self.invite_code:
            raise ValueError("token or invite_code is required")
        return self


class InvitationResponse(BaseModel):
    id: uuid.UUID
    site_id: uuid.UUID
    inviter_user_id: uuid.UUID
    email: Optional[str] = None
    token: str
    invite_code: str
    role: SiteRole
    status: InvitationStatus
    expires_at: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class CreateInvitationResponse(BaseModel):
    success: bool = True
    invitation: InvitationResponse
    invite_url: str
    invite_code: str


class AcceptInvitationResponse(BaseModel):
    success: bool = True
    site_id: uuid.UUID
