from enum import Enum
from typing import Optional
from pydantic import BaseModel

class SiteRole(str, Enum):
    OWNER = "owner"
    MANAGER = "manager"

class PlatformRole(str, Enum):
    ADMIN = "admin"

class AssetStatus(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    DISCARDED = "discarded"

class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"

# Terminal invitation states never transition again
INVITATION_TRANSITIONS: dict["InvitationStatus", list["InvitationStatus"]] = {
    InvitationStatus.PENDING: [InvitationStatus.ACCEPTED, InvitationStatus.EXPIRED],
    InvitationStatus.ACCEPTED: [],
    InvitationStatus.EXPIRED: [],
}

class CalendarProvider(str, Enum):
    GOOGLE = "google"
    OUTLOOK = "outlook"
    APPLE = "apple"

class ErrorResponse(BaseModel):
    error: str

class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
