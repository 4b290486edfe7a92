"""
Invitation endpoints.

POST /functions/v1/create-invitation  — Owner invites a manager (link + code)
POST /functions/v1/accept-invitation  — Join a site by token or invite code
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user, require_site_owner
from app.core.database import get_session
from app.core.rate_limit import rate_limited
from app.services import invitations as invitation_service
from staticsnack_shared.schemas.invitations import (
    AcceptInvitationRequest,
    AcceptInvitationResponse,
    CreateInvitationRequest,
    CreateInvitationResponse,
    InvitationResponse,
)

router = APIRouter()

CREATE_INVITATION_LIMIT = 10


@router.post("/create-invitation", response_model=CreateInvitationResponse)
async def create_invitation(
    body: CreateInvitationRequest,
    request: Request,
    auth: AuthenticatedUser = Depends(rate_limited("create-invitation", CREATE_INVITATION_LIMIT)),
    session: AsyncSession = Depends(get_session),
):
    """Only site owners can invite. The invite URL uses the caller's origin when sent."""
    await require_site_owner(session, auth, body.site_id)
    invitation, invite_url = await invitation_service.create_invitation(
        session,
        body.site_id,
        auth.user_id,
        email=body.email,
        origin=request.headers.get("origin"),
    )
    return CreateInvitationResponse(
        invitation=InvitationResponse.model_validate(invitation),
        invite_url=invite_url,
        invite_code=invitation.invite_code,
    )


@router.post("/accept-invitation", response_model=AcceptInvitationResponse)
async def accept_invitation(
    body: AcceptInvitationRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    invitation = await invitation_service.accept_invitation(
        session, auth.user_id, token=body.token, invite_code=body.invite_code
    )
    return AcceptInvitationResponse(site_id=invitation.site_id)
