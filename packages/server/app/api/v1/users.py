"""
User lookup endpoint.

POST /functions/v1/search-users  — Admin search by email substring or exact ids
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, require_admin
from app.core.database import get_session
from app.services import users as user_service
from staticsnack_shared.schemas.github import SearchUsersRequest, SearchUsersResponse

router = APIRouter()


@router.post("/search-users", response_model=SearchUsersResponse)
async def search_users(
    body: SearchUsersRequest,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    users = await user_service.search_users(
        session, query=body.query, user_ids=body.user_ids, limit=body.limit
    )
    return SearchUsersResponse(users=users)
