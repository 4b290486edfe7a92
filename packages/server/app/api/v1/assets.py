"""
Staged asset endpoints.

POST /functions/v1/upload-asset-to-batch   — Stage one file version
POST /functions/v1/list-pending-changes    — Pending versions for a site
POST /functions/v1/discard-pending-change  — Discard one (or all) pending versions
POST /functions/v1/commit-batch-changes    — Commit pending versions as one Git commit
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    AuthenticatedUser,
    get_authenticated_user,
    require_site_access,
    require_site_member,
)
from app.core.database import get_session
from app.core.rate_limit import rate_limited
from app.core.storage import BlobStorage, get_storage
from app.services import assets as asset_service
from app.services.github.app_auth import GitHubApp, get_github_app
from staticsnack_shared.schemas.assets import (
    CommitBatchRequest,
    CommitBatchResponse,
    DiscardChangeRequest,
    DiscardChangeResponse,
    PendingChangesResponse,
    SiteRequest,
    UploadToBatchRequest,
    UploadToBatchResponse,
)

router = APIRouter()

UPLOAD_BATCH_LIMIT = 100


@router.post("/upload-asset-to-batch", response_model=UploadToBatchResponse)
async def upload_asset_to_batch(
    body: UploadToBatchRequest,
    auth: AuthenticatedUser = Depends(rate_limited("upload-batch", UPLOAD_BATCH_LIMIT)),
    session: AsyncSession = Depends(get_session),
    storage: BlobStorage = Depends(get_storage),
):
    """Stage a base64 file body; replaces any pending version of the same path."""
    await require_site_member(session, auth, body.site_id)
    version = await asset_service.stage_asset(
        session, storage, body.site_id, auth.user_id, body.file_path, body.content
    )
    return UploadToBatchResponse(storage_path=version.storage_path)


@router.post("/list-pending-changes", response_model=PendingChangesResponse)
async def list_pending_changes(
    body: SiteRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    await require_site_member(session, auth, body.site_id)
    changes = await asset_service.list_pending(session, body.site_id)
    return PendingChangesResponse(changes=changes)


@router.post("/discard-pending-change", response_model=DiscardChangeResponse)
async def discard_pending_change(
    body: DiscardChangeRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    storage: BlobStorage = Depends(get_storage),
):
    await require_site_member(session, auth, body.site_id)
    discarded = await asset_service.discard_pending(
        session, storage, body.site_id, auth.user_id, body.asset_version_id
    )
    return DiscardChangeResponse(discarded=discarded)


@router.post("/commit-batch-changes", response_model=CommitBatchResponse)
async def commit_batch_changes(
    body: CommitBatchRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    storage: BlobStorage = Depends(get_storage),
    github: GitHubApp = Depends(get_github_app),
):
    site = await require_site_access(session, auth, body.site_id)
    result = await asset_service.commit_batch(
        session,
        storage,
        github,
        site,
        auth.user_id,
        commit_message=body.commit_message,
        asset_version_ids=body.asset_version_ids,
    )
    return CommitBatchResponse(**result)
