"""
Site repository file endpoints (GitHub App installation).

POST /functions/v1/download-site-files     — Every file of the branch tip as base64
POST /functions/v1/upload-site-asset       — Commit one file directly
POST /functions/v1/delete-site-asset       — Delete one file on the default branch
POST /functions/v1/create-site-assets-pr   — PR adding the site-assets.json template
POST /functions/v1/fetch-site-assets       — Read site-assets.json
POST /functions/v1/fetch-asset-content     — Read one text file
POST /functions/v1/list-directory-assets   — Files of an asset directory
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user, require_site_access
from app.core.database import get_session
from app.core.rate_limit import rate_limited
from app.services import site_files as site_file_service
from app.services.github.app_auth import GitHubApp, get_github_app
from staticsnack_shared.schemas.assets import (
    AssetPathRequest,
    DeleteSiteAssetRequest,
    DeleteSiteAssetResponse,
    DownloadSiteFilesRequest,
    DownloadSiteFilesResponse,
    FetchAssetContentResponse,
    FetchSiteAssetsResponse,
    ListDirectoryAssetsResponse,
    SiteAssetsPRResponse,
    SiteRequest,
    UploadSiteAssetRequest,
    UploadSiteAssetResponse,
)

router = APIRouter()

UPLOAD_ASSET_LIMIT = 100


@router.post("/download-site-files", response_model=DownloadSiteFilesResponse)
async def download_site_files(
    body: DownloadSiteFilesRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubApp = Depends(get_github_app),
):
    site = await require_site_access(session, auth, body.site_id)
    return await site_file_service.download_files(github, site, body.commit_sha)


@router.post("/upload-site-asset", response_model=UploadSiteAssetResponse)
async def upload_site_asset(
    body: UploadSiteAssetRequest,
    auth: AuthenticatedUser = Depends(rate_limited("upload-asset", UPLOAD_ASSET_LIMIT)),
    session: AsyncSession = Depends(get_session),
    github: GitHubApp = Depends(get_github_app),
):
    site = await require_site_access(session, auth, body.site_id)
    return await site_file_service.upload_file(
        session,
        github,
        site,
        auth.user_id,
        body.file_path,
        body.content,
        message=body.message,
        branch=body.branch,
        sha=body.sha,
    )


@router.post("/delete-site-asset", response_model=DeleteSiteAssetResponse)
async def delete_site_asset(
    body: DeleteSiteAssetRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubApp = Depends(get_github_app),
):
    site = await require_site_access(session, auth, body.site_id)
    return await site_file_service.delete_file(
        session, github, site, auth.user_id, body.file_path, body.sha, body.message
    )


@router.post("/create-site-assets-pr", response_model=SiteAssetsPRResponse)
async def create_site_assets_pr(
    body: SiteRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubApp = Depends(get_github_app),
):
    site = await require_site_access(session, auth, body.site_id)
    return await site_file_service.create_site_assets_pr(session, github, site, auth.user_id)


@router.post("/fetch-site-assets", response_model=FetchSiteAssetsResponse, response_model_exclude_none=True)
async def fetch_site_assets(
    body: SiteRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubApp = Depends(get_github_app),
):
    site = await require_site_access(session, auth, body.site_id)
    return await site_file_service.fetch_site_assets(github, site)


@router.post("/fetch-asset-content", response_model=FetchAssetContentResponse, response_model_exclude_none=True)
async def fetch_asset_content(
    body: AssetPathRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubApp = Depends(get_github_app),
):
    site = await require_site_access(session, auth, body.site_id)
    return await site_file_service.fetch_asset_content(github, site, body.asset_path)


@router.post("/list-directory-assets", response_model=ListDirectoryAssetsResponse)
async def list_directory_assets(
    body: AssetPathRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    github: GitHubApp = Depends(get_github_app),
):
    site = await require_site_access(session, auth, body.site_id)
    return await site_file_service.list_directory_assets(github, site, body.asset_path)
