"""
Asset staging and repository file schemas.

Covers: batch staging, pending-change listing/discard, batch commit,
direct upload, delete, bulk download and the site-assets.json manifest.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import AssetStatus


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class UploadToBatchRequest(BaseModel):
    site_id: uuid.UUID
    file_path: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1, description="Base64-encoded file body")


class SiteRequest(BaseModel):
    """Body for operations that only need a site."""
    site_id: uuid.UUID


class DiscardChangeRequest(BaseModel):
    site_id: uuid.UUID
    asset_version_id: Optional[uuid.UUID] = Field(
        None,
        description="Version to discard (default: every pending version of the site)",
    )


class CommitBatchRequest(BaseModel):
    site_id: uuid.UUID
    commit_message: Optional[str] = Field(None, min_length=1, max_length=500)
    asset_version_ids: Optional[list[uuid.UUID]] = Field(
        None,
        description="Subset of pending versions to commit (default: all pending)",
    )


class UploadSiteAssetRequest(BaseModel):
    site_id: uuid.UUID
    file_path: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1, description="Base64-encoded file body")
    message: Optional[str] = None
    branch: Optional[str] = None
    sha: Optional[str] = None


class DeleteSiteAssetRequest(BaseModel):
    site_id: uuid.UUID
    file_path: str = Field(..., min_length=1)
    sha: str = Field(..., min_length=1)
    message: Optional[str] = None


class DownloadSiteFilesRequest(BaseModel):
    site_id: uuid.UUID
    commit_sha: Optional[str] = None


class AssetPathRequest(BaseModel):
    site_id: uuid.UUID
    asset_path: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UploadToBatchResponse(BaseModel):
    success: bool = True
    message: str = "Asset staged successfully"
    storage_path: str


class PendingChange(BaseModel):
    id: uuid.UUID
    repo_path: str
    storage_path: str
    status: AssetStatus
    file_size_bytes: int
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PendingChangesResponse(BaseModel):
    changes: list[PendingChange]


class DiscardChangeResponse(BaseModel):
    success: bool = True
    discarded: int


class CommitBatchResponse(BaseModel):
    success: bool = True
    commit_sha: str
    commit_url: Optional[str] = None
    files_committed: int


class UploadSiteAssetResponse(BaseModel):
    success: bool = True
    commit_sha: str
    file_url: Optional[str] = None


class DeleteSiteAssetResponse(BaseModel):
    success: bool = True
    commit_sha: str


class RepoFile(BaseModel):
    content: str
    encoding: str


class DownloadSiteFilesResponse(BaseModel):
    files: dict[str, RepoFile]


class SiteAssetsPRResponse(BaseModel):
    success: bool = True
    pr_url: str
    pr_number: int
    branch: str


class FetchSiteAssetsResponse(BaseModel):
    found: bool
    config: Optional[dict] = None
    sha: Optional[str] = None
    message: Optional[str] = None


class FetchAssetContentResponse(BaseModel):
    found: bool
    content: Optional[str] = None
    sha: Optional[str] = None
    size: Optional[int] = None
    download_url: Optional[str] = None
    message: Optional[str] = None


class DirectoryAsset(BaseModel):
    name: str
    path: str
    sha: str
    size: int = 0
    type: str = "file"
    download_url: Optional[str] = None


class ListDirectoryAssetsResponse(BaseModel):
    files: list[DirectoryAsset]


# ---------------------------------------------------------------------------
# site-assets.json manifest
# ---------------------------------------------------------------------------

class AssetDefinition(BaseModel):
    path: str
    type: str = Field(..., pattern=r"^(image|text|json|directory|markdown|calendar)$")
    label: str
    description: Optional[str] = None
    maxSize: Optional[int] = Field(None, ge=1)
    allowedExtensions: list[str] = Field(default_factory=list)


class SiteAssetsManifest(BaseModel):
    version: str = "1.0"
    description: Optional[str] = None
    assets: list[AssetDefinition] = Field(default_factory=list)
