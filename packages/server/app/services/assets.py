"""
Asset staging service — stage file versions in blob storage, then commit a
whole batch to the site repository as one Git commit.

At most one ``pending`` version exists per (site, repo_path). The invariant is
kept by lookup-then-replace, so two concurrent uploads of the same path can
still race. Blob writes and row writes are not atomic: a failed insert removes
the freshly written blob, but a crash between the two leaves an orphan.
Blob removal is best-effort everywhere: once a row changes state (replaced,
discarded, committed) a failed delete is logged and the blob is left behind.
"""

from __future__ import annotations

import hashlib
import time
import uuid
from collections import defaultdict
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.storage import BlobStorage, StorageError
from app.core.validation import decode_base64_content, require_safe_path
from app.models.asset_version import AssetVersion
from app.models.base import utcnow
from app.models.site import Site
from app.services.activity import log_activity
from app.services.github.app_auth import GitHubApp
from app.services.github.client import InstallationClient, encode_content
from app.services.site_files import update_directory_manifests
from staticsnack_shared.schemas.common import AssetStatus

log = structlog.get_logger()

DEFAULT_BATCH_MESSAGE = "Update multiple assets"


def build_storage_key(site_id: uuid.UUID, repo_path: str, now_ms: Optional[int] = None) -> str:
    """``<site_id>/<epoch ms>-<repo_path with '/' replaced by '-'>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{site_id}/{now_ms}-{repo_path.replace('/', '-')}"


def default_commit_message(repo_paths: list[str]) -> str:
    if len(repo_paths) == 1:
        return f"Update {repo_paths[0]}"
    return DEFAULT_BATCH_MESSAGE


async def get_pending_version(
    session: AsyncSession, site_id: uuid.UUID, repo_path: str
) -> AssetVersion | None:
    result = await session.execute(
        select(AssetVersion).where(
            AssetVersion.site_id == site_id,
            AssetVersion.repo_path == repo_path,
            AssetVersion.status == AssetStatus.PENDING.value,
        )
    )
    return result.scalars().first()


async def stage_asset(
    session: AsyncSession,
    storage: BlobStorage,
    site_id: uuid.UUID,
    user_id: uuid.UUID,
    file_path: str,
    content: str,
) -> AssetVersion:
    """Store a new blob and point the single pending row for the path at it."""
    repo_path = require_safe_path(file_path)
    data = decode_base64_content(content)
    storage_path = build_storage_key(site_id, repo_path)

    await storage.put(storage_path, data)
    log.info("asset.blob_stored", site_id=str(site_id), storage_path=storage_path, size=len(data))

    checksum = hashlib.sha256(data).hexdigest()
    existing = await get_pending_version(session, site_id, repo_path)

    if existing is not None:
        old_storage_path = existing.storage_path
        await _remove_blobs(storage, [old_storage_path], site_id)
        existing.storage_path = storage_path
        existing.file_size_bytes = len(data)
        existing.checksum = checksum
        existing.updated_at = utcnow()
        session.add(existing)
        await session.flush()
        log.info("asset.pending_replaced", site_id=str(site_id), repo_path=repo_path, old=old_storage_path)
        version = existing
    else:
        version = AssetVersion(
            site_id=site_id,
            repo_path=repo_path,
            storage_path=storage_path,
            status=AssetStatus.PENDING.value,
            file_size_bytes=len(data),
            checksum=checksum,
            created_by=user_id,
        )
        try:
            session.add(version)
            await session.flush()
        except Exception:
            log.exception("asset.insert_failed", site_id=str(site_id), repo_path=repo_path)
            await _remove_blobs(storage, [storage_path], site_id)
            raise
        log.info("asset.staged", site_id=str(site_id), repo_path=repo_path, version_id=str(version.id))

    await log_activity(
        session,
        site_id,
        user_id,
        "stage_asset",
        file_path=repo_path,
        storage_path=storage_path,
        file_size_bytes=len(data),
    )
    return version


async def _remove_blobs(storage: BlobStorage, keys: list[str], site_id: uuid.UUID) -> None:
    """Best-effort blob cleanup; a leftover blob is only wasted space."""
    try:
        await storage.remove(keys)
    except StorageError as exc:
        log.warning("asset.blob_cleanup_failed", site_id=str(site_id), keys=keys, error=str(exc))


async def list_pending(session: AsyncSession, site_id: uuid.UUID) -> list[AssetVersion]:
    result = await session.execute(
        select(AssetVersion)
        .where(
            AssetVersion.site_id == site_id,
            AssetVersion.status == AssetStatus.PENDING.value,
        )
        .order_by(AssetVersion.created_at.desc())
    )
    return list(result.scalars().all())


async def discard_pending(
    session: AsyncSession,
    storage: BlobStorage,
    site_id: uuid.UUID,
    user_id: uuid.UUID,
    asset_version_id: Optional[uuid.UUID] = None,
) -> int:
    """Discard one pending version, or every pending version of the site."""
    if asset_version_id is not None:
        version = await session.get(AssetVersion, asset_version_id)
        if (
            version is None
            or version.site_id != site_id
            or version.status != AssetStatus.PENDING.value
        ):
            raise HTTPException(status_code=404, detail="Pending change not found")
        versions = [version]
    else:
        versions = await list_pending(session, site_id)

    for version in versions:
        version.status = AssetStatus.DISCARDED.value
        session.add(version)
    await session.flush()

    if versions:
        await _remove_blobs(storage, [v.storage_path for v in versions], site_id)
        await log_activity(
            session,
            site_id,
            user_id,
            "discard_asset",
            files=[v.repo_path for v in versions],
        )
    log.info("asset.discarded", site_id=str(site_id), count=len(versions))
    return len(versions)


async def commit_batch(
    session: AsyncSession,
    storage: BlobStorage,
    github: GitHubApp,
    site: Site,
    user_id: uuid.UUID,
    commit_message: Optional[str] = None,
    asset_version_ids: Optional[list[uuid.UUID]] = None,
) -> dict:
    """Commit staged versions as a single commit on the default branch.

    blobs -> tree (on top of the tip tree) -> commit -> fast-forward ref.
    Steps are sequential and not retried; a failure after the commit is
    created leaves it unreferenced.
    """
    versions = await list_pending(session, site.id)
    if asset_version_ids:
        wanted = set(asset_version_ids)
        versions = [v for v in versions if v.id in wanted]
    if not versions:
        raise HTTPException(status_code=400, detail="No pending changes to commit")

    versions.sort(key=lambda v: v.created_at)
    repo_paths = [v.repo_path for v in versions]
    message = commit_message or default_commit_message(repo_paths)
    owner, repo = site.owner_and_repo
    branch = site.default_branch

    await github.verify_installation(site.github_installation_id)
    async with github.installation_client(site.github_installation_id) as client:
        tip_sha = await client.get_branch_sha(owner, repo, branch)
        tip_commit = await client.get_commit(owner, repo, tip_sha)

        entries = []
        for version in versions:
            data = await storage.get(version.storage_path)
            blob_sha = await client.create_blob(owner, repo, encode_content(data))
            log.debug("github.blob_created", repo_path=version.repo_path, sha=blob_sha)
            entries.append({"path": version.repo_path, "mode": "100644", "type": "blob", "sha": blob_sha})

        entries.extend(await _manifest_entries(client, owner, repo, branch, repo_paths))

        tree_sha = await client.create_tree(owner, repo, tip_commit["tree"]["sha"], entries)
        commit = await client.create_commit(owner, repo, message, tree_sha, [tip_sha])
        await client.update_branch(owner, repo, branch, commit["sha"])

    log.info(
        "asset.batch_committed",
        site_id=str(site.id),
        commit_sha=commit["sha"],
        files=len(versions),
    )

    batch_id = uuid.uuid4()
    for version in versions:
        version.status = AssetStatus.COMMITTED.value
        version.batch_id = batch_id
        session.add(version)
    await session.flush()
    await _remove_blobs(storage, [v.storage_path for v in versions], site.id)

    await log_activity(
        session,
        site.id,
        user_id,
        "batch_commit",
        commit_sha=commit["sha"],
        commit_message=message,
        files_count=len(versions),
        files=repo_paths,
        batch_id=str(batch_id),
    )
    return {
        "success": True,
        "commit_sha": commit["sha"],
        "commit_url": commit.get("html_url"),
        "files_committed": len(versions),
    }


async def _manifest_entries(
    client: InstallationClient, owner: str, repo: str, branch: str, repo_paths: list[str]
) -> list[dict]:
    """Tree entries for the directory manifests that gain new file names."""
    by_directory: dict[str, set[str]] = defaultdict(set)
    for path in repo_paths:
        directory, _, name = path.rpartition("/")
        if directory:
            by_directory[directory].add(name)

    entries = []
    updated = await update_directory_manifests(client, owner, repo, branch, by_directory)
    for manifest_path, manifest_bytes in updated.items():
        blob_sha = await client.create_blob(owner, repo, encode_content(manifest_bytes))
        entries.append({"path": manifest_path, "mode": "100644", "type": "blob", "sha": blob_sha})
    return entries
