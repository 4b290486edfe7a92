"""
Asset share service — time-limited links that let someone without an account
upload files into one directory of a site repository.

A share is usable while ``expires_at`` is in the future and, when
``max_uploads`` is set, while ``upload_count`` is below it. Guest uploads are
committed straight to the default branch; nothing is staged.
"""

from __future__ import annotations

import re
import secrets
import uuid
from datetime import timedelta
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.validation import decode_base64_content, require_safe_path
from app.models.asset_share import AssetShare
from app.models.base import as_utc, utcnow
from app.models.site import Site
from app.services.activity import log_activity
from app.services.github.app_auth import GitHubApp
from app.services.github.client import encode_content
from app.services.site_files import add_to_manifest
from staticsnack_shared.schemas.shares import CreateAssetShareRequest

log = structlog.get_logger()

MAX_FILENAME_LENGTH = 255
_UNSAFE_FILENAME = re.compile(r'[<>:"|?*/\\\x00-\x1f]')


def generate_share_token() -> str:
    """64 hex characters from 32 random bytes."""
    return secrets.token_hex(32)


async def create_share(
    session: AsyncSession, req: CreateAssetShareRequest, user_id: uuid.UUID
) -> AssetShare:
    asset_path = require_safe_path(req.asset_path).rstrip("/")
    share = AssetShare(
        site_id=req.site_id,
        asset_path=asset_path,
        token=generate_share_token(),
        created_by=user_id,
        expires_at=utcnow() + timedelta(hours=req.expires_in_hours),
        max_uploads=req.max_uploads,
        allowed_extensions=req.allowed_extensions,
        description=req.description,
    )
    session.add(share)
    await session.flush()
    log.info("share.created", site_id=str(req.site_id), share_id=str(share.id), asset_path=asset_path)
    return share


def validate_filename(file_name: str) -> None:
    if not file_name:
        raise HTTPException(status_code=400, detail="Filename cannot be empty")
    if len(file_name) > MAX_FILENAME_LENGTH:
        raise HTTPException(
            status_code=400, detail=f"Filename too long. Maximum {MAX_FILENAME_LENGTH} characters"
        )
    if _UNSAFE_FILENAME.search(file_name):
        raise HTTPException(status_code=400, detail="Filename contains invalid characters")
    if file_name.startswith("."):
        raise HTTPException(status_code=400, detail="Hidden files are not allowed")


def validate_extension(file_name: str, allowed_extensions: Optional[list[str]]) -> None:
    if not allowed_extensions:
        return
    _, dot, ext = file_name.rpartition(".")
    if not dot or not ext:
        raise HTTPException(status_code=400, detail="File must have an extension")
    if f".{ext.lower()}" not in allowed_extensions:
        raise HTTPException(
            status_code=400,
            detail=f"File type .{ext.lower()} not allowed. Allowed types: {', '.join(allowed_extensions)}",
        )


async def _get_usable_share(session: AsyncSession, token: str) -> AssetShare:
    result = await session.execute(select(AssetShare).where(AssetShare.token == token))
    share = result.scalar_one_or_none()
    if share is None:
        log.warning("share.unknown_token")
        raise HTTPException(status_code=404, detail="Invalid share token")
    if as_utc(share.expires_at) < utcnow():
        log.info("share.expired", share_id=str(share.id))
        raise HTTPException(status_code=403, detail="Share link has expired")
    if share.max_uploads and share.upload_count >= share.max_uploads:
        log.info("share.limit_reached", share_id=str(share.id))
        raise HTTPException(status_code=403, detail="Upload limit reached")
    return share


async def guest_upload(
    session: AsyncSession,
    github: GitHubApp,
    token: str,
    file_name: str,
    file_content: str,
) -> dict:
    """Commit one file into the share's directory on the default branch."""
    validate_filename(file_name)
    data = decode_base64_content(file_content)

    share = await _get_usable_share(session, token)
    validate_extension(file_name, share.allowed_extensions)
    path = require_safe_path(f"{share.asset_path}/{file_name}")
    path = re.sub(r"/+", "/", path)

    site = await session.get(Site, share.site_id)
    if site is None:
        raise HTTPException(status_code=404, detail="Site not found")
    owner, repo = site.owner_and_repo
    branch = site.default_branch

    await github.verify_installation(site.github_installation_id)
    async with github.installation_client(site.github_installation_id) as client:
        existing = await client.get_contents(owner, repo, path, ref=branch)
        response = await client.put_contents(
            owner,
            repo,
            path,
            message=f"Guest upload: {file_name}",
            content_b64=encode_content(data),
            branch=branch,
            sha=existing.get("sha") if isinstance(existing, dict) else None,
        )
        commit_sha = response["commit"]["sha"]
        directory, _, name = path.rpartition("/")
        if directory:
            await add_to_manifest(client, owner, repo, branch, directory, name)

    share.upload_count += 1
    share.updated_at = utcnow()
    session.add(share)
    await session.flush()

    await log_activity(
        session,
        site.id,
        None,
        "guest_upload",
        file_path=path,
        file_name=file_name,
        file_size_bytes=len(data),
        commit_sha=commit_sha,
        share_id=str(share.id),
    )
    log.info("share.guest_uploaded", share_id=str(share.id), path=path, commit_sha=commit_sha)
    return {"success": True, "file_path": path, "commit_sha": commit_sha}
