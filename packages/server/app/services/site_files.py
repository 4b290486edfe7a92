"""
Site repository file operations over the GitHub App installation:
bulk download, direct upload/delete, the site-assets.json manifest and
per-directory manifest.json upkeep.
"""

from __future__ import annotations

import json
import time
import uuid
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.validation import decode_base64_content, require_safe_path
from app.models.site import Site
from app.services.activity import log_activity
from app.services.github.app_auth import GitHubApp
from app.services.github.client import InstallationClient, decode_content, encode_content
from app.services.github.exceptions import GitHubError

log = structlog.get_logger()

SITE_ASSETS_FILE = "site-assets.json"
SITE_ASSETS_COMMIT_MESSAGE = "Add site-assets.json configuration template"
MANIFEST_FILE = "manifest.json"

SITE_ASSETS_TEMPLATE = {
    "version": "1.0",
    "description": "Configuration file defining manageable assets for this static site",
    "assets": [
        {
            "path": "images/hero.jpg",
            "type": "image",
            "label": "Hero Image",
            "description": "Main homepage hero/banner image",
            "maxSize": 2097152,
            "allowedExtensions": [".jpg", ".png", ".webp"],
        },
        {
            "path": "images/logo.png",
            "type": "image",
            "label": "Site Logo",
            "description": "Primary logo displayed in header",
            "maxSize": 524288,
            "allowedExtensions": [".png", ".svg", ".webp"],
        },
        {
            "path": "content/about.md",
            "type": "text",
            "label": "About Page Content",
            "description": "Markdown content for the about page",
            "maxSize": 51200,
            "allowedExtensions": [".md"],
        },
        {
            "path": "images/gallery",
            "type": "directory",
            "label": "Photo Gallery",
            "description": "Collection of gallery images",
            "maxSize": 2097152,
            "allowedExtensions": [".jpg", ".png", ".webp"],
        },
    ],
}

SITE_ASSETS_PR_BODY = """## Add Site Assets Configuration

This PR adds a `site-assets.json` configuration file to define manageable assets for the site manager.

### What's included:
- Template configuration with example assets
- Schema documentation through examples
- Common asset types (images, text, directories)

### Next steps:
1. Review the template structure
2. Customize the assets array for your site's needs
3. Update paths, labels, and descriptions
4. Merge this PR to enable asset management

The site manager will use this file to provide a user-friendly interface for non-technical users to manage site content."""


def _dump_json(document: dict) -> bytes:
    return json.dumps(document, indent=2).encode("utf-8")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def download_files(github: GitHubApp, site: Site, commit_sha: Optional[str] = None) -> dict:
    """Every blob of the branch tip (or ``commit_sha``) as base64.

    A blob that fails to download is logged and left out of the result.
    """
    owner, repo = site.owner_and_repo
    await github.verify_installation(site.github_installation_id)

    files: dict[str, dict] = {}
    async with github.installation_client(site.github_installation_id) as client:
        sha = commit_sha or await client.get_branch_sha(owner, repo, site.default_branch)
        commit = await client.get_commit(owner, repo, sha)
        tree = await client.get_tree(owner, repo, commit["tree"]["sha"], recursive=True)
        if tree.get("truncated"):
            log.warning("github.tree_truncated", site_id=str(site.id), repo=site.repo_full_name)

        for item in tree.get("tree", []):
            if item.get("type") != "blob" or not item.get("path"):
                continue
            try:
                blob = await client.get_blob(owner, repo, item["sha"])
            except GitHubError as exc:
                log.error("github.blob_fetch_failed", path=item["path"], error=str(exc))
                continue
            files[item["path"]] = {"content": blob["content"], "encoding": blob["encoding"]}

    log.info("site.files_downloaded", site_id=str(site.id), count=len(files))
    return {"files": files}


async def fetch_site_assets(github: GitHubApp, site: Site) -> dict:
    owner, repo = site.owner_and_repo
    async with github.installation_client(site.github_installation_id) as client:
        file_data = await client.get_contents(owner, repo, SITE_ASSETS_FILE, ref=site.default_branch)

    if file_data is None:
        log.info("site.assets_config_missing", site_id=str(site.id))
        return {"found": False, "message": "site-assets.json not found in repository root"}

    try:
        config = json.loads(decode_content(file_data))
    except ValueError:
        raise HTTPException(status_code=400, detail="site-assets.json is not valid JSON")
    return {"found": True, "config": config, "sha": file_data.get("sha")}


async def fetch_asset_content(github: GitHubApp, site: Site, asset_path: str) -> dict:
    """UTF-8 text of one repository file."""
    path = require_safe_path(asset_path)
    owner, repo = site.owner_and_repo
    async with github.installation_client(site.github_installation_id) as client:
        file_data = await client.get_contents(owner, repo, path, ref=site.default_branch)

    if file_data is None:
        return {"found": False, "message": "File not found in repository"}
    if isinstance(file_data, list) or file_data.get("type") != "file":
        return {"found": False, "message": "Path is not a file"}

    return {
        "found": True,
        "content": decode_content(file_data).decode("utf-8", errors="replace"),
        "sha": file_data.get("sha"),
        "size": file_data.get("size"),
        "download_url": file_data.get("download_url"),
    }


def _asset_summary(item: dict) -> dict:
    return {
        "name": item["name"],
        "path": item["path"],
        "sha": item["sha"],
        "size": item.get("size", 0),
        "type": item.get("type", "file"),
        "download_url": item.get("download_url"),
    }


def _manifest_names(file_data: dict, directory: str) -> list[str]:
    try:
        manifest = json.loads(decode_content(file_data))
    except ValueError:
        manifest = None
    if not isinstance(manifest, dict) or not isinstance(manifest.get("files", []), list):
        log.warning("site.manifest_invalid", directory=directory)
        raise HTTPException(status_code=400, detail=f"{directory}/{MANIFEST_FILE} is not valid JSON")
    return [name for name in manifest.get("files", []) if isinstance(name, str)]


async def list_directory_assets(github: GitHubApp, site: Site, asset_path: str) -> dict:
    """Files of a directory: the manifest's list when present, else the listing."""
    directory = require_safe_path(asset_path).rstrip("/")
    owner, repo = site.owner_and_repo
    ref = site.default_branch

    async with github.installation_client(site.github_installation_id) as client:
        manifest = await client.get_contents(owner, repo, f"{directory}/{MANIFEST_FILE}", ref=ref)
        if manifest is not None:
            names = _manifest_names(manifest, directory)
            files = []
            for name in names:
                item = await client.get_contents(owner, repo, f"{directory}/{name}", ref=ref)
                if item is None:
                    log.warning("site.manifest_entry_missing", path=f"{directory}/{name}")
                    continue
                files.append(_asset_summary(item))
            return {"files": files}

        contents = await client.get_contents(owner, repo, directory, ref=ref)

    if contents is None:
        return {"files": []}
    if isinstance(contents, list):
        return {"files": [_asset_summary(i) for i in contents if i.get("name") != MANIFEST_FILE]}
    return {"files": [_asset_summary(contents)]}


# ---------------------------------------------------------------------------
# Manifest upkeep
# ---------------------------------------------------------------------------


async def update_directory_manifests(
    client: InstallationClient,
    owner: str,
    repo: str,
    ref: str,
    files_by_directory: dict[str, set[str]],
) -> dict[str, bytes]:
    """New bodies for ``<dir>/manifest.json`` files that gain entries.

    Directories without a manifest are skipped. Any other failure is logged
    and the directory is skipped too; manifests never block a commit.
    """
    updated: dict[str, bytes] = {}
    for directory, names in sorted(files_by_directory.items()):
        manifest_path = f"{directory}/{MANIFEST_FILE}"
        try:
            file_data = await client.get_contents(owner, repo, manifest_path, ref=ref)
            if file_data is None:
                log.debug("site.manifest_missing", directory=directory)
                continue
            manifest = json.loads(decode_content(file_data))
            listed = manifest.setdefault("files", [])
            added = sorted(set(names) - set(listed))
            if not added:
                continue
            listed.extend(added)
            listed.sort()
            updated[manifest_path] = _dump_json(manifest)
        except (GitHubError, ValueError, AttributeError) as exc:
            log.error("site.manifest_update_failed", directory=directory, error=str(exc))
    return updated


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def upload_file(
    session: AsyncSession,
    github: GitHubApp,
    site: Site,
    user_id: uuid.UUID,
    file_path: str,
    content: str,
    message: Optional[str] = None,
    branch: Optional[str] = None,
    sha: Optional[str] = None,
) -> dict:
    """Commit one file directly through the contents API."""
    path = require_safe_path(file_path)
    data = decode_base64_content(content)
    owner, repo = site.owner_and_repo
    target_branch = branch or site.default_branch

    await github.verify_installation(site.github_installation_id)
    async with github.installation_client(site.github_installation_id) as client:
        file_sha = sha
        if not file_sha:
            existing = await client.get_contents(owner, repo, path, ref=target_branch)
            if isinstance(existing, dict):
                file_sha = existing.get("sha")

        response = await client.put_contents(
            owner,
            repo,
            path,
            message=message or f"Update {path}",
            content_b64=encode_content(data),
            branch=target_branch,
            sha=file_sha,
        )
        commit_sha = response["commit"]["sha"]
        log.info("site.file_uploaded", site_id=str(site.id), path=path, commit_sha=commit_sha)

        directory, _, name = path.rpartition("/")
        if directory:
            await add_to_manifest(client, owner, repo, target_branch, directory, name)

    await log_activity(
        session,
        site.id,
        user_id,
        "upload_asset",
        file_path=path,
        branch=target_branch,
        commit_sha=commit_sha,
    )
    return {
        "success": True,
        "commit_sha": commit_sha,
        "file_url": (response.get("content") or {}).get("html_url"),
    }


async def add_to_manifest(
    client: InstallationClient, owner: str, repo: str, branch: str, directory: str, name: str
) -> None:
    """Commit ``<directory>/manifest.json`` with ``name`` added; failures are logged only."""
    manifest_path = f"{directory}/{MANIFEST_FILE}"
    updated = await update_directory_manifests(client, owner, repo, branch, {directory: {name}})
    if manifest_path not in updated:
        return
    try:
        current = await client.get_contents(owner, repo, manifest_path, ref=branch)
        await client.put_contents(
            owner,
            repo,
            manifest_path,
            message=f"Update manifest: add {name}",
            content_b64=encode_content(updated[manifest_path]),
            branch=branch,
            sha=(current or {}).get("sha"),
        )
    except GitHubError as exc:
        log.error("site.manifest_update_failed", directory=directory, error=str(exc))


async def delete_file(
    session: AsyncSession,
    github: GitHubApp,
    site: Site,
    user_id: uuid.UUID,
    file_path: str,
    sha: str,
    message: Optional[str] = None,
) -> dict:
    path = require_safe_path(file_path)
    owner, repo = site.owner_and_repo
    branch = site.default_branch or "main"

    async with github.installation_client(site.github_installation_id) as client:
        response = await client.delete_contents(
            owner, repo, path, message=message or f"Delete {path}", sha=sha, branch=branch
        )
    commit_sha = response["commit"]["sha"]
    log.info("site.file_deleted", site_id=str(site.id), path=path, commit_sha=commit_sha)

    await log_activity(
        session,
        site.id,
        user_id,
        "delete_asset",
        file_path=path,
        branch=branch,
        commit_sha=commit_sha,
    )
    return {"success": True, "commit_sha": commit_sha}


async def create_site_assets_pr(
    session: AsyncSession,
    github: GitHubApp,
    site: Site,
    user_id: uuid.UUID,
    now_ms: Optional[int] = None,
) -> dict:
    """Open a PR adding the site-assets.json template on a fresh branch.

    Sequential and not retried: a failure after the branch is created leaves
    the branch behind without a PR.
    """
    owner, repo = site.owner_and_repo
    base = site.default_branch
    branch = f"add-site-assets-config-{now_ms if now_ms is not None else int(time.time() * 1000)}"

    async with github.installation_client(site.github_installation_id) as client:
        if await client.get_contents(owner, repo, SITE_ASSETS_FILE, ref=base) is not None:
            raise HTTPException(status_code=409, detail="site-assets.json already exists in this repository")

        base_sha = await client.get_branch_sha(owner, repo, base)
        await client.create_branch(owner, repo, branch, base_sha)
        log.info("site.branch_created", site_id=str(site.id), branch=branch)

        await client.put_contents(
            owner,
            repo,
            SITE_ASSETS_FILE,
            message=SITE_ASSETS_COMMIT_MESSAGE,
            content_b64=encode_content(_dump_json(SITE_ASSETS_TEMPLATE)),
            branch=branch,
        )
        pr = await client.create_pull(
            owner,
            repo,
            title=SITE_ASSETS_COMMIT_MESSAGE,
            head=branch,
            base=base,
            body=SITE_ASSETS_PR_BODY,
        )

    log.info("site.assets_pr_opened", site_id=str(site.id), pr_number=pr["number"])
    await log_activity(
        session,
        site.id,
        user_id,
        "create_site_assets_pr",
        pr_number=pr["number"],
        pr_url=pr["html_url"],
        branch=branch,
    )
    return {"success": True, "pr_url": pr["html_url"], "pr_number": pr["number"], "branch": branch}
