"""
Input guards applied before client data touches storage or a repository.

``sanitize_path`` is a textual filter, not a canonicalization: it rejects any
``..`` occurrence outright, plus the percent-encoded and backslash forms of
dots and separators, then strips leading slashes.
"""

from __future__ import annotations

import base64
import binascii
import re

from fastapi import HTTPException

from app.core.config import get_settings
from staticsnack_shared.schemas.templates import REPO_FULL_NAME_PATTERN

_ENCODED_TRAVERSAL = re.compile(r"%(2e|2f|5c|00)", re.IGNORECASE)
_REPO_FULL_NAME = re.compile(REPO_FULL_NAME_PATTERN)


class InvalidPathError(ValueError):
    pass


def sanitize_path(path: str) -> str:
    """Return ``path`` with leading slashes removed, or raise InvalidPathError."""
    if not path or not path.strip():
        raise InvalidPathError("Invalid path: path is empty")
    if ".." in path:
        raise InvalidPathError("Invalid path: path traversal detected")
    if "\\" in path or "\x00" in path or _ENCODED_TRAVERSAL.search(path):
        raise InvalidPathError("Invalid path: path traversal detected")

    sanitized = path.lstrip("/")
    if not sanitized:
        raise InvalidPathError("Invalid path: path is empty")
    return sanitized


def require_safe_path(path: str) -> str:
    """``sanitize_path`` for request handlers: failures become a 400."""
    try:
        return sanitize_path(path)
    except InvalidPathError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def decode_base64_content(content: str, max_size_bytes: int | None = None) -> bytes:
    """Decode a base64 body and enforce the upload size ceiling (inclusive)."""
    if max_size_bytes is None:
        max_size_bytes = get_settings().max_file_size_bytes

    compact = "".join(content.split())
    if len(compact) % 4 == 1:
        raise HTTPException(status_code=400, detail="Invalid base64 encoding")
    # Unpadded input decodes the same as padded.
    compact += "=" * (-len(compact) % 4)
    try:
        data = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Invalid base64 encoding")

    if len(data) > max_size_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size is {_format_size(max_size_bytes)}",
        )
    return data


def _format_size(size_bytes: int) -> str:
    mb = size_bytes / 1024 / 1024
    if mb >= 1:
        return f"{mb:g}MB"
    return f"{size_bytes / 1024:g}KB"


def validate_repo_full_name(repo_full_name: str) -> tuple[str, str]:
    """Split ``owner/repo``; raise 400 when the name is malformed."""
    if not repo_full_name or not _REPO_FULL_NAME.match(repo_full_name):
        raise HTTPException(
            status_code=400,
            detail="Invalid repository format. Use: owner/repo-name",
        )
    owner, repo = repo_full_name.split("/", 1)
    return owner, repo
