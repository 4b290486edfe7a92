"""
GitHub App credentials: private-key normalization, App JWTs and
installation access tokens.

Installation tokens are minted per request and never cached.
"""

from __future__ import annotations

import re
import time
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator, Optional

import httpx
import jwt
import structlog
from fastapi import HTTPException

from app.core.config import get_settings
from app.services.github.client import GitHubRestClient, InstallationClient
from app.services.github.exceptions import GitHubAPIError, GitHubConfigurationError

log = structlog.get_logger()

JWT_BACKDATE_SECONDS = 60
JWT_TTL_SECONDS = 600

UNINSTALLED_MESSAGE = (
    "GitHub App installation no longer exists. The app may have been uninstalled. "
    "Please reconnect your GitHub account and update the site settings."
)

_PEM_HEADER = re.compile(r"(-----BEGIN (?:RSA )?PRIVATE KEY-----)\n*")
_PEM_FOOTER = re.compile(r"\n*(-----END (?:RSA )?PRIVATE KEY-----)")


def normalize_pem_key(pem: str) -> str:
    """Repair a PEM private key pasted into an environment variable.

    Strips wrapping quotes, unescapes literal ``\\n`` / ``\\r\\n``, puts the
    PKCS#8 or PKCS#1 header and footer on their own lines and guarantees a
    single trailing newline. Normalizing an already-normalized key is a no-op.
    """
    s = (pem or "").strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1]

    s = s.replace("\\r\\n", "\n").replace("\r\n", "\n").replace("\\n", "\n").replace("\r", "")
    s = _PEM_HEADER.sub(r"\1\n", s, count=1)
    s = _PEM_FOOTER.sub(r"\n\1", s, count=1)
    s = s.strip() + "\n"

    if "-----BEGIN" not in s or "-----END" not in s:
        raise GitHubConfigurationError("GitHub App private key is not a valid PEM key")
    return s


def create_app_jwt(app_id: str, private_key: str, now: Optional[float] = None) -> str:
    """RS256 App JWT, backdated for clock drift, valid for ten minutes."""
    issued = int(now if now is not None else time.time())
    payload = {
        "iat": issued - JWT_BACKDATE_SECONDS,
        "exp": issued + JWT_TTL_SECONDS,
        "iss": str(app_id),
    }
    try:
        return jwt.encode(payload, private_key, algorithm="RS256")
    except (ValueError, TypeError, jwt.PyJWTError) as exc:
        raise GitHubConfigurationError(f"GitHub App private key could not sign a JWT: {exc}") from exc


class GitHubApp:
    """One GitHub App identity; hands out installation-scoped clients."""

    def __init__(
        self,
        app_id: str,
        private_key: str,
        api_url: str = "https://api.github.com",
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not app_id:
            raise GitHubConfigurationError("GitHub App not configured")
        self.app_id = str(app_id)
        self.private_key = normalize_pem_key(private_key)
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _rest(self, token: str) -> GitHubRestClient:
        return GitHubRestClient(
            token=token,
            base_url=self.api_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def get_installation(self, installation_id: int) -> dict:
        async with self._rest(create_app_jwt(self.app_id, self.private_key)) as rest:
            return await rest.request("GET", f"/app/installations/{installation_id}")

    async def verify_installation(self, installation_id: Optional[int]) -> dict:
        """Look up the installation; a missing one becomes a 404 with reconnect guidance."""
        if not installation_id:
            raise HTTPException(status_code=400, detail="Site is not connected to a GitHub App installation")
        try:
            return await self.get_installation(installation_id)
        except GitHubAPIError as exc:
            if exc.not_found:
                log.warning("github.installation_missing", installation_id=installation_id)
                raise HTTPException(status_code=404, detail=UNINSTALLED_MESSAGE)
            raise

    async def create_installation_token(self, installation_id: int) -> str:
        async with self._rest(create_app_jwt(self.app_id, self.private_key)) as rest:
            data = await rest.request("POST", f"/app/installations/{installation_id}/access_tokens")
        log.debug("github.installation_token_issued", installation_id=installation_id)
        return data["token"]

    @asynccontextmanager
    async def installation_client(self, installation_id: int) -> AsyncIterator[InstallationClient]:
        token = await self.create_installation_token(installation_id)
        async with self._rest(token) as rest:
            yield InstallationClient(rest)


@lru_cache
def _default_app() -> GitHubApp:
    settings = get_settings()
    return GitHubApp(
        app_id=settings.github_app_id,
        private_key=settings.github_app_private_key,
        api_url=settings.github_api_url,
        timeout=settings.github_request_timeout_seconds,
    )


def get_github_app() -> GitHubApp:
    """FastAPI dependency returning the configured GitHub App."""
    return _default_app()
