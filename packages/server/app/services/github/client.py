"""
Thin async REST client for the GitHub API (httpx), plus the repository
operations the site functions need.

Non-2xx responses raise GitHubAPIError carrying the upstream status and
message. Nothing is retried.
"""

from __future__ import annotations

import base64
from typing import Any, Optional

import httpx
import structlog

from app.services.github.exceptions import GitHubAPIError

log = structlog.get_logger()

GITHUB_API_VERSION = "2022-11-28"


class GitHubRestClient:
    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
                "User-Agent": "staticsnack",
            },
        )

    async def __aenter__(self) -> "GitHubRestClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"GitHub request failed: {exc}", status_code=502, method=method, path=path) from exc

        if response.status_code >= 400:
            raise GitHubAPIError(
                _error_message(response),
                status_code=response.status_code,
                method=method,
                path=path,
            )
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"GitHub API returned {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"GitHub API returned {response.status_code}"


class InstallationClient:
    """Repository operations authenticated as one App installation."""

    def __init__(self, rest: GitHubRestClient):
        self.rest = rest

    # -- git data API --------------------------------------------------------

    async def get_branch_sha(self, owner: str, repo: str, branch: str) -> str:
        ref = await self.rest.request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{branch}")
        return ref["object"]["sha"]

    async def create_branch(self, owner: str, repo: str, branch: str, sha: str) -> dict:
        return await self.rest.request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    async def update_branch(self, owner: str, repo: str, branch: str, sha: str) -> dict:
        return await self.rest.request(
            "PATCH",
            f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
            json={"sha": sha},
        )

    async def get_commit(self, owner: str, repo: str, sha: str) -> dict:
        return await self.rest.request("GET", f"/repos/{owner}/{repo}/git/commits/{sha}")

    async def get_tree(self, owner: str, repo: str, sha: str, recursive: bool = True) -> dict:
        params = {"recursive": "1"} if recursive else None
        return await self.rest.request("GET", f"/repos/{owner}/{repo}/git/trees/{sha}", params=params)

    async def get_blob(self, owner: str, repo: str, sha: str) -> dict:
        return await self.rest.request("GET", f"/repos/{owner}/{repo}/git/blobs/{sha}")

    async def create_blob(self, owner: str, repo: str, content_b64: str) -> str:
        blob = await self.rest.request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            json={"content": content_b64, "encoding": "base64"},
        )
        return blob["sha"]

    async def create_tree(self, owner: str, repo: str, base_tree: str, entries: list[dict]) -> str:
        tree = await self.rest.request(
            "POST",
            f"/repos/{owner}/{repo}/git/trees",
            json={"base_tree": base_tree, "tree": entries},
        )
        return tree["sha"]

    async def create_commit(self, owner: str, repo: str, message: str, tree: str, parents: list[str]) -> dict:
        return await self.rest.request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree, "parents": parents},
        )

    # -- contents API --------------------------------------------------------

    async def get_contents(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> Any:
        """File or directory listing at ``path``; None when it does not exist."""
        params = {"ref": ref} if ref else None
        try:
            return await self.rest.request("GET", f"/repos/{owner}/{repo}/contents/{path}", params=params)
        except GitHubAPIError as exc:
            if exc.not_found:
                return None
            raise

    async def put_contents(
        self,
        owner: str,
        repo: str,
        path: str,
        *,
        message: str,
        content_b64: str,
        branch: str,
        sha: Optional[str] = None,
    ) -> dict:
        body = {"message": message, "content": content_b64, "branch": branch}
        if sha:
            body["sha"] = sha
        return await self.rest.request("PUT", f"/repos/{owner}/{repo}/contents/{path}", json=body)

    async def delete_contents(
        self, owner: str, repo: str, path: str, *, message: str, sha: str, branch: str
    ) -> dict:
        return await self.rest.request(
            "DELETE",
            f"/repos/{owner}/{repo}/contents/{path}",
            json={"message": message, "sha": sha, "branch": branch},
        )

    # -- pulls / repositories / installation -------------------------------

    async def create_pull(self, owner: str, repo: str, *, title: str, head: str, base: str, body: str) -> dict:
        return await self.rest.request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "head": head, "base": base, "body": body},
        )

    async def generate_repository(
        self,
        template_owner: str,
        template_repo: str,
        *,
        owner: str,
        name: str,
        description: str,
        private: bool = False,
    ) -> dict:
        """New repository from a template repository (default branch only)."""
        return await self.rest.request(
            "POST",
            f"/repos/{template_owner}/{template_repo}/generate",
            json={
                "owner": owner,
                "name": name,
                "description": description,
                "include_all_branches": False,
                "private": private,
            },
        )

    async def list_installation_repositories(self, per_page: int = 100) -> list[dict]:
        repositories: list[dict] = []
        page = 1
        while True:
            data = await self.rest.request(
                "GET",
                "/installation/repositories",
                params={"per_page": per_page, "page": page},
            )
            batch = data.get("repositories", [])
            repositories.extend(batch)
            if len(batch) < per_page or len(repositories) >= data.get("total_count", 0):
                return repositories
            page += 1


def decode_content(file_data: dict) -> bytes:
    """Decode the base64 ``content`` of a contents-API file (embedded newlines allowed)."""
    return base64.b64decode("".join(file_data.get("content", "").split()))


def encode_content(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
