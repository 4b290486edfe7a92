"""
Integration tests for GitHub installation lookups, site reconnects and
admin user search.
"""

from __future__ import annotations

import uuid

import pytest

from app.models.github_installation import GitHubInstallation
from app.models.site import Site
from app.models.user import Profile

from conftest import INSTALLATION_ID


def _repositories_route(fake_github, repos=None):
    fake_github.add(
        "GET",
        "/installation/repositories",
        json={
            "total_count": 2,
            "repositories": repos
            or [
                {"name": "portfolio", "full_name": "alice/portfolio", "default_branch": "main", "private": False},
                {"name": "notes", "full_name": "alice/notes", "default_branch": None, "private": True},
            ],
        },
    )


async def _link_installation(session_factory, user_id, installation_id=INSTALLATION_ID):
    async with session_factory() as s:
        s.add(
            GitHubInstallation(
                installation_id=installation_id,
                user_id=user_id,
                account_login="alice",
                account_type="User",
            )
        )
        await s.commit()


class TestInstallationDetails:
    @pytest.mark.asyncio
    async def test_repositories(self, client, fake_github, outsider_headers):
        _repositories_route(fake_github)
        resp = await client.post(
            "/functions/v1/github-installation-details",
            json={"installation_id": INSTALLATION_ID},
            headers=outsider_headers,
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "repositories": [
                {"name": "portfolio", "full_name": "alice/portfolio", "default_branch": "main", "private": False},
                {"name": "notes", "full_name": "alice/notes", "default_branch": "main", "private": True},
            ]
        }

    @pytest.mark.asyncio
    async def test_unknown_installation(self, client, outsider_headers):
        resp = await client.post(
            "/functions/v1/github-installation-details",
            json={"installation_id": 999},
            headers=outsider_headers,
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_installation_id_required(self, client, outsider_headers):
        resp = await client.post("/functions/v1/github-installation-details", json={}, headers=outsider_headers)
        assert resp.status_code == 400


class TestListInstallations:
    @pytest.mark.asyncio
    async def test_lists_callers_installations(self, client, session_factory, fake_github, owner_id, owner_headers):
        _repositories_route(fake_github)
        await _link_installation(session_factory, owner_id)

        resp = await client.get("/functions/v1/list-github-installations", headers=owner_headers)
        assert resp.status_code == 200
        [item] = resp.json()["installations"]
        assert item["id"] == INSTALLATION_ID
        assert item["account"] == {"login": "alice", "type": "User", "avatar_url": None}
        assert item["repository_count"] == 2
        assert item.get("error") is None

    @pytest.mark.asyncio
    async def test_failing_installation_reported(self, client, session_factory, owner_id, owner_headers):
        await _link_installation(session_factory, owner_id, installation_id=777)
        resp = await client.post("/functions/v1/list-github-installations", headers=owner_headers)
        [item] = resp.json()["installations"]
        assert item["error"] == "Failed to fetch repositories"
        assert item["repositories"] == []

    @pytest.mark.asyncio
    async def test_none_linked(self, client, outsider_headers):
        resp = await client.get("/functions/v1/list-github-installations", headers=outsider_headers)
        assert resp.json() == {"installations": []}


class TestReconnectSite:
    @pytest.mark.asyncio
    async def test_reconnects_to_new_installation(self, client, session_factory, site, owner_id, owner_headers):
        await _link_installation(session_factory, owner_id, installation_id=4242)
        resp = await client.post("/functions/v1/reconnect-site-github", json={"site_id": str(site.id)}, headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "message": "Site reconnected to GitHub successfully",
            "installation_id": 4242,
        }
        async with session_factory() as s:
            assert (await s.get(Site, site.id)).github_installation_id == 4242

    @pytest.mark.asyncio
    async def test_already_connected(self, client, session_factory, site, owner_id, manager_headers):
        await _link_installation(session_factory, owner_id)
        resp = await client.post("/functions/v1/reconnect-site-github", json={"site_id": str(site.id)}, headers=manager_headers)
        assert resp.json()["message"] == "Site is already connected to GitHub"

    @pytest.mark.asyncio
    async def test_no_installation(self, client, site, owner_headers):
        resp = await client.post("/functions/v1/reconnect-site-github", json={"site_id": str(site.id)}, headers=owner_headers)
        assert resp.status_code == 404
        assert resp.json() == {"error": "No GitHub installation found. Please connect your GitHub account first."}


class TestSearchUsers:
    @pytest.fixture
    async def profiles(self, session_factory):
        ids = [uuid.uuid4() for _ in range(3)]
        async with session_factory() as s:
            for user_id, email in zip(ids, ["Carol@Example.dev", "dave@example.dev", "erin@other.dev"]):
                s.add(Profile(id=user_id, email=email))
            await s.commit()
        return ids

    @pytest.mark.asyncio
    async def test_query_is_case_insensitive_substring(self, client, profiles, admin_headers):
        resp = await client.post("/functions/v1/search-users", json={"query": "EXAMPLE"}, headers=admin_headers)
        assert resp.status_code == 200
        emails = [u["email"] for u in resp.json()["users"]]
        assert "Carol@Example.dev" in emails and "dave@example.dev" in emails
        assert "erin@other.dev" not in emails

    @pytest.mark.asyncio
    async def test_ids_take_precedence(self, client, profiles, admin_headers):
        resp = await client.post(
            "/functions/v1/search-users",
            json={"query": "example", "userIds": [str(profiles[2])]},
            headers=admin_headers,
        )
        assert resp.json()["users"] == [{"id": str(profiles[2]), "email": "erin@other.dev"}]

    @pytest.mark.asyncio
    async def test_limit(self, client, profiles, admin_headers):
        resp = await client.post("/functions/v1/search-users", json={"query": "@", "limit": 1}, headers=admin_headers)
        assert len(resp.json()["users"]) == 1

    @pytest.mark.asyncio
    async def test_no_criteria(self, client, admin_headers):
        resp = await client.post("/functions/v1/search-users", json={}, headers=admin_headers)
        assert resp.json() == {"users": []}

    @pytest.mark.asyncio
    async def test_admin_only(self, client, outsider_headers):
        resp = await client.post("/functions/v1/search-users", json={"query": "a"}, headers=outsider_headers)
        assert resp.status_code == 403
        assert resp.json() == {"error": "Admin access required"}
