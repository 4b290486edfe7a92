"""
Integration tests for the template gallery.
"""

from __future__ import annotations

import uuid

import pytest
from sqlmodel import select

from app.models.activity import ActivityLog
from app.models.github_installation import GitHubInstallation
from app.models.site import Site, SiteMember

from conftest import INSTALLATION_ID

LIST = "/functions/v1/list-templates"
SUBMIT = "/functions/v1/submit-template"
UPDATE = "/functions/v1/update-template"
DELETE = "/functions/v1/delete-template"


async def _submit(client, headers, name, tags, repo="alice/minimal-blog"):
    resp = await client.post(
        SUBMIT,
        json={"name": name, "description": f"{name} description", "repo_full_name": repo, "tags": tags},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["template"]


class TestSubmitTemplate:
    @pytest.mark.asyncio
    async def test_submit_includes_profile(self, client, site, owner_id, owner_headers):
        template = await _submit(client, owner_headers, "  Blog  ", ["blog"])
        assert template["name"] == "Blog"
        assert template["submitted_by"] == str(owner_id)
        assert template["profiles"] == {"id": str(owner_id), "full_name": "Site Owner", "avatar_url": None}

    @pytest.mark.asyncio
    async def test_submit_without_profile(self, client, outsider_headers):
        template = await _submit(client, outsider_headers, "Docs", [])
        assert template["profiles"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("repo", ["not-a-repo", "alice/re po", "alice/repo/extra"])
    async def test_invalid_repo_name(self, client, outsider_headers, repo):
        resp = await client.post(
            SUBMIT,
            json={"name": "X", "description": "Y", "repo_full_name": repo},
            headers=outsider_headers,
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid repository format. Use: owner/repo-name"}

    @pytest.mark.asyncio
    async def test_requires_auth(self, client):
        resp = await client.post(SUBMIT, json={"name": "X", "description": "Y", "repo_full_name": "a/b"})
        assert resp.status_code == 401


class TestListTemplates:
    @pytest.mark.asyncio
    async def test_newest_first(self, client, outsider_headers):
        await _submit(client, outsider_headers, "First", ["blog"])
        await _submit(client, outsider_headers, "Second", ["shop"])
        resp = await client.get(LIST, headers=outsider_headers)
        assert resp.status_code == 200
        assert [t["name"] for t in resp.json()["templates"]] == ["Second", "First"]

    @pytest.mark.asyncio
    async def test_tag_overlap_filter(self, client, outsider_headers):
        await _submit(client, outsider_headers, "Blog", ["blog", "minimal"])
        await _submit(client, outsider_headers, "Shop", ["shop"])
        await _submit(client, outsider_headers, "Portfolio", ["minimal", "portfolio"])

        resp = await client.post(LIST, json={"tags": ["minimal", "nope"]}, headers=outsider_headers)
        assert [t["name"] for t in resp.json()["templates"]] == ["Portfolio", "Blog"]

        resp = await client.get(LIST, params={"tags": ["shop"]}, headers=outsider_headers)
        assert [t["name"] for t in resp.json()["templates"]] == ["Shop"]

    @pytest.mark.asyncio
    async def test_post_without_body(self, client, outsider_headers):
        await _submit(client, outsider_headers, "Blog", ["blog"])
        resp = await client.post(LIST, headers=outsider_headers)
        assert resp.status_code == 200
        assert len(resp.json()["templates"]) == 1


class TestAdminTemplateOperations:
    @pytest.mark.asyncio
    async def test_non_admin_rejected(self, client, outsider_headers):
        template = await _submit(client, outsider_headers, "Blog", [])
        resp = await client.post(UPDATE, json={"template_id": template["id"], "name": "New"}, headers=outsider_headers)
        assert resp.status_code == 403
        assert resp.json() == {"error": "Admin access required"}

        resp = await client.post(DELETE, json={"template_id": template["id"]}, headers=outsider_headers)
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_update(self, client, outsider_headers, admin_headers):
        template = await _submit(client, outsider_headers, "Blog", ["blog"])
        resp = await client.post(
            UPDATE,
            json={"template_id": template["id"], "name": "Better Blog", "tags": ["blog", "dark"]},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        updated = resp.json()["template"]
        assert updated["name"] == "Better Blog"
        assert updated["tags"] == ["blog", "dark"]
        assert updated["description"] == "Blog description"

    @pytest.mark.asyncio
    async def test_clear_preview_image(self, client, outsider_headers, admin_headers):
        resp = await client.post(
            SUBMIT,
            json={
                "name": "Blog",
                "description": "D",
                "repo_full_name": "a/b",
                "preview_image_url": "https://img.example/blog.png",
            },
            headers=outsider_headers,
        )
        template_id = resp.json()["template"]["id"]
        resp = await client.post(
            UPDATE, json={"template_id": template_id, "preview_image_url": None}, headers=admin_headers
        )
        assert resp.status_code == 200
        assert resp.json()["template"]["preview_image_url"] is None

    @pytest.mark.asyncio
    async def test_update_without_fields(self, client, outsider_headers, admin_headers):
        template = await _submit(client, outsider_headers, "Blog", [])
        resp = await client.post(UPDATE, json={"template_id": template["id"]}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json() == {"error": "No fields to update"}

    @pytest.mark.asyncio
    async def test_update_invalid_repo(self, client, outsider_headers, admin_headers):
        template = await _submit(client, outsider_headers, "Blog", [])
        resp = await client.post(
            UPDATE, json={"template_id": template["id"], "repo_full_name": "bad"}, headers=admin_headers
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_delete(self, client, outsider_headers, admin_headers):
        template = await _submit(client, outsider_headers, "Blog", [])
        resp = await client.post(DELETE, json={"template_id": template["id"]}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Template deleted successfully"}

        resp = await client.post(DELETE, json={"template_id": template["id"]}, headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json() == {"error": "Template not found"}

    @pytest.mark.asyncio
    async def test_update_missing(self, client, admin_headers):
        resp = await client.post(UPDATE, json={"template_id": str(uuid.uuid4()), "name": "X"}, headers=admin_headers)
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# create-site-from-template
# ---------------------------------------------------------------------------

FROM_TEMPLATE = "/functions/v1/create-site-from-template"
GENERATE = "/repos/alice/minimal-blog/generate"


async def _link_installation(session_factory, user_id, login="bob"):
    async with session_factory() as s:
        s.add(GitHubInstallation(installation_id=INSTALLATION_ID, user_id=user_id, account_login=login))
        await s.commit()


class TestCreateSiteFromTemplate:
    @pytest.mark.asyncio
    async def test_creates_repository_site_and_owner(
        self, client, session_factory, fake_github, outsider_id, outsider_headers
    ):
        template = await _submit(client, outsider_headers, "Blog", ["blog"])
        await _link_installation(session_factory, outsider_id)
        fake_github.add(
            "POST",
            GENERATE,
            status=201,
            json={
                "full_name": "bob/my-site",
                "default_branch": "trunk",
                "html_url": "https://github.com/bob/my-site",
            },
        )

        resp = await client.post(
            FROM_TEMPLATE,
            json={"template_id": template["id"], "new_repo_name": "my-site", "site_name": "My Site"},
            headers=outsider_headers,
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["repository"] == {"full_name": "bob/my-site", "html_url": "https://github.com/bob/my-site"}
        assert data["site"]["repo_full_name"] == "bob/my-site"
        assert data["site"]["default_branch"] == "trunk"
        assert data["site"]["github_installation_id"] == INSTALLATION_ID

        assert fake_github.body("POST", GENERATE) == {
            "owner": "bob",
            "name": "my-site",
            "description": "My Site - Created from Blog",
            "include_all_branches": False,
            "private": False,
        }

        async with session_factory() as s:
            member = await s.get(SiteMember, (uuid.UUID(data["site"]["id"]), outsider_id))
            assert member is not None and member.role == "owner"
            actions = (await s.execute(select(ActivityLog.action))).scalars().all()
            assert actions == ["create_site_from_template"]

    @pytest.mark.asyncio
    async def test_name_taken(self, client, session_factory, fake_github, outsider_id, outsider_headers):
        template = await _submit(client, outsider_headers, "Blog", [])
        await _link_installation(session_factory, outsider_id)
        fake_github.add("POST", GENERATE, status=422, json={"message": "Name already exists on this account"})

        resp = await client.post(
            FROM_TEMPLATE,
            json={"template_id": template["id"], "new_repo_name": "taken", "site_name": "Taken"},
            headers=outsider_headers,
        )
        assert resp.status_code == 422
        assert resp.json() == {"error": "Repository name already exists or is invalid"}
        async with session_factory() as s:
            assert (await s.execute(select(Site))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_missing_permission_explained(
        self, client, session_factory, fake_github, outsider_id, outsider_headers
    ):
        template = await _submit(client, outsider_headers, "Blog", [])
        await _link_installation(session_factory, outsider_id)
        fake_github.add("POST", GENERATE, status=403, json={"message": "Resource not accessible by integration"})

        resp = await client.post(
            FROM_TEMPLATE,
            json={"template_id": template["id"], "new_repo_name": "x", "site_name": "X"},
            headers=outsider_headers,
        )
        assert resp.status_code == 403
        assert resp.json()["error"].startswith("Permission denied: Resource not accessible by integration.")

    @pytest.mark.asyncio
    async def test_requires_installation(self, client, outsider_headers):
        template = await _submit(client, outsider_headers, "Blog", [])
        resp = await client.post(
            FROM_TEMPLATE,
            json={"template_id": template["id"], "new_repo_name": "x", "site_name": "X"},
            headers=outsider_headers,
        )
        assert resp.status_code == 404
        assert resp.json() == {"error": "No GitHub installation found. Please connect your GitHub account first."}

    @pytest.mark.asyncio
    async def test_unknown_template(self, client, outsider_headers):
        resp = await client.post(
            FROM_TEMPLATE,
            json={"template_id": str(uuid.uuid4()), "new_repo_name": "x", "site_name": "X"},
            headers=outsider_headers,
        )
        assert resp.status_code == 404
        assert resp.json() == {"error": "Template not found"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["my site", "a/b", "bad!name"])
    async def test_invalid_repo_name(self, client, outsider_headers, name):
        resp = await client.post(
            FROM_TEMPLATE,
            json={"template_id": str(uuid.uuid4()), "new_repo_name": name, "site_name": "X"},
            headers=outsider_headers,
        )
        assert resp.status_code == 400
        assert "Invalid repository name" in resp.json()["error"]
