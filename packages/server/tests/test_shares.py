"""
Integration tests for asset shares and guest uploads.

Tests cover:
- Share creation (membership, defaults, validation, extension normalization)
- Guest upload through a token: commit, manifest upkeep, upload counter
- Expired, exhausted and unknown shares; filename and extension guards
"""

from __future__ import annotations

import base64
import json
from datetime import timedelta

import pytest
from sqlmodel import select

from app.models.activity import ActivityLog
from app.models.asset_share import AssetShare
from app.models.base import as_utc, utcnow
from app.services.shares import generate_share_token

from conftest import INSTALLATION_ID, REPO, b64

R = f"/repos/{REPO}"
CREATE = "/functions/v1/create-asset-share"
UPLOAD = "/functions/v1/guest-upload-asset"


async def _share(session_factory, site, owner_id, **overrides) -> AssetShare:
    fields = {
        "site_id": site.id,
        "asset_path": "images/gallery",
        "token": generate_share_token(),
        "created_by": owner_id,
        "expires_at": utcnow() + timedelta(hours=24),
    }
    fields.update(overrides)
    async with session_factory() as s:
        share = AssetShare(**fields)
        s.add(share)
        await s.commit()
        await s.refresh(share)
    return share


async def _reload(session_factory, share_id) -> AssetShare:
    async with session_factory() as s:
        return await s.get(AssetShare, share_id)


class TestCreateAssetShare:
    @pytest.mark.asyncio
    async def test_defaults(self, client, site, manager_id, manager_headers):
        resp = await client.post(
            CREATE,
            json={"site_id": str(site.id), "asset_path": "/images/gallery/"},
            headers=manager_headers,
        )
        assert resp.status_code == 200, resp.text
        share = resp.json()["share"]
        assert share["asset_path"] == "images/gallery"
        assert len(share["token"]) == 64
        assert share["created_by"] == str(manager_id)
        assert share["upload_count"] == 0
        assert share["max_uploads"] is None

    @pytest.mark.asyncio
    async def test_expiry_and_extensions(self, client, session_factory, site, owner_headers):
        resp = await client.post(
            CREATE,
            json={
                "site_id": str(site.id),
                "asset_path": "docs",
                "expires_in_hours": 2,
                "max_uploads": 5,
                "allowed_extensions": ["PDF", ".jpg"],
                "description": "Board minutes",
            },
            headers=owner_headers,
        )
        share = resp.json()["share"]
        assert share["allowed_extensions"] == [".pdf", ".jpg"]
        assert share["max_uploads"] == 5

        stored = await _reload(session_factory, share["id"])
        remaining = as_utc(stored.expires_at) - utcnow()
        assert timedelta(hours=1, minutes=59) < remaining <= timedelta(hours=2)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"expires_in_hours": 0},
            {"expires_in_hours": 8761},
            {"expires_in_hours": 1.5},
            {"max_uploads": 1001},
            {"allowed_extensions": ["tar.gz"]},
            {"allowed_extensions": ["jpg"] * 51},
            {"description": "x" * 501},
            {"asset_path": "../outside"},
        ],
    )
    async def test_invalid_options(self, client, site, owner_headers, overrides):
        body = {"site_id": str(site.id), "asset_path": "images", **overrides}
        resp = await client.post(CREATE, json=body, headers=owner_headers)
        assert resp.status_code == 400
        assert "error" in resp.json()

    @pytest.mark.asyncio
    async def test_non_member(self, client, site, outsider_headers):
        resp = await client.post(
            CREATE, json={"site_id": str(site.id), "asset_path": "images"}, headers=outsider_headers
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_requires_auth(self, client, site):
        resp = await client.post(CREATE, json={"site_id": str(site.id), "asset_path": "images"})
        assert resp.status_code == 401


class TestGuestUpload:
    def _commit_routes(self, fake_github, path="images/gallery/cat.jpg"):
        fake_github.add("PUT", f"{R}/contents/{path}", status=201, json={"commit": {"sha": "guest-commit"}})

    @pytest.mark.asyncio
    async def test_upload_commits_and_counts(self, client, session_factory, fake_github, site, owner_id):
        share = await _share(session_factory, site, owner_id, max_uploads=2)
        self._commit_routes(fake_github)
        fake_github.add_file("images/gallery/manifest.json", json.dumps({"files": ["dog.jpg"]}).encode(), sha="m-sha")
        fake_github.add(
            "PUT", f"{R}/contents/images/gallery/manifest.json", json={"commit": {"sha": "manifest-commit"}}
        )

        resp = await client.post(
            UPLOAD, json={"token": share.token, "file_name": "cat.jpg", "file_content": b64(b"meow")}
        )
        assert resp.status_code == 200, resp.text
        assert resp.json() == {"success": True, "file_path": "images/gallery/cat.jpg", "commit_sha": "guest-commit"}

        put = fake_github.body("PUT", f"{R}/contents/images/gallery/cat.jpg")
        assert put["message"] == "Guest upload: cat.jpg"
        assert put["branch"] == "main"
        assert base64.b64decode(put["content"]) == b"meow"
        assert "sha" not in put

        manifest = fake_github.body("PUT", f"{R}/contents/images/gallery/manifest.json")
        assert json.loads(base64.b64decode(manifest["content"])) == {"files": ["cat.jpg", "dog.jpg"]}

        assert (await _reload(session_factory, share.id)).upload_count == 1
        async with session_factory() as s:
            [entry] = (await s.execute(select(ActivityLog))).scalars().all()
        assert entry.action == "guest_upload"
        assert entry.user_id is None
        assert entry.details["share_id"] == str(share.id)

    @pytest.mark.asyncio
    async def test_existing_file_is_replaced(self, client, session_factory, fake_github, site, owner_id):
        share = await _share(session_factory, site, owner_id)
        fake_github.add_file("images/gallery/cat.jpg", b"old", sha="old-sha")
        self._commit_routes(fake_github)

        resp = await client.post(
            UPLOAD, json={"token": share.token, "file_name": "cat.jpg", "file_content": b64(b"new")}
        )
        assert resp.status_code == 200
        assert fake_github.body("PUT", f"{R}/contents/images/gallery/cat.jpg")["sha"] == "old-sha"

    @pytest.mark.asyncio
    async def test_expired(self, client, session_factory, fake_github, site, owner_id):
        share = await _share(session_factory, site, owner_id, expires_at=utcnow() - timedelta(minutes=1))
        resp = await client.post(UPLOAD, json={"token": share.token, "file_name": "a.jpg", "file_content": "YQ=="})
        assert resp.status_code == 403
        assert resp.json() == {"error": "Share link has expired"}
        assert fake_github.requests == []

    @pytest.mark.asyncio
    async def test_upload_limit(self, client, session_factory, fake_github, site, owner_id):
        share = await _share(session_factory, site, owner_id, max_uploads=3, upload_count=3)
        resp = await client.post(UPLOAD, json={"token": share.token, "file_name": "a.jpg", "file_content": "YQ=="})
        assert resp.status_code == 403
        assert resp.json() == {"error": "Upload limit reached"}

    @pytest.mark.asyncio
    async def test_unknown_token(self, client, site):
        resp = await client.post(
            UPLOAD, json={"token": generate_share_token(), "file_name": "a.jpg", "file_content": "YQ=="}
        )
        assert resp.status_code == 404
        assert resp.json() == {"error": "Invalid share token"}

    @pytest.mark.asyncio
    async def test_malformed_token(self, client):
        resp = await client.post(UPLOAD, json={"token": "abc", "file_name": "a.jpg", "file_content": "YQ=="})
        assert resp.status_code == 400
        assert resp.json() == {"error": "token: Invalid token format"}

    @pytest.mark.asyncio
    async def test_extension_not_allowed(self, client, session_factory, site, owner_id):
        share = await _share(session_factory, site, owner_id, allowed_extensions=[".jpg", ".png"])
        resp = await client.post(UPLOAD, json={"token": share.token, "file_name": "run.exe", "file_content": "YQ=="})
        assert resp.status_code == 400
        assert resp.json() == {"error": "File type .exe not allowed. Allowed types: .jpg, .png"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "file_name, message",
        [
            (".env", "Hidden files are not allowed"),
            ("a<b>.jpg", "Filename contains invalid characters"),
            ("../up.jpg", "Filename contains invalid characters"),
            ("x" * 256, "Filename too long. Maximum 255 characters"),
        ],
    )
    async def test_bad_filenames(self, client, session_factory, site, owner_id, file_name, message):
        share = await _share(session_factory, site, owner_id)
        resp = await client.post(UPLOAD, json={"token": share.token, "file_name": file_name, "file_content": "YQ=="})
        assert resp.status_code == 400
        assert resp.json() == {"error": message}
        assert (await _reload(session_factory, share.id)).upload_count == 0

    @pytest.mark.asyncio
    async def test_uninstalled_app(self, client, session_factory, fake_github, site, owner_id):
        del fake_github.routes[("GET", f"/app/installations/{INSTALLATION_ID}")]
        share = await _share(session_factory, site, owner_id)
        resp = await client.post(UPLOAD, json={"token": share.token, "file_name": "a.jpg", "file_content": "YQ=="})
        assert resp.status_code == 404
        assert "no longer exists" in resp.json()["error"]
        assert (await _reload(session_factory, share.id)).upload_count == 0


class TestGuestUploadRateLimit:
    @pytest.mark.asyncio
    async def test_limit_per_token(self, client, monkeypatch, session_factory, fake_github, site, owner_id):
        monkeypatch.setattr("app.api.v1.shares.GUEST_UPLOAD_LIMIT", 1)
        share = await _share(session_factory, site, owner_id)
        fake_github.add("PUT", f"{R}/contents/images/gallery/a.jpg", json={"commit": {"sha": "c1"}})
        body = {"token": share.token, "file_name": "a.jpg", "file_content": "YQ=="}

        assert (await client.post(UPLOAD, json=body)).status_code == 200
        resp = await client.post(UPLOAD, json=body)
        assert resp.status_code == 429
        assert resp.json() == {"error": "Too many requests. Please try again later."}
        assert (await _reload(session_factory, share.id)).upload_count == 1
