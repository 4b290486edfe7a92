"""
Health check and routing tests.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from app.core.storage import get_storage
from app.main import app


@pytest.fixture
async def bare_client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_health_check(bare_client: AsyncClient):
    """Health endpoint should return status ok."""
    response = await bare_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_ready_check(bare_client: AsyncClient):
    """Ready endpoint answers once the database does."""
    response = await bare_client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


@pytest.mark.asyncio
async def test_functions_root(bare_client: AsyncClient):
    """Functions root lists every operation name."""
    response = await bare_client.get("/functions/v1/")
    assert response.status_code == 200
    data = response.json()
    assert data["api"] == "functions/v1"
    for name in [
        "upload-asset-to-batch",
        "commit-batch-changes",
        "download-site-files",
        "create-site-assets-pr",
        "accept-invitation",
        "list-templates",
        "sync-external-calendar",
        "github-installation-details",
        "create-site-from-template",
        "create-asset-share",
        "guest-upload-asset",
    ]:
        assert name in data["functions"]


@pytest.mark.asyncio
async def test_security_headers(bare_client: AsyncClient):
    response = await bare_client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


@pytest.mark.asyncio
async def test_cors_preflight(bare_client: AsyncClient):
    response = await bare_client.options(
        "/functions/v1/upload-asset-to-batch",
        headers={
            "Origin": "https://app.example.dev",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )
    assert response.status_code == 200
    assert "POST" in response.headers["access-control-allow-methods"]


@pytest.mark.asyncio
async def test_errors_use_error_envelope(bare_client: AsyncClient):
    response = await bare_client.post("/functions/v1/list-pending-changes", json={})
    assert response.status_code == 401
    assert response.json() == {"error": "No authorization header"}


@pytest.mark.asyncio
async def test_unhandled_error_keeps_cors_headers(client, site, owner_headers):
    def _broken_storage():
        raise RuntimeError("storage misconfigured")

    app.dependency_overrides[get_storage] = _broken_storage
    response = await client.post(
        "/functions/v1/upload-asset-to-batch",
        json={"site_id": str(site.id), "file_path": "a.txt", "content": "YQ=="},
        headers={**owner_headers, "Origin": "https://app.example.dev"},
    )
    assert response.status_code == 500
    assert response.json() == {"error": "storage misconfigured"}
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.asyncio
async def test_openapi_documents_error_envelope(bare_client: AsyncClient):
    schema = (await bare_client.get("/openapi.json")).json()
    responses = schema["paths"]["/functions/v1/upload-asset-to-batch"]["post"]["responses"]
    for status in ("400", "401", "403", "429"):
        assert responses[status]["content"]["application/json"]["schema"] == {
            "$ref": "#/components/schemas/ErrorResponse"
        }
    assert schema["components"]["schemas"]["ErrorResponse"]["required"] == ["error"]
