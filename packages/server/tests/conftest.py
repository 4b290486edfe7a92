"""
Shared fixtures for server tests.

The app runs against in-memory SQLite (aiosqlite); GitHub and calendar
upstreams are served by httpx.MockTransport handlers.
"""

import base64
import json
import os
import uuid
from datetime import timedelta

os.environ.setdefault("SS_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SS_AUTH_JWT_SECRET", "test-secret-that-is-long-enough-for-hs256")
os.environ.setdefault("SS_LOG_FORMAT", "text")
os.environ.setdefault("SS_LOG_LEVEL", "warning")

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.api.v1.calendar import get_calendar_transport
from app.core.auth import create_access_token
from app.core.database import get_session
from app.core.rate_limit import InMemoryRateLimiter, get_rate_limiter
from app.core.storage import LocalBlobStorage, get_storage
from app.main import app
from app.models.site import Site, SiteMember
from app.models.user import Profile, UserRole
from app.services import assets as asset_service
from app.services.github.app_auth import GitHubApp, get_github_app

GITHUB_API = "https://api.github.test"
INSTALLATION_ID = 42
REPO = "alice/portfolio"


# ---------------------------------------------------------------------------
# GitHub upstream
# ---------------------------------------------------------------------------


class FakeGitHub:
    """Canned GitHub REST responses keyed by (method, path); unknown routes 404."""

    def __init__(self, installation_id: int = INSTALLATION_ID):
        self.routes: dict[tuple[str, str], tuple[int, object]] = {}
        self.requests: list[httpx.Request] = []
        self.add("GET", f"/app/installations/{installation_id}", json={"id": installation_id})
        self.add(
            "POST",
            f"/app/installations/{installation_id}/access_tokens",
            status=201,
            json={"token": "ghs_installation_token"},
        )

    def add(self, method: str, path: str, status: int = 200, json=None) -> None:
        """``json`` may be a callable taking the request."""
        self.routes[(method, path)] = (status, json)

    def add_file(self, path: str, content: bytes, sha: str = "file-sha", repo: str = REPO) -> None:
        name = path.rsplit("/", 1)[-1]
        self.add(
            "GET",
            f"/repos/{repo}/contents/{path}",
            json={
                "type": "file",
                "name": name,
                "path": path,
                "sha": sha,
                "size": len(content),
                "content": base64.encodebytes(content).decode("ascii"),
                "encoding": "base64",
                "download_url": f"https://raw.example/{path}",
            },
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        status, body = route
        if callable(body):
            body = body(request)
        return httpx.Response(status, json=body if body is not None else {})

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def body(self, method: str, path: str, index: int = -1) -> dict:
        return json.loads(self.calls(method, path)[index].content)


@pytest.fixture(scope="session")
def rsa_private_key_pem() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def github_app(fake_github, rsa_private_key_pem) -> GitHubApp:
    return GitHubApp(
        app_id="12345",
        private_key=rsa_private_key_pem,
        api_url=GITHUB_API,
        transport=httpx.MockTransport(fake_github.handler),
    )


# ---------------------------------------------------------------------------
# Database, storage, limiter
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def storage(tmp_path) -> LocalBlobStorage:
    return LocalBlobStorage(tmp_path, "asset-versions")


@pytest.fixture
def limiter() -> InMemoryRateLimiter:
    return InMemoryRateLimiter(window_seconds=60)


@pytest.fixture
def storage_clock(monkeypatch):
    """Distinct, increasing epoch-ms values for staging keys."""
    ticks = iter(range(1_700_000_000_000, 1_800_000_000_000))
    original = asset_service.build_storage_key

    def _build(site_id, repo_path, now_ms=None):
        return original(site_id, repo_path, now_ms if now_ms is not None else next(ticks))

    monkeypatch.setattr(asset_service, "build_storage_key", _build)
    return _build


@pytest.fixture
def calendar_routes() -> dict:
    """Host-less path -> httpx.Response (or callable) for calendar upstreams."""
    return {}


@pytest.fixture
def calendar_requests() -> list:
    return []


@pytest.fixture
def calendar_transport(calendar_routes, calendar_requests) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        calendar_requests.append(request)
        route = calendar_routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, text="not found")
        return route(request) if callable(route) else route

    return httpx.MockTransport(handler)


@pytest.fixture
async def client(session_factory, storage, limiter, github_app, calendar_transport, storage_clock):
    async def _get_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_github_app] = lambda: github_app
    app.dependency_overrides[get_calendar_transport] = lambda: calendar_transport

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Identities and seed data
# ---------------------------------------------------------------------------


def auth_headers(user_id: uuid.UUID, email: str | None = None, expires_delta: timedelta | None = None) -> dict:
    token = create_access_token(user_id, email=email, expires_delta=expires_delta)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def manager_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def outsider_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def owner_headers(owner_id) -> dict:
    return auth_headers(owner_id, email="owner@example.dev")


@pytest.fixture
def manager_headers(manager_id) -> dict:
    return auth_headers(manager_id, email="manager@example.dev")


@pytest.fixture
def outsider_headers(outsider_id) -> dict:
    return auth_headers(outsider_id)


@pytest.fixture
async def site(session_factory, owner_id, manager_id) -> Site:
    """``alice/portfolio`` with an owner and a manager."""
    async with session_factory() as s:
        site = Site(
            name="Portfolio",
            repo_full_name=REPO,
            default_branch="main",
            github_installation_id=INSTALLATION_ID,
            created_by=owner_id,
        )
        s.add(site)
        await s.flush()
        s.add(SiteMember(site_id=site.id, user_id=owner_id, role="owner"))
        s.add(SiteMember(site_id=site.id, user_id=manager_id, role="manager"))
        s.add(Profile(id=owner_id, email="owner@example.dev", full_name="Site Owner"))
        await s.commit()
    return site


@pytest.fixture
async def admin_id(session_factory) -> uuid.UUID:
    user_id = uuid.uuid4()
    async with session_factory() as s:
        s.add(Profile(id=user_id, email="admin@example.dev", full_name="Platform Admin"))
        s.add(UserRole(user_id=user_id, role="admin"))
        await s.commit()
    return user_id


@pytest.fixture
def admin_headers(admin_id) -> dict:
    return auth_headers(admin_id, email="admin@example.dev")


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
