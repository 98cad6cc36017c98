# src/aegis/tests/conftest.py
from __future__ import annotations

import os
import sys
import logging
import uuid
from typing import Any, Dict, List, Optional

import pytest
import httpx
from httpx import AsyncClient, ASGITransport

# before aegis.core.config builds the module-level settings
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("DEV_ROUTES_ENABLED", "1")

from aegis.core.config import Settings  # noqa: E402
from aegis.db.models import Base, User, UserRole, UserStatus  # noqa: E402
from aegis.db.session import build_engine, build_sessionmaker  # noqa: E402
from aegis.main import create_app  # noqa: E402
from aegis.services import google_oauth  # noqa: E402
from aegis.services.cloudinary import CloudinaryClient, get_cloudinary  # noqa: E402
from aegis.services.google_oauth import GoogleOAuthClient, get_google_client  # noqa: E402
from aegis.sessions import USER_ID_KEY  # noqa: E402


# =========================
# Logging -> stdout
# =========================
@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    root = logging.getLogger()
    if not any(getattr(h, "stream", None) is sys.stdout for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(os.getenv("TEST_LOG_LEVEL", "INFO").upper())


# Make anyio run on asyncio (so our async fixtures work everywhere)
@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


# ==============================================================
# Fake collaborators on httpx.MockTransport
# ==============================================================
class FakeGoogle:
    """Answers the token and userinfo endpoints from whatever the test set."""

    def __init__(self):
        self.userinfo: Dict[str, Any] = {
            "sub": "google-sub-1",
            "email": "steve@students.iitmandi.ac.in",
            "given_name": "Steve",
            "family_name": "Rogers",
            "picture": "https://lh3.googleusercontent.com/a/steve",
        }
        self.token_status = 200
        self.calls: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if str(request.url).startswith(google_oauth.TOKEN_URL):
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": "ya29.test", "token_type": "Bearer"})
        if str(request.url).startswith(google_oauth.USERINFO_URL):
            return httpx.Response(200, json=self.userinfo)
        return httpx.Response(404)


class FakeCloudinary:
    def __init__(self):
        self.uploads: List[httpx.Request] = []
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.uploads.append(request)
        if self.fail:
            return httpx.Response(500, text="boom")
        n = len(self.uploads)
        return httpx.Response(200, json={"secure_url": f"https://res.cloudinary.com/demo/image/upload/{n}.jpg"})


@pytest.fixture
def fake_google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def fake_cloudinary() -> FakeCloudinary:
    return FakeCloudinary()


# ==============================================================
# App / DB
# ==============================================================
@pytest.fixture
def cfg(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        TESTING=True,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'aegis.db'}",
        SESSION_BACKEND="memory",
        CORS_ORIGINS="http://localhost:4173,https://campus.example",
        GOOGLE_CLIENT_ID="test-client",
        GOOGLE_CLIENT_SECRET="test-secret",
        GOOGLE_REDIRECT_URI="http://testserver/auth/google/callback",
        CLOUDINARY_CLOUD_NAME="demo",
        CLOUDINARY_API_KEY="key",
        CLOUDINARY_API_SECRET="secret",
        DEV_ROUTES_ENABLED=True,
    )


@pytest.fixture
async def engine(cfg):
    engine = build_engine(cfg)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def app(cfg, engine, fake_google, fake_cloudinary):
    # ASGITransport does not run the lifespan, so wire what it would have set
    app = create_app(cfg)
    app.state.engine = engine
    app.state.async_sessionmaker = build_sessionmaker(engine)

    google_http = httpx.AsyncClient(transport=httpx.MockTransport(fake_google.handler))
    cloud_http = httpx.AsyncClient(transport=httpx.MockTransport(fake_cloudinary.handler))
    app.dependency_overrides[get_google_client] = lambda: GoogleOAuthClient(cfg, http=google_http)
    app.dependency_overrides[get_cloudinary] = lambda: CloudinaryClient(cfg, http=cloud_http)
    yield app

    app.dependency_overrides.clear()
    await google_http.aclose()
    await cloud_http.aclose()


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def sessionmaker(app):
    return app.state.async_sessionmaker


@pytest.fixture
def make_user(sessionmaker):
    async def _make(
        role: UserRole = UserRole.STUDENT,
        status: UserStatus = UserStatus.ACTIVE,
        email: Optional[str] = None,
        **extra,
    ) -> User:
        domain = "students.iitmandi.ac.in" if role == UserRole.STUDENT else "iitmandi.ac.in"
        extra.setdefault("google_id", uuid.uuid4().hex)
        async with sessionmaker() as s:
            user = User(
                email=email or f"{role.value}-{uuid.uuid4().hex[:8]}@{domain}",
                role=role,
                status=status,
                first_name="Test",
                last_name=role.value.title(),
                **extra,
            )
            s.add(user)
            await s.commit()
            await s.refresh(user)
            return user

    return _make


@pytest.fixture
def login(app, client):
    """Put a fresh session for ``user`` in the store and present its cookie."""

    async def _login(user: User) -> str:
        sid = await app.state.session_store.create({USER_ID_KEY: str(user.id)})
        client.cookies.clear()
        client.cookies.set(app.state.settings.SESSION_COOKIE_NAME, sid)
        return sid

    return _login
