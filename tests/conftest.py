# Pytest fixtures: a gateway app wired to a fake database, a fake clock and a
# small set of route collaborators, plus a TestClient factory.

import asyncio

import pytest
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

from kwacha_gateway.app import create_app
from kwacha_gateway.collaborators import Collaborators
from kwacha_gateway.config import Settings

GATEWAY_ENV_VARS = (
    "PORT", "HOST", "NODE_ENV", "ENVIRONMENT", "RATE_LIMIT_WINDOW_MS", "RATE_LIMIT_MAX_REQUESTS",
    "CORS_ORIGIN", "BODY_LIMIT_BYTES", "COMPRESSION_MIN_BYTES", "DATABASE_URL",
    "HEALTH_DB_TIMEOUT_S", "SHUTDOWN_GRACE_S", "PUBLIC_DIR", "DIST_DIR", "LOG_LEVEL",
)

SPA_HTML = "<!doctype html><html><head><title>KwachaNow</title></head><body><div id=root></div></body></html>"

# make_app(database=None) builds the real SQLAlchemy-backed Database
USE_FAKE_DB = object()


class FakeDatabase:
    """Stands in for the persistence dependency: probe + release, with failure knobs."""

    def __init__(self, fail=False, hang=False, disconnect_delay=0.0, disconnect_error=None):
        self.fail = fail
        self.hang = hang
        self.disconnect_delay = disconnect_delay
        self.disconnect_error = disconnect_error
        self.connected = False
        self.pings = 0
        self.disconnects = 0

    async def connect(self):
        self.connected = True

    async def ping(self):
        self.pings += 1
        if self.hang:
            await asyncio.sleep(3600)
        if self.fail:
            raise RuntimeError('FATAL: password authentication failed for user "kwacha" at 10.0.0.5:5432')

    async def disconnect(self):
        self.disconnects += 1
        if self.disconnect_delay:
            await asyncio.sleep(self.disconnect_delay)
        if self.disconnect_error is not None:
            raise self.disconnect_error
        self.connected = False


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def build_collaborators(calls):
    """Route groups that record every dispatch into ``calls``."""
    auth = APIRouter()
    chat = APIRouter()
    users = APIRouter()
    countries = APIRouter()

    @auth.post("/login")
    async def login(request: Request):
        calls.append("auth.login")
        return {"form": request.state.parsed_body}

    @chat.get("/sessions")
    async def sessions():
        calls.append("chat.sessions")
        return {"sessions": [{"id": "s1"}, {"id": "s2"}]}

    @chat.post("/messages")
    async def post_message(request: Request):
        calls.append("chat.messages")
        payload = await request.json()
        return {"parsed": request.state.parsed_body, "echo": payload}

    @chat.get("/boom")
    async def boom():
        calls.append("chat.boom")
        raise RuntimeError("connection to postgres://admin:s3cret@db:5432 lost")

    @chat.get("/teapot")
    async def teapot():
        raise HTTPException(status_code=418, detail="short and stout")

    @countries.get("/transcript")
    async def transcript():
        calls.append("countries.transcript")
        return PlainTextResponse("Kwacha " * 1000)

    @users.get("/profile")
    async def profile(request: Request):
        calls.append("users.profile")
        return {"token": request.state.token}

    return Collaborators(auth=auth, chat=chat, users=users, countries=countries)


@pytest.fixture
def gateway_settings(tmp_path, monkeypatch):
    for var in GATEWAY_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    public = tmp_path / "public"
    public.mkdir()
    (public / "robots.txt").write_text("User-agent: *\nDisallow:\n")
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "index.html").write_text(SPA_HTML)
    return Settings(
        _env_file=None,
        NODE_ENV="test",
        PUBLIC_DIR=str(public),
        DIST_DIR=str(dist),
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
    )


@pytest.fixture
def calls():
    return []


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_app(gateway_settings, calls, fake_db, clock):
    """Factory: make_app(database=..., **settings_overrides) -> FastAPI app."""

    def _make(database=USE_FAKE_DB, collaborators=None, **overrides):
        settings = gateway_settings.model_copy(update=overrides)
        return create_app(
            settings=settings,
            collaborators=collaborators or build_collaborators(calls),
            database=fake_db if database is USE_FAKE_DB else database,
            clock=clock,
        )

    return _make


@pytest.fixture
def app(make_app):
    return make_app()
