"""
Shared fixtures. Environment is set before any autopostr module is imported,
since configuration is read at import time.
"""
import os
import uuid

import pytest
from cryptography.fernet import Fernet

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./autopostr_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("OAUTH_TOKEN_KEY", Fernet.generate_key().decode())
os.environ.setdefault("META_APP_ID", "test-app-id")
os.environ.setdefault("META_APP_SECRET", "test-app-secret")
os.environ.setdefault("META_REDIRECT_URI", "http://localhost:5173/connect/facebook/callback")
os.environ.setdefault("AUTOMATION_API_KEY", "test-automation-key")

import fakeredis.aioredis  # noqa: E402
import httpx  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from autopostr.infrastructure import database, redis_cache  # noqa: E402
from autopostr.infrastructure.graph_client import GraphClient  # noqa: E402
from autopostr.accounts.models import User  # noqa: E402
from autopostr.accounts.utils import hash_password  # noqa: E402
import autopostr.models.asset  # noqa: E402,F401
import autopostr.models.connection  # noqa: E402,F401
import autopostr.models.post  # noqa: E402,F401
import autopostr.models.schedule  # noqa: E402,F401


@pytest.fixture(autouse=True)
def db_engine(tmp_path, monkeypatch):
    """Fresh SQLite file per test; schema is created through a sync engine on the same file."""
    path = tmp_path / "test.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    SQLModel.metadata.create_all(sync_engine)
    monkeypatch.setattr(database, "engine", database.build_engine(f"sqlite+aiosqlite:///{path}"))
    yield sync_engine
    sync_engine.dispose()


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(redis_cache, "redis_client", client)
    return client


@pytest.fixture
def user(db_engine):
    with Session(db_engine, expire_on_commit=False) as session:
        u = User(
            email=f"{uuid.uuid4().hex[:8]}@example.com",
            username=f"user_{uuid.uuid4().hex[:8]}",
            hashed_password=hash_password("Passw0rd!"),
        )
        session.add(u)
        session.commit()
        session.refresh(u)
        return u


class GraphRecorder:
    """MockTransport handler that routes on (method, path) and records every request."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method, path, response=None, status_code=200, handler=None):
        self.routes[(method, path)] = handler or (lambda request: httpx.Response(status_code, json=response))
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": {"message": f"no route for {request.method} {request.url.path}"}})
        return route(request)

    def client(self) -> GraphClient:
        return GraphClient(transport=httpx.MockTransport(self))

    def paths(self):
        return [r.url.path for r in self.requests]


@pytest.fixture
def graph():
    return GraphRecorder()


@pytest.fixture
def client(user, graph):
    from autopostr.main import app
    from autopostr.dependencies.auth import get_current_user
    from autopostr.dependencies.clients import get_graph_client

    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_graph_client] = graph.client
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def automation_headers():
    return {"X-Automation-Key": os.environ["AUTOMATION_API_KEY"]}


@pytest.fixture
def anon_client():
    from autopostr.main import app

    app.dependency_overrides.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
