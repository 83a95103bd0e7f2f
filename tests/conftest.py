# tests/conftest.py
# PURPOSE: create a TestClient wired to a temp SQLite file, temp attachment
# storage, a fresh listing cache and an in-memory notification outbox.

# Ensure project root is on sys.path so `import taskhub` works when running pytest.
import sys, os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from taskhub.api.deps import get_blob_store, get_cache, get_notifier
from taskhub.cache import MemoryCacheStore
from taskhub.db import Base, get_db  # DB metadata + original dependency to override
from taskhub.main import app  # FastAPI app
from taskhub.notifications import OutboxNotifier
from taskhub.rate_limit import limiter
from taskhub.storage import LocalBlobStore

PASSWORD = "password123"


@pytest.fixture()
def test_env(tmp_path):
    # 1) Temporary SQLite file + storage directory (isolated per test)
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False}
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    env = SimpleNamespace(
        session_factory=TestingSessionLocal,
        cache=MemoryCacheStore(),
        notifier=OutboxNotifier(),
        storage_dir=tmp_path / "storage",
    )
    env.blobs = LocalBlobStore(env.storage_dir)
    yield env

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def client(test_env):
    def override_get_db():
        db = test_env.session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: test_env.cache
    app.dependency_overrides[get_blob_store] = lambda: test_env.blobs
    app.dependency_overrides[get_notifier] = lambda: test_env.notifier
    limiter.reset()

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


def register(client, email: str, name: str = "Test User", password: str = PASSWORD) -> dict:
    """Register a user and return Authorization headers for them."""
    r = client.post(
        "/api/register",
        json={
            "name": name,
            "email": email,
            "password": password,
            "password_confirmation": password,
        },
    )
    assert r.status_code == 201, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture()
def alice(client):
    return register(client, "alice@example.com", name="Alice")


@pytest.fixture()
def bob(client):
    return register(client, "bob@example.com", name="Bob")


def create_task(client, headers, title="Task", status="pending", **extra) -> dict:
    r = client.post("/api/tasks", data={"title": title, "status": status, **extra}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["task"]
