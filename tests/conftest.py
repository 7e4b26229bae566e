"""Shared fixtures: in-memory KV store, fake auth provider, API client."""

import os
import secrets
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

os.environ.setdefault("SECRET", "test-secret-not-for-production")
os.environ["KV_BACKEND"] = "memory"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="donosti-uploads-"))

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from donosti.errors import ValidationFailed
from donosti.database import Base
from donosti.kv import MemoryKVStore
from donosti.models import KVEntry
from donosti.services.identity import Actor, AuthIdentity, AuthProvider
from donosti.services.photos import PhotoStore


class FakeAuthProvider(AuthProvider):
    """Auth users and opaque tokens kept in dicts."""

    def __init__(self):
        self.users: Dict[str, AuthIdentity] = {}
        self.passwords: Dict[str, str] = {}
        self.tokens: Dict[str, str] = {}
        self.fail_delete = False

    def issue_token(self, user_id: str) -> str:
        token = secrets.token_hex(8)
        self.tokens[token] = user_id
        return token

    def token_for(self, email: str) -> str:
        identity = next(u for u in self.users.values() if u.email == email)
        return self.issue_token(identity.id)

    async def get_user(self, token: str) -> Optional[AuthIdentity]:
        user_id = self.tokens.get(token)
        return self.users.get(user_id) if user_id else None

    async def get_by_email(self, email: str) -> Optional[AuthIdentity]:
        return next((u for u in self.users.values() if u.email == email), None)

    async def create_user(self, email: str, password: str) -> AuthIdentity:
        if any(u.email == email for u in self.users.values()):
            raise ValidationFailed("A user with this email address has already been registered")
        identity = AuthIdentity(
            id=f"user-{len(self.users) + 1}",
            email=email,
            created_at=datetime.now(timezone.utc),
        )
        self.users[identity.id] = identity
        self.passwords[identity.id] = password
        return identity

    async def list_users(self) -> List[AuthIdentity]:
        return list(self.users.values())

    async def delete_user(self, user_id: str) -> None:
        if self.fail_delete:
            raise RuntimeError("auth backend unavailable")
        self.users.pop(user_id, None)
        self.tokens = {t: uid for t, uid in self.tokens.items() if uid != user_id}


def make_actor(user_id: str = "alice", *, name: str = "Alice", verified: bool = False, admin: bool = False) -> Actor:
    return Actor(id=user_id, email=f"{user_id}@example.com", name=name, verified=verified, admin=admin)


@pytest.fixture
def kv_data() -> dict:
    return {"verification-codes": ["DONOSTI2025", "EXCHANGE2025"]}


@pytest.fixture
def kv(kv_data) -> MemoryKVStore:
    return MemoryKVStore(kv_data)


@pytest.fixture
def auth_provider() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def photo_store(tmp_path: Path) -> PhotoStore:
    return PhotoStore(tmp_path / "uploads", "/uploads", max_side=64)


@pytest.fixture
def alice() -> Actor:
    return make_actor("alice", name="Alice", verified=True)


@pytest.fixture
def bob() -> Actor:
    return make_actor("bob", name="Bob")


@pytest.fixture
def admin() -> Actor:
    return make_actor("root", name="Admin", admin=True)


@pytest.fixture
def client(kv_data, auth_provider, photo_store):
    from donosti.main import app
    from donosti.utils import get_auth_provider, get_kv, get_photo_store

    app.dependency_overrides[get_kv] = lambda: MemoryKVStore(kv_data)
    app.dependency_overrides[get_auth_provider] = lambda: auth_provider
    app.dependency_overrides[get_photo_store] = lambda: photo_store
    # no context manager: startup hooks would try to reach Postgres
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def register(client, auth_provider):
    """Sign a user up through the API and return (user, auth headers)."""

    def _register(email: str, name: str, code: str = ""):
        resp = client.post(
            "/signup",
            json={"email": email, "password": "pw-123456", "name": name, "verificationCode": code},
        )
        assert resp.status_code == 200, resp.text
        token = auth_provider.token_for(email)
        return resp.json()["user"], {"Authorization": f"Bearer {token}"}

    return _register


@pytest_asyncio.fixture
async def sql_sessions(tmp_path: Path):
    """Session factory over a throwaway SQLite file holding only ``kv_store``."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'kv.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=[KVEntry.__table__])
    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    await engine.dispose()
