"""Shared pytest fixtures for the application tests."""

from __future__ import annotations

import asyncio
import os

# Configuration is read at import time, so set it before importing the package.
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-chars-long")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.pop("SMTP_HOST", None)

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import update  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from user_management.database import Base, make_engine, make_session_factory  # noqa: E402
from user_management.main import create_app  # noqa: E402
from user_management.models.user_model import User  # noqa: E402
from user_management.utils.email_token_utils import generate_verification_token  # noqa: E402


class RecordingDispatcher:
    """Stands in for the mail queue; keeps every job instead of sending it."""

    def __init__(self) -> None:
        self.jobs = []
        self.started = False

    def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    def enqueue(self, job) -> None:
        self.jobs.append(job)


@pytest.fixture()
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def engine(tmp_path):
    """A throwaway SQLite database; NullPool keeps connections off any one event loop."""

    return make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)


@pytest.fixture()
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture()
def app(engine, dispatcher) -> FastAPI:
    return create_app(engine=engine, dispatcher=dispatcher)


@pytest.fixture()
def client(app: FastAPI):
    """Test client with startup/shutdown events run (creates the schema)."""

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


async def create_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def set_user_fields(engine, user_id: int, **values) -> None:
    """Write columns directly, bypassing the API (e.g. to fake a last login)."""

    async def _update():
        session_factory = make_session_factory(engine)
        async with session_factory() as session:
            await session.execute(update(User).where(User.id == user_id).values(**values))
            await session.commit()

    asyncio.run(_update())


def register(client: TestClient, email: str, password: str = "pw1", name: str = "Test User"):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})


def register_verified(client: TestClient, email: str, password: str = "pw1", name: str = "Test User") -> int:
    response = register(client, email, password, name)
    assert response.status_code == 201
    user = response.json()["user"]
    token = generate_verification_token(user["id"], user["email"])
    assert client.get("/api/auth/verify", params={"token": token}).status_code == 200
    return user["id"]


def login(client: TestClient, email: str, password: str = "pw1") -> str:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["token"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
