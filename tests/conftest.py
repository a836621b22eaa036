"""
Shared fixtures.

The environment is configured before anything from ``app`` is imported so
the settings, engine and Redis client pick up the test values.
"""
import os
import uuid
from dataclasses import dataclass

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-chat-relay")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "disabled"

import pytest
from fastapi.testclient import TestClient

import app.chat.models  # noqa: F401  registers chats and messages tables
from app.chat import ChatManager
from app.core.database import SessionLocal, engine
from app.core.security import create_access_token, get_password_hash
from app.models import Base, User

from .helpers import DEFAULT_PASSWORD


@dataclass
class TestUser:
    __test__ = False

    id: str
    username: str
    token: str

    @property
    def uuid(self) -> uuid.UUID:
        return uuid.UUID(self.id)

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def db_tables():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def client(db_tables):
    from main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db_tables):
    """Create a user directly in the database."""
    password_hash = get_password_hash(DEFAULT_PASSWORD)

    def _make(username: str, public_key: str | None = None) -> TestUser:
        with SessionLocal() as db:
            user = User(
                username=username,
                email=f"{username}@chatrelay.io",
                password_hash=password_hash,
                public_key=public_key or f"pk-{username}",
                is_active=True,
            )
            db.add(user)
            db.commit()
            user_id = str(user.id)
        return TestUser(id=user_id, username=username, token=create_access_token(subject=user_id))

    return _make


@pytest.fixture
def make_chat(db_tables):
    def _make(first: TestUser, second: TestUser) -> str:
        with SessionLocal() as db:
            chat, _ = ChatManager.create_chat(db, first.uuid, second.uuid)
            return str(chat.id)

    return _make

