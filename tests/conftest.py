from __future__ import annotations

import os

os.environ.setdefault("APP_ENVIRONMENT", "testing")
os.environ.setdefault("DB_SQLITE_PATH", ":memory:")
os.environ.pop("NARRATIVE_API_KEY", None)

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lifewheel.domain.models import UserContext, UserRole
from lifewheel.infrastructure.models import Base


@pytest.fixture
def user_ctx() -> UserContext:
    return UserContext(user_id="u1", name="Sara", email="sara@example.com", role=UserRole.USER)


@pytest.fixture
def admin_ctx() -> UserContext:
    return UserContext(user_id="a1", name="Admin", email="admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, future=True, expire_on_commit=False)
    yield SessionLocal
    engine.dispose()
