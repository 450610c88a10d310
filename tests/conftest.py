"""Pytest configuration and shared fixtures."""
import os

# Settings are read once at import time, so the environment must be in
# place before anything from cs_tutor is imported.
os.environ["ENV"] = "testing"
os.environ["LOG_TO_FILE"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["STREAM_CHUNK_DELAY_MS"] = "0"
os.environ["RATE_LIMIT_MAX"] = "1000"
os.environ["FREE_DAILY_LIMIT"] = "5"
os.environ["AGENT_MAX_STEPS"] = "4"
os.environ.pop("DATABASE_URL", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cs_tutor.database import get_db
from cs_tutor.main import app, get_llm_service, get_rate_limiter
from cs_tutor.models.agent import ToolContext
from cs_tutor.models.curriculum import Level, Mode
from cs_tutor.models.entities import Base, User
from cs_tutor.services.rate_limiter import RateLimiter
from tests.fakes import ScriptedLLM


@pytest.fixture(scope="function")
def db_session():
    """
    Create a test database session with in-memory SQLite.

    StaticPool keeps a single connection so the app's worker threads and
    the test see the same database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def fake_llm():
    return ScriptedLLM()


@pytest.fixture
def limiter():
    return RateLimiter(window_seconds=60, max_requests=1000)


@pytest.fixture
def tool_context():
    return ToolContext(
        user_id="student-1",
        level=Level.KS3,
        topic="Programming Basics",
        mode=Mode.EXPLAIN,
        request_id="test-request",
    )


@pytest.fixture
def paid_user(db_session):
    user = User(id="pro-1", email="pro@example.com", plan="pro", subscription_status="active")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def client(db_session, fake_llm, limiter):
    """Test client with the store, model and rate limiter replaced."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm_service] = lambda: fake_llm
    app.dependency_overrides[get_rate_limiter] = lambda: limiter

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
