"""Shared pytest fixtures for backend tests."""

import os

# Settings are read at import time: no auth rate limiting and no quiz delays.
os.environ.setdefault("RATE_LIMIT_AUTH_RPM", "0")
os.environ.setdefault("RETRY_CLEAR_SECONDS", "0")
os.environ.setdefault("HINT_CLEAR_SECONDS", "0")
os.environ.setdefault("ADVANCE_DELAY_SECONDS", "0")

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from cardquiz.db.models import (
    OptionTypeEnum,
    QuestionTypeEnum,
    Quiz,
    QuizLevelEnum,
    QuizQuestion,
    QuizStrategyEnum,
)
from cardquiz.db.session import Base, get_db
from cardquiz.main import app
from cardquiz.services import history_store as history_store_module
from cardquiz.services import runner_registry as runner_registry_module
from cardquiz.services.history_store import HistoryStore
from cardquiz.services.runner_registry import RunnerRegistry
from cardquiz.services.session_recorder import SessionRecorder


# Use an in-memory SQLite database for testing with static pool
SQLALCHEMY_TEST_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool to keep connection alive
    echo=False,
)
TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db():
    """Fresh schema and DB session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def history(tmp_path) -> HistoryStore:
    return HistoryStore(tmp_path / "history", max_items=50)


@pytest.fixture(scope="function")
def registry(history: HistoryStore) -> RunnerRegistry:
    return RunnerRegistry(SessionRecorder(TestSession), history)


@pytest.fixture(scope="function")
def client(db: Session, registry: RunnerRegistry, history: HistoryStore, monkeypatch):
    """FastAPI test client with DB, attempt registry and history store swapped out."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # lifespan attaches whatever the singletons hold
    monkeypatch.setattr(runner_registry_module, "_registry", registry)
    monkeypatch.setattr(history_store_module, "_store", history)

    # Remove TrustedHostMiddleware for tests to allow 'testserver' host
    app.user_middleware = [m for m in app.user_middleware if "TrustedHost" not in str(m)]

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ── Data helpers ──────────────────────────────────────────────────────────────


def add_quiz(
    db: Session,
    quiz_id: str = "quiz1-easy",
    n_questions: int = 3,
    category: str = "Classification",
    level: QuizLevelEnum = QuizLevelEnum.EASY,
) -> Quiz:
    quiz = Quiz(
        id=quiz_id,
        title="Quiz 1",
        category=category,
        level=level,
        strategy=QuizStrategyEnum.CLASSIFICATION,
    )
    db.add(quiz)
    words = ["apple", "banana", "cat", "dog", "bus", "car", "train", "orange"]
    for i in range(n_questions):
        answer = words[i % len(words)]
        db.add(
            QuizQuestion(
                quiz_id=quiz_id,
                question_text=f"Which one is {answer}?",
                question_type=QuestionTypeEnum.TEXT,
                option_type=OptionTypeEnum.IMAGE,
                options=[f"{answer}.png", "wrong.png"],
                correct_answer=f"{answer}.png",
                hint=f"Starts with {answer[0]}",
                category="Vocabulary",
                level=level,
            )
        )
    db.commit()
    return quiz


def register(client: TestClient, email: str | None = None, password: str = "secret123") -> dict:
    email = email or f"kid_{uuid.uuid4().hex[:8]}@ex.com"
    resp = client.post(
        "/api/users/register",
        json={
            "email": email,
            "password": password,
            "profile": {"first_name": "Ada", "last_name": "Lovelace"},
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def correct_option(attempt: dict) -> str:
    """Play payloads carry no answer; seeded questions pair it with ``wrong.png``."""
    return next(o["value"] for o in attempt["question"]["options"] if o["value"] != "wrong.png")
