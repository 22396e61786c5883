"""Integration tests for server-held quiz attempts.

Quiz delays are zero in the test settings, so a locked question is ready to
advance on the next read and a wrong selection clears immediately.
"""

import uuid

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from cardquiz.db.models import (
    OptionTypeEnum,
    QuestionTypeEnum,
    QuizInteraction,
    QuizLevelEnum,
    QuizQuestion,
    QuizSession,
)
from cardquiz.services.runner_registry import RunnerRegistry

from conftest import add_quiz, auth, correct_option, register


# ── Helpers ────────────────────────────────────────────────────────────────────


def _start(client: TestClient, token: str | None = None, quiz_id: str = "quiz1-easy") -> dict:
    headers = auth(token) if token else {}
    resp = client.post(f"/api/play/{quiz_id}", headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _answer(client: TestClient, attempt: dict, option: str, token: str | None = None) -> dict:
    headers = auth(token) if token else {}
    resp = client.post(
        f"/api/play/attempts/{attempt['id']}/answer", json={"option": option}, headers=headers
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def _advance(client: TestClient, attempt: dict, token: str | None = None) -> dict:
    headers = auth(token) if token else {}
    resp = client.post(f"/api/play/attempts/{attempt['id']}/advance", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def _play_through(client: TestClient, attempt: dict, token: str | None = None) -> dict:
    """Answer every question correctly and stop at mood selection."""
    state = attempt
    while state["phase"] == "answering":
        _answer(client, state, correct_option(state), token)
        state = _advance(client, state, token)
    return state


def _sessions(db: Session) -> list[QuizSession]:
    db.expire_all()
    return db.query(QuizSession).all()


# ── Tests ──────────────────────────────────────────────────────────────────────


class TestStartAttempt:
    def test_signed_in_attempt_opens_session(self, client: TestClient, db: Session):
        add_quiz(db, n_questions=3)
        token = register(client)["access_token"]
        attempt = _start(client, token)

        assert attempt["phase"] == "answering"
        assert attempt["is_guest"] is False
        assert attempt["position"] == 1
        assert attempt["question_count"] == 3
        assert attempt["state"]["status"] == "unanswered"

        rows = _sessions(db)
        assert len(rows) == 1
        assert str(rows[0].id) == attempt["session_id"]

    def test_guest_attempt_has_no_session(self, client: TestClient, db: Session):
        add_quiz(db)
        attempt = _start(client)
        assert attempt["is_guest"] is True
        assert attempt["session_id"] is None
        _answer(client, attempt, correct_option(attempt))
        assert _sessions(db) == []
        assert db.query(QuizInteraction).count() == 0

    def test_starting_again_closes_the_previous_attempt(self, client: TestClient, db: Session):
        add_quiz(db)
        token = register(client)["access_token"]
        first = _start(client, token)
        _answer(client, first, "wrong.png", token)
        second = _start(client, token)

        assert client.get(f"/api/play/attempts/{first['id']}", headers=auth(token)).status_code == 404
        rows = {str(r.id): r for r in _sessions(db)}
        assert rows[first["session_id"]].ended_at is not None
        assert rows[first["session_id"]].mood == "neutral"
        assert rows[second["session_id"]].ended_at is None

    def test_guest_summary_survives_another_guest_starting(self, client: TestClient, db: Session):
        add_quiz(db, n_questions=1)
        state = _play_through(client, _start(client))
        client.post(f"/api/play/attempts/{state['id']}/mood", json={"mood": "happy"})

        _start(client)

        resp = client.get(f"/api/play/attempts/{state['id']}")
        assert resp.status_code == 200
        assert resp.json()["phase"] == "complete"
        assert resp.json()["summary"]["mood"] == "happy"

    def test_unknown_quiz(self, client: TestClient, db: Session):
        assert client.post("/api/play/nope").status_code == 404

    def test_quiz_without_questions(self, client: TestClient, db: Session):
        add_quiz(db, n_questions=0)
        assert client.post("/api/play/quiz1-easy").status_code == 404


class TestAnswering:
    def test_correct_answer(self, client: TestClient, db: Session):
        add_quiz(db)
        token = register(client)["access_token"]
        attempt = _start(client, token)
        result = _answer(client, attempt, correct_option(attempt), token)

        assert result["accepted"] is True
        assert result["correct"] is True
        assert result["status"] == "locked_correct"
        assert result["attempt"]["correct"] == 1
        assert result["attempt"]["state"]["advance_ready"] is True

        rows = db.query(QuizInteraction).all()
        assert len(rows) == 1
        assert rows[0].retry_count == 0

    def test_three_wrong_reveals_and_fourth_is_ignored(self, client: TestClient, db: Session):
        add_quiz(db)
        token = register(client)["access_token"]
        attempt = _start(client, token)
        answer = correct_option(attempt)

        first = _answer(client, attempt, "wrong.png", token)
        second = _answer(client, attempt, "wrong.png", token)
        third = _answer(client, attempt, "wrong.png", token)
        fourth = _answer(client, attempt, answer, token)

        assert first["status"] == "retrying"
        assert second["status"] == "hint_shown"
        assert second["hint"]
        assert third["status"] == "locked_revealed"
        assert third["revealed_answer"] == answer
        assert fourth["accepted"] is False
        assert fourth["attempt"]["wrong"] == 3
        assert fourth["attempt"]["correct"] == 0
        assert db.query(QuizInteraction).count() == 3

    def test_payload_hides_answer_until_earned(self, client: TestClient, db: Session):
        add_quiz(db)
        attempt = _start(client)
        assert "correct_answer" not in attempt["question"]
        assert "hint" not in attempt["question"]
        assert attempt["state"]["hint"] is None

        _answer(client, attempt, "wrong.png")
        second = _answer(client, attempt, "wrong.png")
        assert "correct_answer" not in second["attempt"]["question"]
        assert second["attempt"]["state"]["hint"]
        assert second["attempt"]["state"]["revealed_answer"] is None

        third = _answer(client, attempt, "wrong.png")
        assert third["attempt"]["state"]["revealed_answer"].endswith(".png")

    def test_unknown_option(self, client: TestClient, db: Session):
        add_quiz(db)
        attempt = _start(client)
        resp = client.post(f"/api/play/attempts/{attempt['id']}/answer", json={"option": "zebra.png"})
        assert resp.status_code == 422

    def test_advance_before_answer_conflicts(self, client: TestClient, db: Session):
        add_quiz(db)
        attempt = _start(client)
        assert client.post(f"/api/play/attempts/{attempt['id']}/advance").status_code == 409

    def test_other_users_attempt_is_hidden(self, client: TestClient, db: Session):
        add_quiz(db)
        owner = register(client)["access_token"]
        intruder = register(client)["access_token"]
        attempt = _start(client, owner)

        assert client.get(f"/api/play/attempts/{attempt['id']}", headers=auth(intruder)).status_code == 404
        assert client.get(f"/api/play/attempts/{attempt['id']}").status_code == 404
        assert client.get(f"/api/play/attempts/{uuid.uuid4()}").status_code == 404


class TestFinishing:
    def test_mood_closes_session_and_returns_summary(self, client: TestClient, db: Session, history):
        add_quiz(db, n_questions=2)
        token = register(client)["access_token"]
        state = _play_through(client, _start(client, token), token)
        assert state["phase"] == "mood_selection"
        assert client.post(f"/api/play/attempts/{state['id']}/answer", json={"option": "x"}, headers=auth(token)).status_code == 409

        resp = client.post(
            f"/api/play/attempts/{state['id']}/mood", json={"mood": "excited"}, headers=auth(token)
        )
        assert resp.status_code == 200
        summary = resp.json()["summary"]
        assert summary["correct"] == 2
        assert summary["accuracy"] == 100
        assert summary["mood"] == "excited"
        assert summary["persisted"] is True

        row = _sessions(db)[0]
        assert row.ended_at is not None
        assert row.mood == "excited"
        assert row.correct_count == 2
        assert len(row.words_seen) == 2

        user_id = client.get("/api/users/me", headers=auth(token)).json()["id"]
        assert len(history.load(user_id)) == 1

    def test_unknown_mood(self, client: TestClient, db: Session):
        add_quiz(db, n_questions=1)
        state = _play_through(client, _start(client))
        resp = client.post(f"/api/play/attempts/{state['id']}/mood", json={"mood": "grumpy"})
        assert resp.status_code == 422

    def test_mood_then_delete_writes_end_once(self, client: TestClient, db: Session):
        add_quiz(db, n_questions=1)
        token = register(client)["access_token"]
        state = _play_through(client, _start(client, token), token)
        client.post(f"/api/play/attempts/{state['id']}/mood", json={"mood": "happy"}, headers=auth(token))
        ended = _sessions(db)[0].ended_at

        resp = client.delete(f"/api/play/attempts/{state['id']}", headers=auth(token))
        assert resp.status_code == 204
        row = _sessions(db)[0]
        assert row.ended_at == ended
        assert row.mood == "happy"


class TestAbandonAndReplay:
    def test_abandon_answered_attempt_autocloses(self, client: TestClient, db: Session):
        add_quiz(db)
        token = register(client)["access_token"]
        attempt = _start(client, token)
        _answer(client, attempt, "wrong.png", token)

        assert client.delete(f"/api/play/attempts/{attempt['id']}", headers=auth(token)).status_code == 204
        row = _sessions(db)[0]
        assert row.ended_at is not None
        assert row.mood == "neutral"
        assert row.wrong_count == 1
        assert client.get(f"/api/play/attempts/{attempt['id']}", headers=auth(token)).status_code == 404

    def test_abandon_untouched_attempt_discards_session(self, client: TestClient, db: Session):
        add_quiz(db)
        token = register(client)["access_token"]
        attempt = _start(client, token)
        client.delete(f"/api/play/attempts/{attempt['id']}", headers=auth(token))
        assert _sessions(db) == []

    def test_replay_closes_then_reopens(self, client: TestClient, db: Session):
        add_quiz(db, n_questions=3)
        token = register(client)["access_token"]
        first = _start(client, token)
        _answer(client, first, correct_option(first), token)

        resp = client.post(f"/api/play/attempts/{first['id']}/replay", headers=auth(token))
        assert resp.status_code == 201
        second = resp.json()
        assert second["id"] != first["id"]
        assert second["session_id"] != first["session_id"]
        assert second["correct"] == 0

        rows = {str(r.id): r for r in _sessions(db)}
        assert rows[first["session_id"]].ended_at is not None
        assert rows[second["session_id"]].ended_at is None
        assert sum(1 for r in rows.values() if r.ended_at is None) == 1

    def test_logout_tears_down_open_attempts(self, client: TestClient, db: Session, registry: RunnerRegistry):
        add_quiz(db)
        token = register(client)["access_token"]
        attempt = _start(client, token)
        _answer(client, attempt, "wrong.png", token)
        assert len(registry) == 1

        client.post("/api/users/logout", headers=auth(token))

        assert len(registry) == 0
        row = _sessions(db)[0]
        assert row.ended_at is not None
        assert row.mood == "neutral"

    def test_replay_keeps_the_level_played(self, client: TestClient, db: Session):
        add_quiz(db, n_questions=3)
        db.add(
            QuizQuestion(
                quiz_id="quiz1-easy",
                question_text="Which one is lion?",
                question_type=QuestionTypeEnum.TEXT,
                option_type=OptionTypeEnum.IMAGE,
                options=["lion.png", "wrong.png"],
                correct_answer="lion.png",
                level=QuizLevelEnum.HARD,
            )
        )
        db.commit()
        token = register(client)["access_token"]
        resp = client.post("/api/play/quiz1-easy?level=hard", headers=auth(token))
        assert resp.json()["question_count"] == 1

        replayed = client.post(f"/api/play/attempts/{resp.json()['id']}/replay", headers=auth(token))
        assert replayed.status_code == 201
        assert replayed.json()["question_count"] == 1
        assert replayed.json()["question"]["level"] == "hard"
