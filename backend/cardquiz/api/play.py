"""Server-held quiz attempts: the quiz runner behind HTTP.

Flow:
  1. POST   /api/play/{quiz_id}                 → start (guests allowed)
  2. POST   /api/play/attempts/{id}/answer      → submit an option
  3. POST   /api/play/attempts/{id}/advance     → next question / mood selection
  4. POST   /api/play/attempts/{id}/mood        → close the session, get summary
  5. POST   /api/play/attempts/{id}/replay      → close-then-reopen, reshuffled
  6. DELETE /api/play/attempts/{id}             → abandon
"""

import logging
import uuid
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from cardquiz.api.deps import get_optional_user
from cardquiz.db.models import Quiz, User
from cardquiz.db.session import get_db
from cardquiz.schemas.play import (
    AnswerResult,
    AnswerSubmit,
    AttemptRead,
    MoodSelect,
    QuestionStateRead,
    SummaryRead,
)
from cardquiz.services.catalog import QuizNotFound, load_attempt, to_prompt_read
from cardquiz.services.media import MediaManifest, get_media_manifest
from cardquiz.services.quiz_runner import (
    InvalidMood,
    InvalidOption,
    QuizRunner,
    QuizStateError,
)
from cardquiz.services.runner_registry import (
    AttemptNotFound,
    RunnerRegistry,
    get_runner_registry,
)

logger = logging.getLogger(__name__)
router = APIRouter()


# ── Helpers ───────────────────────────────────────────────────────────────────


def _owner(user: User | None) -> uuid.UUID | None:
    return user.id if user else None


def _get_runner(registry: RunnerRegistry, attempt_id: uuid.UUID, user: User | None) -> QuizRunner:
    try:
        return registry.get(attempt_id, _owner(user))
    except AttemptNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attempt not found")


def _load_questions(db: Session, quiz_id: str, level: str | None):
    try:
        return load_attempt(db, quiz_id, level)
    except QuizNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _attempt_read(runner: QuizRunner, manifest: MediaManifest) -> AttemptRead:
    question = runner.current_question
    state = runner.state
    state_read = None
    if question is not None:
        state_read = QuestionStateRead(
            status=state.status.value,
            selected=state.selected,
            attempts=state.attempts,
            hint_shown=state.hint_shown,
            hint=question.hint if state.hint_shown else None,
            answer_revealed=state.answer_revealed,
            revealed_answer=question.correct_answer if state.answer_revealed else None,
            advance_ready=state.advance_ready,
            feedback=state.feedback,
        )
    summary = runner.summary
    return AttemptRead(
        id=runner.id,
        quiz_id=runner.quiz_id,
        phase=runner.phase.value,
        is_guest=runner.is_guest,
        session_id=runner.session.id if runner.session else None,
        position=runner.index + 1,
        question_count=len(runner.questions),
        correct=runner.counters.correct,
        wrong=runner.counters.wrong,
        words_seen=list(runner.counters.words_seen),
        question=to_prompt_read(question, manifest) if question else None,
        state=state_read,
        summary=SummaryRead(**asdict(summary)) if summary else None,
    )


def _state_conflict(e: QuizStateError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


# ── Routes ────────────────────────────────────────────────────────────────────


@router.post("/{quiz_id}", response_model=AttemptRead, status_code=status.HTTP_201_CREATED)
def start_attempt(
    quiz_id: str,
    level: str | None = Query(default=None, description="easy | medium | hard"),
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
    registry: RunnerRegistry = Depends(get_runner_registry),
    manifest: MediaManifest = Depends(get_media_manifest),
):
    """Start an attempt. Without a bearer token the attempt runs in guest mode."""
    quiz = db.get(Quiz, quiz_id)
    if quiz is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
    questions = _load_questions(db, quiz_id, level)

    runner = registry.start(
        quiz_id,
        questions,
        _owner(current_user),
        category=quiz.category,
        quiz_type=questions[0].question_type,
        level=level,
    )
    return _attempt_read(runner, manifest)


@router.get("/attempts/{attempt_id}", response_model=AttemptRead)
def get_attempt(
    attempt_id: uuid.UUID,
    current_user: User | None = Depends(get_optional_user),
    registry: RunnerRegistry = Depends(get_runner_registry),
    manifest: MediaManifest = Depends(get_media_manifest),
):
    """Current attempt state; pending clears and advance deadlines are applied on read."""
    return _attempt_read(_get_runner(registry, attempt_id, current_user), manifest)


@router.post("/attempts/{attempt_id}/answer", response_model=AnswerResult)
def submit_answer(
    attempt_id: uuid.UUID,
    body: AnswerSubmit,
    current_user: User | None = Depends(get_optional_user),
    registry: RunnerRegistry = Depends(get_runner_registry),
    manifest: MediaManifest = Depends(get_media_manifest),
):
    runner = _get_runner(registry, attempt_id, current_user)
    try:
        outcome = runner.submit_answer(body.option)
    except QuizStateError as e:
        raise _state_conflict(e)
    except InvalidOption as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    return AnswerResult(
        accepted=outcome.accepted,
        correct=outcome.correct,
        status=outcome.status.value,
        attempts=outcome.attempts,
        feedback=outcome.feedback,
        hint=outcome.hint,
        revealed_answer=outcome.revealed_answer,
        attempt=_attempt_read(runner, manifest),
    )


@router.post("/attempts/{attempt_id}/advance", response_model=AttemptRead)
def advance(
    attempt_id: uuid.UUID,
    current_user: User | None = Depends(get_optional_user),
    registry: RunnerRegistry = Depends(get_runner_registry),
    manifest: MediaManifest = Depends(get_media_manifest),
):
    runner = _get_runner(registry, attempt_id, current_user)
    try:
        runner.advance()
    except QuizStateError as e:
        raise _state_conflict(e)
    return _attempt_read(runner, manifest)


@router.post("/attempts/{attempt_id}/mood", response_model=AttemptRead)
def select_mood(
    attempt_id: uuid.UUID,
    body: MoodSelect,
    current_user: User | None = Depends(get_optional_user),
    registry: RunnerRegistry = Depends(get_runner_registry),
    manifest: MediaManifest = Depends(get_media_manifest),
):
    """Pick the end-of-quiz mood; closes the session and returns the summary."""
    runner = _get_runner(registry, attempt_id, current_user)
    try:
        runner.select_mood(body.mood)
    except QuizStateError as e:
        raise _state_conflict(e)
    except InvalidMood as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return _attempt_read(runner, manifest)


@router.post("/attempts/{attempt_id}/replay", response_model=AttemptRead, status_code=status.HTTP_201_CREATED)
def replay(
    attempt_id: uuid.UUID,
    level: str | None = Query(default=None, description="easy | medium | hard"),
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
    registry: RunnerRegistry = Depends(get_runner_registry),
    manifest: MediaManifest = Depends(get_media_manifest),
):
    """Play the same quiz again: the old attempt is closed first, then a new one opens.

    Without ``level`` the replay uses the level of the attempt being replayed.
    """
    old = _get_runner(registry, attempt_id, current_user)
    level = level if level is not None else old.level
    questions = _load_questions(db, old.quiz_id, level)
    runner = registry.replay(attempt_id, _owner(current_user), questions, level=level)
    return _attempt_read(runner, manifest)


@router.delete("/attempts/{attempt_id}", status_code=status.HTTP_204_NO_CONTENT)
def abandon(
    attempt_id: uuid.UUID,
    current_user: User | None = Depends(get_optional_user),
    registry: RunnerRegistry = Depends(get_runner_registry),
):
    """Leave the quiz. Answered attempts are auto-closed; empty ones are discarded."""
    try:
        registry.teardown(attempt_id, _owner(current_user))
    except AttemptNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attempt not found")
