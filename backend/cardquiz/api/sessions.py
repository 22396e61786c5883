"""Quiz session routes for clients that run the quiz themselves.

Flow:
  1. POST /api/sessions                      → open a session
  2. POST /api/sessions/{id}/interactions    → one row per answer submission
  3. POST /api/sessions/{id}/close           → final tallies + mood (idempotent)
  4. GET  /api/sessions/{id}                 → session with its interactions
  5. GET  /api/sessions/                     → the user's session history
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from cardquiz.api.deps import get_current_user
from cardquiz.db.models import Quiz, QuizSession, User
from cardquiz.db.session import get_db
from cardquiz.schemas.session import (
    InteractionCreate,
    InteractionRead,
    SessionClose,
    SessionDetail,
    SessionOpen,
    SessionRead,
)
from cardquiz.services.session_recorder import (
    MOODS,
    record_close,
    record_interaction,
    record_open,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_own_session(db: Session, session_id: uuid.UUID, user: User) -> QuizSession:
    session = (
        db.query(QuizSession)
        .filter(QuizSession.id == session_id, QuizSession.user_id == user.id)
        .first()
    )
    if not session:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


@router.post("/", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
def open_session(
    body: SessionOpen,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if body.quiz_id is not None and db.get(Quiz, body.quiz_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
    session = record_open(db, current_user.id, body.quiz_id)
    logger.info("Opened session %s for user %s", session.id, current_user.id)
    return session


@router.post(
    "/{session_id}/interactions",
    response_model=InteractionRead,
    status_code=status.HTTP_201_CREATED,
)
def add_interaction(
    session_id: uuid.UUID,
    body: InteractionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Append one answer submission to an open session."""
    session = _get_own_session(db, session_id, current_user)
    if session.ended_at is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Session already closed")
    return record_interaction(
        db,
        session.id,
        body.question_text,
        body.is_correct,
        body.retry_count,
        body.time_taken_seconds,
    )


@router.post("/{session_id}/close", response_model=SessionRead)
def close_session(
    session_id: uuid.UUID,
    body: SessionClose,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Close the session. A second close is a no-op and returns the stored row."""
    if body.mood is not None and body.mood not in MOODS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown mood '{body.mood}'",
        )
    session = _get_own_session(db, session_id, current_user)
    closed = record_close(
        db,
        session.id,
        session.started_at,
        body.correct_count,
        body.wrong_count,
        body.words_seen,
        body.mood,
    )
    if not closed:
        logger.info("Session %s already closed, keeping first close", session.id)
    db.refresh(session)
    return session


@router.get("/", response_model=list[SessionRead])
def list_sessions(
    limit: int = Query(default=50, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Most recent sessions first."""
    return (
        db.query(QuizSession)
        .filter(QuizSession.user_id == current_user.id)
        .order_by(QuizSession.started_at.desc())
        .limit(limit)
        .all()
    )


@router.get("/{session_id}", response_model=SessionDetail)
def get_session(
    session_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _get_own_session(db, session_id, current_user)
