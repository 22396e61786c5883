"""Session recorder: persists quiz sessions and their interactions.

Two layers:

* module-level ``record_*`` functions take a request-scoped ``Session`` and
  let database errors propagate (used by the ``/api/sessions`` routes, where
  the client drives the quiz itself);
* :class:`SessionRecorder` wraps them for the server-side quiz runner. It
  opens its own DB session per call and treats every write as best effort:
  failures are logged and never interrupt the quiz.

Closing is idempotent at both layers. The one-shot flag on
:class:`SessionHandle` guards the local call sites (mood pick, teardown) and
the conditional ``UPDATE … WHERE ended_at IS NULL`` guards the row itself, so
only the first close ever writes an end timestamp.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cardquiz.db.models import QuizInteraction, QuizSession

logger = logging.getLogger(__name__)

MOODS: dict[str, str] = {
    "happy": "😊",
    "excited": "🤩",
    "neutral": "😐",
    "confused": "😕",
    "sad": "😢",
}
DEFAULT_MOOD = "neutral"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@dataclass
class SessionCounters:
    """Running tallies for one attempt."""

    correct: int = 0
    wrong: int = 0
    words_seen: list[str] = field(default_factory=list)

    @property
    def answered(self) -> int:
        return self.correct + self.wrong

    def see(self, word: str) -> None:
        if word not in self.words_seen:
            self.words_seen.append(word)


@dataclass
class SessionHandle:
    """Local view of an open session row."""

    id: uuid.UUID
    user_id: uuid.UUID
    started_at: datetime
    interactions_logged: int = 0
    closed: bool = False


# ── Request-scoped operations ─────────────────────────────────────────────────


def record_open(
    db: Session, user_id: uuid.UUID, quiz_id: str | None, now: datetime | None = None
) -> QuizSession:
    session = QuizSession(user_id=user_id, quiz_id=quiz_id, started_at=now or _utcnow())
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def record_interaction(
    db: Session,
    session_id: uuid.UUID,
    question_text: str,
    is_correct: bool,
    retry_count: int,
    time_taken_seconds: float,
) -> QuizInteraction:
    interaction = QuizInteraction(
        session_id=session_id,
        question_text=question_text,
        is_correct=is_correct,
        retry_count=retry_count,
        time_taken_seconds=round(time_taken_seconds, 2),
    )
    db.add(interaction)
    db.commit()
    db.refresh(interaction)
    return interaction


def record_close(
    db: Session,
    session_id: uuid.UUID,
    started_at: datetime,
    correct_count: int,
    wrong_count: int,
    words_seen: list[str],
    mood: str | None,
    now: datetime | None = None,
) -> bool:
    """Finalize a session. Returns ``False`` when it was already closed."""
    ended_at = now or _utcnow()
    duration = max(0.0, (ended_at - _as_aware(started_at)).total_seconds())
    result = db.execute(
        update(QuizSession)
        .where(QuizSession.id == session_id, QuizSession.ended_at.is_(None))
        .values(
            ended_at=ended_at,
            duration_seconds=round(duration, 2),
            correct_count=correct_count,
            wrong_count=wrong_count,
            words_seen=list(words_seen),
            mood=mood,
        )
    )
    db.commit()
    return result.rowcount == 1


def record_discard(db: Session, session_id: uuid.UUID) -> bool:
    """Delete a still-open session that never received an answer."""
    db.execute(delete(QuizInteraction).where(QuizInteraction.session_id == session_id))
    result = db.execute(
        delete(QuizSession).where(
            QuizSession.id == session_id, QuizSession.ended_at.is_(None)
        )
    )
    db.commit()
    return result.rowcount == 1


# ── Best-effort recorder for the quiz runner ──────────────────────────────────


class SessionRecorder:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def open_session(
        self, user_id: uuid.UUID | None, quiz_id: str | None = None
    ) -> SessionHandle | None:
        """Open a session row, or return ``None`` (guest mode / write failure)."""
        if user_id is None:
            logger.info("No signed-in user, quiz runs in guest mode without persistence")
            return None
        try:
            with self._session_factory() as db:
                row = record_open(db, user_id, quiz_id, now=self._clock())
                handle = SessionHandle(id=row.id, user_id=user_id, started_at=row.started_at)
        except SQLAlchemyError as e:
            logger.warning("Could not open quiz session for user %s: %s", user_id, e)
            return None
        logger.debug("Opened quiz session %s", handle.id)
        return handle

    def log_interaction(
        self,
        handle: SessionHandle | None,
        question_text: str,
        correct: bool,
        retry_count: int,
        elapsed_seconds: float,
    ) -> bool:
        if handle is None:
            return False
        if handle.closed:
            logger.warning("Ignoring interaction for closed session %s", handle.id)
            return False
        try:
            with self._session_factory() as db:
                record_interaction(
                    db, handle.id, question_text, correct, retry_count, elapsed_seconds
                )
        except SQLAlchemyError as e:
            logger.warning("Could not log interaction for session %s: %s", handle.id, e)
            return False
        handle.interactions_logged += 1
        return True

    def close_session(
        self,
        handle: SessionHandle | None,
        counters: SessionCounters,
        mood: str | None,
    ) -> bool:
        """Close *handle* once. Later calls are no-ops and return ``False``."""
        if handle is None or handle.closed:
            return False
        handle.closed = True
        try:
            with self._session_factory() as db:
                closed = record_close(
                    db,
                    handle.id,
                    handle.started_at,
                    counters.correct,
                    counters.wrong,
                    counters.words_seen,
                    mood,
                    now=self._clock(),
                )
        except SQLAlchemyError as e:
            logger.warning("Could not close quiz session %s: %s", handle.id, e)
            return False
        if not closed:
            logger.info("Quiz session %s was already closed", handle.id)
        return closed

    def abandon(self, handle: SessionHandle | None, counters: SessionCounters) -> bool:
        """Teardown path: auto-close with the default mood, or discard if empty."""
        if handle is None or handle.closed:
            return False
        if counters.answered > 0 or handle.interactions_logged > 0:
            logger.info("Auto-closing abandoned quiz session %s", handle.id)
            return self.close_session(handle, counters, DEFAULT_MOOD)

        handle.closed = True
        try:
            with self._session_factory() as db:
                discarded = record_discard(db, handle.id)
        except SQLAlchemyError as e:
            logger.warning("Could not discard empty quiz session %s: %s", handle.id, e)
            return False
        logger.debug("Discarded empty quiz session %s", handle.id)
        return discarded
