"""Quiz runner: the state machine for a single quiz attempt.

Per question::

    unanswered ──correct──▶ locked_correct
        │
        └─wrong─▶ retrying ─wrong─▶ hint_shown ─wrong─▶ locked_revealed

Per attempt::

    loading ─▶ answering ─▶ mood_selection ─▶ complete
                    └──────────(teardown)──────────▶ abandoned

Timed transitions (clearing a wrong selection, becoming ready to advance) are
stored as deadlines against an injectable monotonic clock and applied lazily
whenever the runner is read or driven, so no timers or threads are needed.
"""

import enum
import functools
import logging
import random
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Sequence

from cardquiz.config import settings
from cardquiz.services.catalog import Question, QuizNotFound
from cardquiz.services.history_store import HistoryStore, QuizHistoryItem, format_time_spent
from cardquiz.services.session_recorder import (
    MOODS,
    SessionCounters,
    SessionHandle,
    SessionRecorder,
)

logger = logging.getLogger(__name__)

AFFIRMATIONS = (
    "Great job!",
    "Awesome!",
    "You got it!",
    "Well done!",
    "Fantastic!",
    "Super star!",
)
TRY_AGAIN = "Not quite, try again!"


class QuizStateError(Exception):
    """Operation not allowed in the runner's current state."""


class InvalidOption(ValueError):
    pass


class InvalidMood(ValueError):
    pass


class QuizPhase(str, enum.Enum):
    LOADING = "loading"
    ANSWERING = "answering"
    MOOD_SELECTION = "mood_selection"
    COMPLETE = "complete"
    ABANDONED = "abandoned"


class QuestionStatus(str, enum.Enum):
    UNANSWERED = "unanswered"
    RETRYING = "retrying"
    HINT_SHOWN = "hint_shown"
    LOCKED_CORRECT = "locked_correct"
    LOCKED_REVEALED = "locked_revealed"


@dataclass(frozen=True)
class RunnerTimings:
    retry_clear_seconds: float = 1.2
    hint_clear_seconds: float = 1.5
    advance_delay_seconds: float = 1.0
    max_wrong_attempts: int = 3

    @classmethod
    def from_settings(cls) -> "RunnerTimings":
        return cls(
            retry_clear_seconds=settings.RETRY_CLEAR_SECONDS,
            hint_clear_seconds=settings.HINT_CLEAR_SECONDS,
            advance_delay_seconds=settings.ADVANCE_DELAY_SECONDS,
            max_wrong_attempts=settings.MAX_WRONG_ATTEMPTS,
        )


@dataclass
class QuestionState:
    """Transient state of the question on screen; rebuilt on every advance."""

    started_at: float
    status: QuestionStatus = QuestionStatus.UNANSWERED
    selected: str | None = None
    attempts: int = 0
    hint_shown: bool = False
    answer_revealed: bool = False
    advance_ready: bool = False
    feedback: str | None = None
    clear_at: float | None = None
    ready_at: float | None = None

    @property
    def locked(self) -> bool:
        return self.status in (QuestionStatus.LOCKED_CORRECT, QuestionStatus.LOCKED_REVEALED)


@dataclass(frozen=True)
class AnswerOutcome:
    accepted: bool
    correct: bool
    status: QuestionStatus
    attempts: int
    feedback: str | None = None
    hint: str | None = None
    revealed_answer: str | None = None


@dataclass(frozen=True)
class QuizSummary:
    quiz_id: str
    correct: int
    wrong: int
    accuracy: int
    question_count: int
    words_seen: list[str] = field(default_factory=list)
    mood: str | None = None
    persisted: bool = False
    duration_seconds: float = 0.0


def _serialized(method):
    """Run *method* under the runner's lock; requests for one attempt may overlap."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class QuizRunner:
    """Drives one play-through of a quiz and reports it to the recorder."""

    def __init__(
        self,
        quiz_id: str,
        questions: Sequence[Question],
        recorder: SessionRecorder,
        user_id: uuid.UUID | None = None,
        *,
        category: str | None = None,
        quiz_type: str | None = None,
        level: str | None = None,
        history: HistoryStore | None = None,
        timings: RunnerTimings | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self.id = uuid.uuid4()
        self.quiz_id = quiz_id
        self.questions = list(questions)
        self.recorder = recorder
        self.user_id = user_id
        self.category = category or "General"
        self.quiz_type = quiz_type or "text"
        self.level = level
        self.history = history
        self.timings = timings or RunnerTimings.from_settings()
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = threading.RLock()

        self.phase = QuizPhase.LOADING
        self.index = 0
        self.counters = SessionCounters()
        self.session: SessionHandle | None = None
        self.summary: QuizSummary | None = None
        self._started_at = clock()
        self._state = QuestionState(started_at=self._started_at)

    # ── lifecycle ─────────────────────────────────────────────────────────

    @_serialized
    def start(self) -> None:
        """Open the session (unless guest) and show the first question."""
        if self.phase is not QuizPhase.LOADING:
            raise QuizStateError("Attempt already started")
        if not self.questions:
            raise QuizNotFound(self.quiz_id)
        self.session = self.recorder.open_session(self.user_id, self.quiz_id)
        now = self._clock()
        self._started_at = now
        self._state = QuestionState(started_at=now)
        self.phase = QuizPhase.ANSWERING

    @_serialized
    def teardown(self) -> bool:
        """Abandon the attempt. Safe to call at any time, any number of times."""
        if self.phase in (QuizPhase.COMPLETE, QuizPhase.ABANDONED):
            return False
        self.recorder.abandon(self.session, self.counters)
        self.phase = QuizPhase.ABANDONED
        return True

    # ── reads ─────────────────────────────────────────────────────────────

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    @property
    def current_question(self) -> Question | None:
        if self.phase is not QuizPhase.ANSWERING:
            return None
        return self.questions[self.index]

    @property
    @_serialized
    def state(self) -> QuestionState:
        self._settle(self._clock())
        return self._state

    # ── transitions ───────────────────────────────────────────────────────

    @_serialized
    def submit_answer(self, option: str) -> AnswerOutcome:
        self._require(QuizPhase.ANSWERING)
        now = self._clock()
        self._settle(now)
        state = self._state
        question = self.questions[self.index]

        if state.locked or state.selected is not None:
            return AnswerOutcome(
                accepted=False,
                correct=False,
                status=state.status,
                attempts=state.attempts,
                feedback=state.feedback,
            )
        if option not in question.options:
            raise InvalidOption(f"'{option}' is not an option for this question")

        retry_count = state.attempts
        state.attempts += 1
        state.selected = option
        correct = option == question.correct_answer

        if correct:
            self.counters.correct += 1
        else:
            self.counters.wrong += 1
        self.counters.see(question.text)
        self.recorder.log_interaction(
            self.session, question.text, correct, retry_count, now - state.started_at
        )

        timings = self.timings
        if correct:
            state.status = QuestionStatus.LOCKED_CORRECT
            state.feedback = self._rng.choice(AFFIRMATIONS)
            state.ready_at = now + timings.advance_delay_seconds
        elif state.attempts >= timings.max_wrong_attempts:
            state.status = QuestionStatus.LOCKED_REVEALED
            state.answer_revealed = True
            state.feedback = f"The correct answer is {question.correct_answer}."
            state.ready_at = now + timings.advance_delay_seconds
        elif state.attempts == timings.max_wrong_attempts - 1:
            if question.hint:
                state.status = QuestionStatus.HINT_SHOWN
                state.hint_shown = True
                state.feedback = f"Hint: {question.hint}"
            else:
                state.status = QuestionStatus.RETRYING
                state.feedback = TRY_AGAIN
            state.clear_at = now + timings.hint_clear_seconds
        else:
            state.status = QuestionStatus.RETRYING
            state.feedback = TRY_AGAIN
            state.clear_at = now + timings.retry_clear_seconds

        return AnswerOutcome(
            accepted=True,
            correct=correct,
            status=state.status,
            attempts=state.attempts,
            feedback=state.feedback,
            hint=question.hint if state.hint_shown else None,
            revealed_answer=question.correct_answer if state.answer_revealed else None,
        )

    @_serialized
    def advance(self) -> Question | None:
        """Go to the next question, or to mood selection after the last one."""
        self._require(QuizPhase.ANSWERING)
        now = self._clock()
        self._settle(now)
        if not self._state.advance_ready:
            raise QuizStateError("Current question is not ready to advance")

        if self.index >= len(self.questions) - 1:
            self.phase = QuizPhase.MOOD_SELECTION
            return None
        self.index += 1
        self._state = QuestionState(started_at=now)
        return self.questions[self.index]

    @_serialized
    def select_mood(self, mood: str) -> QuizSummary:
        """Close the session with *mood* and finish the attempt."""
        self._require(QuizPhase.MOOD_SELECTION)
        if mood not in MOODS:
            raise InvalidMood(f"Unknown mood '{mood}'")

        persisted = self.recorder.close_session(self.session, self.counters, mood)
        duration = self._clock() - self._started_at
        total = len(self.questions)
        self.phase = QuizPhase.COMPLETE
        self.summary = QuizSummary(
            quiz_id=self.quiz_id,
            correct=self.counters.correct,
            wrong=self.counters.wrong,
            accuracy=round(self.counters.correct / total * 100) if total else 0,
            question_count=total,
            words_seen=list(self.counters.words_seen),
            mood=mood,
            persisted=persisted,
            duration_seconds=round(duration, 2),
        )
        self._append_history(self.summary)
        return self.summary

    # ── internals ─────────────────────────────────────────────────────────

    def _require(self, phase: QuizPhase) -> None:
        if self.phase is not phase:
            raise QuizStateError(
                f"Attempt is {self.phase.value}, expected {phase.value}"
            )

    def _settle(self, now: float) -> None:
        state = self._state
        if state.clear_at is not None and now >= state.clear_at:
            state.selected = None
            state.feedback = None
            state.clear_at = None
        if state.ready_at is not None and now >= state.ready_at:
            state.advance_ready = True
            state.ready_at = None

    def _append_history(self, summary: QuizSummary) -> None:
        if self.history is None:
            return
        item = QuizHistoryItem(
            quiz_id=self.quiz_id,
            category=self.category,
            type=self.quiz_type,
            score=summary.correct,
            total=summary.question_count,
            accuracy=summary.accuracy,
            time_spent=format_time_spent(summary.duration_seconds),
            last_attempt=datetime.now(timezone.utc).isoformat(),
        )
        owner = str(self.user_id) if self.user_id else None
        try:
            self.history.append(owner, item)
        except OSError as e:
            logger.warning("Could not write local quiz history: %s", e)
