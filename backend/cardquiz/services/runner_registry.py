"""In-process registry of server-held quiz attempts."""

import logging
import threading
import time
import uuid
from typing import Callable, Sequence

from cardquiz.config import settings
from cardquiz.db.session import get_session_factory
from cardquiz.services.catalog import Question
from cardquiz.services.history_store import HistoryStore, get_history_store
from cardquiz.services.identity import AuthEvent, AuthEvents, AuthEventType
from cardquiz.services.quiz_runner import QuizRunner
from cardquiz.services.session_recorder import SessionRecorder

logger = logging.getLogger(__name__)


class AttemptNotFound(Exception):
    pass


class RunnerRegistry:
    """Owns the live :class:`QuizRunner` objects, keyed by attempt id.

    Attempts leave the registry by being torn down, which closes or discards
    their session:

    * explicitly (``DELETE``, replay, sign-out, shutdown);
    * when a signed-in owner starts another attempt, since a learner plays one
      quiz at a time (a finished attempt stays readable until then);
    * after ``idle_timeout`` seconds without a request;
    * for guests, who have no identity to key on, when more than
      ``max_guest_attempts`` are live (least recently used first).
    """

    def __init__(
        self,
        recorder: SessionRecorder,
        history: HistoryStore | None = None,
        runner_factory: Callable[..., QuizRunner] = QuizRunner,
        *,
        idle_timeout: float | None = None,
        max_guest_attempts: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.recorder = recorder
        self.history = history
        self.idle_timeout = (
            settings.ATTEMPT_IDLE_TIMEOUT_SECONDS if idle_timeout is None else idle_timeout
        )
        self.max_guest_attempts = (
            settings.MAX_GUEST_ATTEMPTS if max_guest_attempts is None else max_guest_attempts
        )
        self._runner_factory = runner_factory
        self._clock = clock
        self._runners: dict[uuid.UUID, QuizRunner] = {}
        self._last_seen: dict[uuid.UUID, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._runners)

    # ── attempts ──────────────────────────────────────────────────────────

    def start(
        self,
        quiz_id: str,
        questions: Sequence[Question],
        user_id: uuid.UUID | None,
        *,
        category: str | None = None,
        quiz_type: str | None = None,
        level: str | None = None,
    ) -> QuizRunner:
        runner = self._runner_factory(
            quiz_id,
            questions,
            self.recorder,
            user_id,
            category=category,
            quiz_type=quiz_type,
            level=level,
            history=self.history,
        )
        with self._lock:
            evicted = self._evict_for(user_id)
        # the old session is closed before the new one opens
        self._teardown_evicted(evicted)

        runner.start()
        with self._lock:
            self._runners[runner.id] = runner
            self._last_seen[runner.id] = self._clock()
        logger.info(
            "Started attempt %s on quiz %s (%s)",
            runner.id,
            quiz_id,
            "guest" if user_id is None else f"user {user_id}",
        )
        return runner

    def get(self, attempt_id: uuid.UUID, user_id: uuid.UUID | None) -> QuizRunner:
        with self._lock:
            runner = self._runners.get(attempt_id)
            if runner is None or runner.user_id != user_id:
                raise AttemptNotFound(str(attempt_id))
            self._last_seen[attempt_id] = self._clock()
        return runner

    def teardown(self, attempt_id: uuid.UUID, user_id: uuid.UUID | None) -> QuizRunner:
        runner = self.get(attempt_id, user_id)
        with self._lock:
            self._pop(attempt_id)
        runner.teardown()
        return runner

    def replay(
        self,
        attempt_id: uuid.UUID,
        user_id: uuid.UUID | None,
        questions: Sequence[Question],
        level: str | None = None,
    ) -> QuizRunner:
        """Close-then-reopen: tear down *attempt_id*, start a fresh attempt.

        Without *level* the new attempt keeps the level of the old one.
        """
        old = self.teardown(attempt_id, user_id)
        return self.start(
            old.quiz_id,
            questions,
            user_id,
            category=old.category,
            quiz_type=old.quiz_type,
            level=level if level is not None else old.level,
        )

    def sweep(self) -> int:
        """Tear down attempts idle for longer than ``idle_timeout``."""
        with self._lock:
            idle = self._pop_idle(self._clock())
        self._teardown_evicted(idle)
        return len(idle)

    def teardown_user(self, user_id: uuid.UUID) -> int:
        with self._lock:
            owned = [r for r in self._runners.values() if r.user_id == user_id]
            for runner in owned:
                self._pop(runner.id)
        for runner in owned:
            runner.teardown()
        return len(owned)

    def teardown_all(self) -> None:
        with self._lock:
            runners = list(self._runners.values())
            self._runners.clear()
            self._last_seen.clear()
        for runner in runners:
            runner.teardown()

    # ── auth lifecycle ────────────────────────────────────────────────────

    def attach(self, events: AuthEvents) -> Callable[[], None]:
        """Subscribe to auth changes; returns the unsubscribe callable."""
        return events.subscribe(self._on_auth_event)

    def _on_auth_event(self, event: AuthEvent) -> None:
        if event.type is AuthEventType.SIGNED_OUT:
            count = self.teardown_user(event.user_id)
            if count:
                logger.info("Tore down %d attempt(s) after sign-out of %s", count, event.user_id)

    # ── eviction (callers hold the lock) ──────────────────────────────────

    def _pop(self, attempt_id: uuid.UUID) -> QuizRunner | None:
        self._last_seen.pop(attempt_id, None)
        return self._runners.pop(attempt_id, None)

    def _pop_idle(self, now: float) -> list[QuizRunner]:
        stale = [
            attempt_id for attempt_id, seen in self._last_seen.items()
            if now - seen > self.idle_timeout
        ]
        return [r for r in map(self._pop, stale) if r is not None]

    def _evict_for(self, user_id: uuid.UUID | None) -> list[QuizRunner]:
        evicted = self._pop_idle(self._clock())
        if user_id is not None:
            owned = [k for k, r in self._runners.items() if r.user_id == user_id]
            evicted.extend(self._pop(k) for k in owned)
            return evicted

        guests = sorted(
            (k for k, r in self._runners.items() if r.user_id is None),
            key=self._last_seen.__getitem__,
        )
        overflow = len(guests) - self.max_guest_attempts + 1
        if overflow > 0:
            evicted.extend(self._pop(k) for k in guests[:overflow])
        return evicted

    def _teardown_evicted(self, runners: list[QuizRunner]) -> None:
        for runner in runners:
            if runner.teardown():
                logger.info("Tore down unfinished attempt %s on quiz %s", runner.id, runner.quiz_id)


_registry: RunnerRegistry | None = None


def get_runner_registry() -> RunnerRegistry:
    """Process-wide registry, created on first use (FastAPI dependency)."""
    global _registry
    if _registry is None:
        _registry = RunnerRegistry(
            SessionRecorder(get_session_factory()),
            get_history_store(),
        )
    return _registry
