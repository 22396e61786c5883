"""Unit tests for the quiz runner state machine.

The recorder is a MagicMock and time comes from a fake clock, so every timed
transition (wrong-answer clear, hint clear, advance delay) is driven by hand.
"""

import random
import threading
import uuid
from unittest.mock import MagicMock

import pytest

from cardquiz.services.catalog import Question, QuizNotFound
from cardquiz.services.quiz_runner import (
    AFFIRMATIONS,
    TRY_AGAIN,
    InvalidMood,
    InvalidOption,
    QuestionStatus,
    QuizPhase,
    QuizRunner,
    QuizStateError,
    RunnerTimings,
)
from cardquiz.services.session_recorder import SessionCounters, SessionHandle


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def tick(self, seconds: float) -> None:
        self.now += seconds


TIMINGS = RunnerTimings(
    retry_clear_seconds=1.2,
    hint_clear_seconds=1.5,
    advance_delay_seconds=1.0,
    max_wrong_attempts=3,
)


def _question(word: str, hint: str | None = "a hint") -> Question:
    return Question(
        id=uuid.uuid4(),
        text=f"Which one is {word}?",
        question_type="text",
        option_type="text",
        options=(word, "nope", "other"),
        correct_answer=word,
        level="easy",
        hint=hint,
    )


def _recorder(user_id=None) -> MagicMock:
    recorder = MagicMock()
    if user_id is None:
        recorder.open_session.return_value = None
    else:
        recorder.open_session.return_value = SessionHandle(
            id=uuid.uuid4(), user_id=user_id, started_at=None
        )
    recorder.close_session.return_value = True
    return recorder


def _runner(questions=None, user_id=None, clock=None, history=None):
    questions = questions if questions is not None else [_question("apple"), _question("cat")]
    runner = QuizRunner(
        "quiz1-easy",
        questions,
        _recorder(user_id),
        user_id,
        history=history,
        timings=TIMINGS,
        clock=clock or FakeClock(),
        rng=random.Random(7),
    )
    runner.start()
    return runner


# ── Start / guest ─────────────────────────────────────────────────────────────


class TestStart:
    def test_start_opens_session_for_user(self):
        user_id = uuid.uuid4()
        runner = _runner(user_id=user_id)
        runner.recorder.open_session.assert_called_once_with(user_id, "quiz1-easy")
        assert runner.phase is QuizPhase.ANSWERING
        assert runner.session is not None
        assert not runner.is_guest

    def test_guest_runs_without_session(self):
        runner = _runner()
        assert runner.is_guest
        assert runner.session is None
        outcome = runner.submit_answer(runner.current_question.correct_answer)
        assert outcome.correct
        assert runner.counters.correct == 1

    def test_start_twice_is_an_error(self):
        runner = _runner()
        with pytest.raises(QuizStateError):
            runner.start()

    def test_empty_question_list(self):
        runner = QuizRunner("empty", [], _recorder(), timings=TIMINGS, clock=FakeClock())
        with pytest.raises(QuizNotFound):
            runner.start()


# ── Answering ─────────────────────────────────────────────────────────────────


class TestSubmitAnswer:
    def test_correct_answer_locks_and_affirms(self):
        clock = FakeClock()
        runner = _runner(clock=clock)
        clock.tick(2.5)
        q = runner.current_question
        outcome = runner.submit_answer(q.correct_answer)

        assert outcome.accepted and outcome.correct
        assert outcome.status is QuestionStatus.LOCKED_CORRECT
        assert outcome.feedback in AFFIRMATIONS
        assert runner.counters.correct == 1
        assert runner.counters.words_seen == [q.text]
        runner.recorder.log_interaction.assert_called_once_with(
            runner.session, q.text, True, 0, 2.5
        )

    def test_submit_after_lock_changes_nothing(self):
        runner = _runner(user_id=uuid.uuid4())
        q = runner.current_question
        runner.submit_answer(q.correct_answer)
        before = (runner.counters.correct, runner.counters.wrong)

        again = runner.submit_answer("nope")

        assert not again.accepted
        assert (runner.counters.correct, runner.counters.wrong) == before
        assert runner.recorder.log_interaction.call_count == 1

    def test_first_wrong_clears_after_retry_delay(self):
        clock = FakeClock()
        runner = _runner(clock=clock)
        outcome = runner.submit_answer("nope")

        assert outcome.status is QuestionStatus.RETRYING
        assert outcome.feedback == TRY_AGAIN
        assert runner.state.selected == "nope"

        clock.tick(1.1)
        assert runner.state.selected == "nope"
        clock.tick(0.2)
        assert runner.state.selected is None
        assert runner.state.feedback is None

    def test_submission_ignored_while_wrong_selection_pending(self):
        clock = FakeClock()
        runner = _runner(clock=clock)
        runner.submit_answer("nope")
        ignored = runner.submit_answer(runner.current_question.correct_answer)

        assert not ignored.accepted
        assert runner.counters.correct == 0
        assert runner.counters.wrong == 1

    def test_second_wrong_shows_hint(self):
        clock = FakeClock()
        runner = _runner(clock=clock)
        runner.submit_answer("nope")
        clock.tick(1.2)
        outcome = runner.submit_answer("other")

        assert outcome.status is QuestionStatus.HINT_SHOWN
        assert outcome.hint == "a hint"
        clock.tick(1.5)
        state = runner.state
        assert state.selected is None
        assert state.hint_shown

    def test_second_wrong_without_hint_says_try_again(self):
        clock = FakeClock()
        runner = _runner(questions=[_question("apple", hint=None)], clock=clock)
        runner.submit_answer("nope")
        clock.tick(1.2)
        outcome = runner.submit_answer("other")
        assert outcome.status is QuestionStatus.RETRYING
        assert outcome.feedback == TRY_AGAIN
        assert outcome.hint is None

    def test_three_wrong_reveals_answer_and_fourth_is_ignored(self):
        clock = FakeClock()
        runner = _runner(user_id=uuid.uuid4(), clock=clock)
        q = runner.current_question
        runner.submit_answer("nope")
        clock.tick(1.2)
        runner.submit_answer("other")
        clock.tick(1.5)
        third = runner.submit_answer("nope")

        assert third.status is QuestionStatus.LOCKED_REVEALED
        assert third.revealed_answer == q.correct_answer
        assert runner.counters.wrong == 3

        clock.tick(5)
        fourth = runner.submit_answer(q.correct_answer)
        assert not fourth.accepted
        assert runner.counters.wrong == 3
        assert runner.counters.correct == 0

        retry_counts = [c.args[3] for c in runner.recorder.log_interaction.call_args_list]
        assert retry_counts == [0, 1, 2]

    def test_unknown_option_rejected(self):
        runner = _runner()
        with pytest.raises(InvalidOption):
            runner.submit_answer("not-an-option")
        assert runner.counters.answered == 0


# ── Advancing and finishing ───────────────────────────────────────────────────


class TestAdvanceAndMood:
    def test_advance_waits_for_delay(self):
        clock = FakeClock()
        runner = _runner(clock=clock)
        runner.submit_answer(runner.current_question.correct_answer)
        with pytest.raises(QuizStateError):
            runner.advance()
        clock.tick(1.0)
        nxt = runner.advance()
        assert nxt is runner.questions[1]
        assert runner.state.attempts == 0

    def test_advance_on_unanswered_question_is_rejected(self):
        runner = _runner()
        with pytest.raises(QuizStateError):
            runner.advance()

    def test_last_question_goes_to_mood_selection(self):
        clock = FakeClock()
        runner = _runner(clock=clock)
        for _ in runner.questions:
            runner.submit_answer(runner.current_question.correct_answer)
            clock.tick(1.0)
            runner.advance()
        assert runner.phase is QuizPhase.MOOD_SELECTION
        assert runner.current_question is None

    def test_mood_closes_session_and_builds_summary(self):
        clock = FakeClock()
        runner = _runner(user_id=uuid.uuid4(), clock=clock)
        runner.submit_answer(runner.current_question.correct_answer)
        clock.tick(1.0)
        runner.advance()
        runner.submit_answer("nope")
        clock.tick(1.2)
        runner.submit_answer("other")
        clock.tick(1.5)
        runner.submit_answer("nope")
        clock.tick(1.0)
        runner.advance()

        summary = runner.select_mood("happy")

        runner.recorder.close_session.assert_called_once_with(
            runner.session, runner.counters, "happy"
        )
        assert runner.phase is QuizPhase.COMPLETE
        assert summary.correct == 1
        assert summary.wrong == 3
        assert summary.accuracy == 50
        assert summary.persisted is True

    def test_mood_before_end_is_rejected(self):
        runner = _runner()
        with pytest.raises(QuizStateError):
            runner.select_mood("happy")

    def test_unknown_mood_rejected(self):
        clock = FakeClock()
        runner = _runner(questions=[_question("apple")], clock=clock)
        runner.submit_answer("apple")
        clock.tick(1.0)
        runner.advance()
        with pytest.raises(InvalidMood):
            runner.select_mood("grumpy")
        assert runner.phase is QuizPhase.MOOD_SELECTION

    def test_completed_attempt_is_written_to_history(self):
        clock = FakeClock()
        history = MagicMock()
        user_id = uuid.uuid4()
        runner = _runner(questions=[_question("apple")], user_id=user_id, clock=clock, history=history)
        runner.submit_answer("apple")
        clock.tick(65)
        runner.advance()
        runner.select_mood("excited")

        owner, item = history.append.call_args.args
        assert owner == str(user_id)
        assert item.score == 1 and item.total == 1 and item.accuracy == 100
        assert item.time_spent == "1:05"

    def test_history_write_failure_does_not_break_completion(self):
        clock = FakeClock()
        history = MagicMock()
        history.append.side_effect = OSError("disk full")
        runner = _runner(questions=[_question("apple")], clock=clock, history=history)
        runner.submit_answer("apple")
        clock.tick(1.0)
        runner.advance()
        summary = runner.select_mood("neutral")
        assert summary.mood == "neutral"
        assert runner.phase is QuizPhase.COMPLETE


# ── Teardown ──────────────────────────────────────────────────────────────────


class TestTeardown:
    def test_teardown_abandons_once(self):
        runner = _runner(user_id=uuid.uuid4())
        runner.submit_answer("nope")
        assert runner.teardown() is True
        assert runner.teardown() is False
        runner.recorder.abandon.assert_called_once()
        handle, counters = runner.recorder.abandon.call_args.args
        assert isinstance(counters, SessionCounters)
        assert counters.wrong == 1
        assert runner.phase is QuizPhase.ABANDONED

    def test_teardown_after_completion_is_noop(self):
        clock = FakeClock()
        runner = _runner(questions=[_question("apple")], user_id=uuid.uuid4(), clock=clock)
        runner.submit_answer("apple")
        clock.tick(1.0)
        runner.advance()
        runner.select_mood("happy")
        assert runner.teardown() is False
        runner.recorder.abandon.assert_not_called()

    def test_abandoned_attempt_rejects_answers(self):
        runner = _runner()
        runner.teardown()
        with pytest.raises(QuizStateError):
            runner.submit_answer("apple")


# ── Overlapping requests ──────────────────────────────────────────────────────


class TestOverlappingRequests:
    def test_simultaneous_mood_selections_close_once(self, tmp_path):
        from cardquiz.services.history_store import HistoryStore

        clock = FakeClock()
        history = HistoryStore(tmp_path)
        user_id = uuid.uuid4()
        runner = _runner(questions=[_question("apple")], user_id=user_id, clock=clock, history=history)
        runner.submit_answer("apple")
        clock.tick(1.0)
        runner.advance()

        entered, release = threading.Event(), threading.Event()

        def slow_close(*args):
            entered.set()
            release.wait(timeout=5)
            return True

        runner.recorder.close_session.side_effect = slow_close
        rejected = []

        def pick_mood():
            try:
                runner.select_mood("happy")
            except QuizStateError as e:
                rejected.append(e)

        first = threading.Thread(target=pick_mood)
        second = threading.Thread(target=pick_mood)
        first.start()
        assert entered.wait(timeout=5)
        second.start()
        second.join(timeout=0.2)
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert runner.recorder.close_session.call_count == 1
        assert len(rejected) == 1
        assert len(history.load(str(user_id))) == 1

    def test_simultaneous_answers_count_once(self):
        runner = _runner(user_id=uuid.uuid4())
        answer = runner.current_question.correct_answer
        entered, release = threading.Event(), threading.Event()

        def slow_log(*args):
            entered.set()
            release.wait(timeout=5)
            return True

        runner.recorder.log_interaction.side_effect = slow_log
        outcomes = []
        threads = [
            threading.Thread(target=lambda: outcomes.append(runner.submit_answer(answer)))
            for _ in range(2)
        ]
        threads[0].start()
        assert entered.wait(timeout=5)
        threads[1].start()
        threads[1].join(timeout=0.2)
        release.set()
        for t in threads:
            t.join(timeout=5)

        assert runner.counters.correct == 1
        assert runner.recorder.log_interaction.call_count == 1
        assert sorted(o.accepted for o in outcomes) == [False, True]
