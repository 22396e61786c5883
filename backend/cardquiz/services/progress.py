"""Progress aggregation over session / interaction records.

Everything here is pure: callers fetch the records, pass ``today`` and a
timezone, and get the same metrics back for the same inputs.
"""

import uuid
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Sequence

from cardquiz.db.models import QuizInteraction, QuizSession
from cardquiz.schemas.progress import (
    CategoryAverage,
    CategoryBreakdown,
    DayBucket,
    HistorySummary,
    Insight,
    Metrics,
)
from cardquiz.services.history_store import QuizHistoryItem
from cardquiz.services.session_recorder import MOODS

MOOD_PLACEHOLDER = "➖"


@dataclass(frozen=True)
class SessionRecord:
    started_at: datetime
    ended_at: datetime | None = None
    correct_count: int = 0
    wrong_count: int = 0
    mood: str | None = None
    category: str | None = None
    id: uuid.UUID | None = None

    @property
    def has_activity(self) -> bool:
        return self.ended_at is not None or self.correct_count > 0 or self.wrong_count > 0

    @classmethod
    def from_row(cls, row: QuizSession) -> "SessionRecord":
        return cls(
            id=row.id,
            started_at=row.started_at,
            ended_at=row.ended_at,
            correct_count=row.correct_count or 0,
            wrong_count=row.wrong_count or 0,
            mood=row.mood,
            category=row.quiz.category if row.quiz else None,
        )


@dataclass(frozen=True)
class InteractionRecord:
    is_correct: bool
    retry_count: int = 0
    time_taken_seconds: float = 0.0
    question_text: str = ""

    @classmethod
    def from_row(cls, row: QuizInteraction) -> "InteractionRecord":
        return cls(
            is_correct=row.is_correct,
            retry_count=row.retry_count,
            time_taken_seconds=row.time_taken_seconds,
            question_text=row.question_text,
        )


# ── helpers ───────────────────────────────────────────────────────────────────


def local_day(value: datetime, tz: tzinfo) -> date:
    """Calendar day of *value* in *tz*; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz).date()


def streak_length(active_days: Iterable[date], today: date) -> int:
    """Consecutive active days walking back from *today* (0 if today is idle)."""
    days = set(active_days)
    streak = 0
    cursor = today
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def _percent(part: float, whole: float) -> int:
    return round(part / whole * 100) if whole else 0


def mood_emoji(mood: str | None) -> str:
    return MOODS.get(mood or "", MOOD_PLACEHOLDER)


# ── Metrics over stored sessions ──────────────────────────────────────────────


def compute_metrics(
    sessions: Sequence[SessionRecord],
    interactions: Sequence[InteractionRecord] = (),
    window_days: int = 7,
    *,
    today: date,
    tz: tzinfo = timezone.utc,
) -> Metrics:
    """Derive accuracy, streak, per-day buckets and breakdowns.

    A session counts toward a day when it shows activity (an end time or
    non-zero counters). Accuracy is taken over every session passed in.
    """
    if window_days < 1:
        raise ValueError("window_days must be at least 1")

    active_days: set[date] = set()
    per_day: dict[date, list[SessionRecord]] = {}
    categories: "OrderedDict[str, list[SessionRecord]]" = OrderedDict()
    total_correct = total_wrong = completed = 0

    for s in sorted(sessions, key=_sort_key):
        total_correct += s.correct_count
        total_wrong += s.wrong_count
        if not s.has_activity:
            continue
        day = local_day(s.started_at, tz)
        active_days.add(day)
        per_day.setdefault(day, []).append(s)
        categories.setdefault(s.category or "General", []).append(s)
        if s.ended_at is not None:
            completed += 1

    days: list[DayBucket] = []
    for offset in range(window_days - 1, -1, -1):
        day = today - timedelta(days=offset)
        day_sessions = per_day.get(day, [])
        with_mood = [s for s in day_sessions if s.mood]
        mood = with_mood[-1].mood if with_mood else None
        days.append(
            DayBucket(
                date=day,
                label=day.strftime("%a"),
                quiz_count=len(day_sessions),
                correct_count=sum(s.correct_count for s in day_sessions),
                mood=mood,
                mood_emoji=mood_emoji(mood),
            )
        )

    breakdown = [
        CategoryBreakdown(
            category=name,
            sessions=len(rows),
            correct=sum(r.correct_count for r in rows),
            wrong=sum(r.wrong_count for r in rows),
            accuracy=_percent(
                sum(r.correct_count for r in rows),
                sum(r.correct_count + r.wrong_count for r in rows),
            ),
        )
        for name, rows in categories.items()
    ]

    first_tries = [i for i in interactions if i.retry_count == 0]
    return Metrics(
        accuracy=_percent(total_correct, total_correct + total_wrong),
        total_correct=total_correct,
        total_wrong=total_wrong,
        sessions_completed=completed,
        streak=streak_length(active_days, today),
        window_days=window_days,
        days=days,
        categories=breakdown,
        interaction_count=len(interactions),
        first_try_accuracy=_percent(
            sum(1 for i in first_tries if i.is_correct), len(first_tries)
        ),
        average_time_seconds=(
            round(sum(i.time_taken_seconds for i in interactions) / len(interactions), 2)
            if interactions
            else 0.0
        ),
    )


def _sort_key(record: SessionRecord) -> datetime:
    value = record.started_at
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# ── Synthetic placeholder for brand-new users ─────────────────────────────────

_SAMPLE_QUIZZES = (1, 2, 0, 1, 3, 2, 1)
_SAMPLE_CORRECT = (4, 7, 0, 3, 10, 6, 4)
_SAMPLE_MOODS = ("happy", "excited", None, "neutral", "happy", "confused", "happy")


def sample_metrics(today: date, window_days: int = 7) -> Metrics:
    """Placeholder metrics so an empty account still renders; ``is_sample`` is set."""
    days = []
    for offset in range(window_days - 1, -1, -1):
        day = today - timedelta(days=offset)
        idx = (window_days - 1 - offset) % len(_SAMPLE_QUIZZES)
        mood = _SAMPLE_MOODS[idx]
        days.append(
            DayBucket(
                date=day,
                label=day.strftime("%a"),
                quiz_count=_SAMPLE_QUIZZES[idx],
                correct_count=_SAMPLE_CORRECT[idx],
                mood=mood,
                mood_emoji=mood_emoji(mood),
            )
        )
    correct = sum(d.correct_count for d in days)
    wrong = round(correct / 3)
    return Metrics(
        accuracy=_percent(correct, correct + wrong),
        total_correct=correct,
        total_wrong=wrong,
        sessions_completed=sum(d.quiz_count for d in days),
        streak=streak_length((d.date for d in days if d.quiz_count), today),
        window_days=window_days,
        days=days,
        is_sample=True,
    )


def metrics_or_sample(
    sessions: Sequence[SessionRecord],
    interactions: Sequence[InteractionRecord] = (),
    window_days: int = 7,
    *,
    today: date,
    tz: tzinfo = timezone.utc,
) -> Metrics:
    if not any(s.has_activity for s in sessions):
        return sample_metrics(today, window_days)
    return compute_metrics(sessions, interactions, window_days, today=today, tz=tz)


# ── Local history summary ─────────────────────────────────────────────────────


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _performance_band(average_accuracy: float) -> str:
    if average_accuracy >= 80:
        return "Excellent"
    if average_accuracy >= 60:
        return "Good Progress"
    return "Needs Support"


def _attempt_day(item: QuizHistoryItem, tz: tzinfo) -> date | None:
    try:
        return local_day(datetime.fromisoformat(item.last_attempt), tz)
    except ValueError:
        return None


def summarize_history(
    items: Sequence[QuizHistoryItem],
    *,
    today: date,
    tz: tzinfo = timezone.utc,
) -> HistorySummary:
    """Summary, insights and achievements for the local history list (oldest first)."""
    if not items:
        return HistorySummary()

    accuracies = [float(i.accuracy) for i in items]
    average = _mean(accuracies)
    yesterday = today - timedelta(days=1)
    days = [_attempt_day(i, tz) for i in items]

    improvement = None
    if len(items) > 3:
        improvement = round(_mean(accuracies[-3:]) - _mean(accuracies[:-3]), 1)

    scores: "OrderedDict[str, list[int]]" = OrderedDict()
    type_counts: dict[str, int] = {}
    for item in items:
        scores.setdefault(item.category, []).append(item.score)
        type_counts[item.type] = type_counts.get(item.type, 0) + 1
    category_averages = [
        CategoryAverage(category=name, average_score=round(_mean(vals), 2))
        for name, vals in scores.items()
    ]
    strongest = max(category_averages, key=lambda c: c.average_score).category

    streak = streak_length((d for d in days if d is not None), today)

    return HistorySummary(
        total_attempts=len(items),
        average_accuracy=round(average, 1),
        total_correct=sum(i.score for i in items),
        total_questions=sum(i.total for i in items),
        recent_activity=sum(1 for d in days if d in (today, yesterday)),
        improvement=improvement,
        streak=streak,
        performance=_performance_band(average),
        strongest_category=strongest,
        category_averages=category_averages,
        type_counts=type_counts,
        insights=_insights(items, accuracies, strongest),
        achievements=_achievements(items, average, streak, len(scores)),
    )


def _insights(
    items: Sequence[QuizHistoryItem], accuracies: list[float], strongest: str
) -> list[Insight]:
    recent = _mean(accuracies[-5:])
    if recent >= 90:
        insights = [Insight(emoji="🌟", title="Excellent Performance!",
                            description="Mastering concepts with 90%+ accuracy")]
    elif recent >= 75:
        insights = [Insight(emoji="📈", title="Great Progress!",
                            description="Steady improvement with strong understanding")]
    elif recent >= 60:
        insights = [Insight(emoji="💪", title="Keep Going!",
                            description="Building confidence through consistent practice")]
    else:
        insights = [Insight(emoji="🎯", title="Focus Time!",
                            description="Consider reviewing topics that need more attention")]

    insights.append(Insight(emoji="🏆", title="Strong Subject Area",
                            description=f"Excellent performance in {strongest}"))
    if len(items) >= 10:
        insights.append(Insight(emoji="⭐", title="Consistent Learner",
                                description=f"{len(items)} quiz attempts show dedication to learning"))
    return insights


def _achievements(
    items: Sequence[QuizHistoryItem], average: float, streak: int, category_count: int
) -> list[Insight]:
    total = len(items)
    perfect = sum(1 for i in items if i.accuracy == 100)
    earned = []
    if total >= 5:
        earned.append(Insight(emoji="🎯", title="Quiz Explorer", description=f"Completed {total} quizzes"))
    if total >= 10:
        earned.append(Insight(emoji="🏃", title="Learning Runner", description="Completed 10+ quizzes"))
    if total >= 20:
        earned.append(Insight(emoji="🌟", title="Quiz Master", description="Completed 20+ quizzes"))
    if average >= 80:
        earned.append(Insight(emoji="🎓", title="High Achiever", description=f"{round(average)}% average accuracy"))
    if average >= 90:
        earned.append(Insight(emoji="🏆", title="Excellence Award", description="Consistently high performance"))
    if perfect >= 3:
        earned.append(Insight(emoji="💯", title="Perfect Scorer", description=f"{perfect} perfect scores"))
    if category_count >= 3:
        earned.append(Insight(emoji="🎨", title="Well-Rounded", description=f"Learning across {category_count} subjects"))
    if streak >= 3:
        earned.append(Insight(emoji="🔥", title="Learning Streak", description=f"{streak} days in a row"))
    return earned
