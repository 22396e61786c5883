"""Progress / analytics schemas."""

import datetime as dt

from pydantic import BaseModel


class DayBucket(BaseModel):
    """Activity for one calendar day of the trailing window."""

    date: dt.date
    label: str
    quiz_count: int = 0
    correct_count: int = 0
    mood: str | None = None
    mood_emoji: str


class CategoryBreakdown(BaseModel):
    category: str
    sessions: int
    correct: int
    wrong: int
    accuracy: int


class Metrics(BaseModel):
    """Derived display metrics; ``is_sample`` marks synthetic placeholder data."""

    accuracy: int
    total_correct: int
    total_wrong: int
    sessions_completed: int
    streak: int
    window_days: int
    days: list[DayBucket] = []
    categories: list[CategoryBreakdown] = []
    interaction_count: int = 0
    first_try_accuracy: int = 0
    average_time_seconds: float = 0.0
    is_sample: bool = False


class Insight(BaseModel):
    emoji: str
    title: str
    description: str


class CategoryAverage(BaseModel):
    category: str
    average_score: float


class HistorySummary(BaseModel):
    """Summary of the locally stored quiz history."""

    total_attempts: int = 0
    average_accuracy: float = 0.0
    total_correct: int = 0
    total_questions: int = 0
    recent_activity: int = 0
    improvement: float | None = None
    streak: int = 0
    performance: str | None = None
    strongest_category: str | None = None
    category_averages: list[CategoryAverage] = []
    type_counts: dict[str, int] = {}
    insights: list[Insight] = []
    achievements: list[Insight] = []
