"""Schemas for server-held quiz attempts (``/api/play``)."""

import uuid

from pydantic import BaseModel

from cardquiz.schemas.quiz import PromptRead


class AnswerSubmit(BaseModel):
    option: str


class MoodSelect(BaseModel):
    mood: str


class QuestionStateRead(BaseModel):
    status: str
    selected: str | None = None
    attempts: int = 0
    hint_shown: bool = False
    hint: str | None = None
    answer_revealed: bool = False
    revealed_answer: str | None = None
    advance_ready: bool = False
    feedback: str | None = None


class SummaryRead(BaseModel):
    quiz_id: str
    correct: int
    wrong: int
    accuracy: int
    question_count: int
    words_seen: list[str] = []
    mood: str | None = None
    persisted: bool = False
    duration_seconds: float = 0.0


class AttemptRead(BaseModel):
    id: uuid.UUID
    quiz_id: str
    phase: str
    is_guest: bool
    session_id: uuid.UUID | None = None
    position: int
    question_count: int
    correct: int
    wrong: int
    words_seen: list[str] = []
    question: PromptRead | None = None
    state: QuestionStateRead | None = None
    summary: SummaryRead | None = None


class AnswerResult(BaseModel):
    accepted: bool
    correct: bool
    status: str
    attempts: int
    feedback: str | None = None
    hint: str | None = None
    revealed_answer: str | None = None
    attempt: AttemptRead
