"""Quiz session & interaction schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class SessionOpen(BaseModel):
    """POST /api/sessions"""

    quiz_id: str | None = None


class InteractionCreate(BaseModel):
    """POST /api/sessions/{id}/interactions"""

    question_text: str
    is_correct: bool
    retry_count: int = Field(default=0, ge=0)
    time_taken_seconds: float = Field(default=0.0, ge=0)


class InteractionRead(BaseModel):
    id: uuid.UUID
    question_text: str
    is_correct: bool
    retry_count: int
    time_taken_seconds: float
    created_at: datetime

    model_config = {"from_attributes": True}


class SessionClose(BaseModel):
    """POST /api/sessions/{id}/close with final tallies and mood."""

    correct_count: int = Field(default=0, ge=0)
    wrong_count: int = Field(default=0, ge=0)
    words_seen: list[str] = []
    mood: str | None = None


class SessionRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    quiz_id: str | None = None
    started_at: datetime
    ended_at: datetime | None = None
    duration_seconds: float | None = None
    correct_count: int
    wrong_count: int
    words_seen: list[str] = []
    mood: str | None = None

    model_config = {"from_attributes": True}


class SessionDetail(SessionRead):
    """Session with its interactions."""

    interactions: list[InteractionRead] = []
