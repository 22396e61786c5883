"""Quiz catalog schemas."""

import uuid
from enum import Enum

from pydantic import BaseModel


class QuestionType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"


class OptionType(str, Enum):
    TEXT = "text"
    IMAGE = "image"


class QuizRead(BaseModel):
    """Entry in the quiz list."""

    id: str
    title: str
    category: str
    level: str
    strategy: str
    question_count: int = 0


class OptionRead(BaseModel):
    """One answer option; ``media_url`` is set for image options."""

    value: str
    media_url: str | None = None


class PromptRead(BaseModel):
    """What the learner sees of a question. Server-held attempts send only this;
    the hint and the answer come through the attempt state once earned.
    """

    id: uuid.UUID
    question_text: str
    question_type: QuestionType
    media_url: str | None = None
    option_type: OptionType
    options: list[OptionRead]
    category: str | None = None
    level: str


class QuestionRead(PromptRead):
    """Single question inside a quiz attempt.

    The correct answer and hint are included: clients that run the attempt
    themselves need them to apply the retry policy locally.
    """

    correct_answer: str
    hint: str | None = None


class QuizQuestionsRead(BaseModel):
    """GET /api/quizzes/{quiz_id}/questions, a shuffled play-through."""

    quiz_id: str
    questions: list[QuestionRead]
    question_count: int
