"""Question catalog reads: quiz list and shuffled play-throughs."""

import logging
import random
import uuid
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from cardquiz.db.models import Quiz, QuizLevelEnum, QuizQuestion
from cardquiz.schemas.quiz import OptionRead, PromptRead, QuestionRead, QuizRead
from cardquiz.services.media import MediaManifest

logger = logging.getLogger(__name__)


class QuizNotFound(Exception):
    """No active questions exist for the requested quiz (and level)."""

    def __init__(self, quiz_id: str, level: str | None = None) -> None:
        detail = f"No questions found for quiz '{quiz_id}'"
        if level:
            detail += f" at level '{level}'"
        super().__init__(detail)
        self.quiz_id = quiz_id
        self.level = level


@dataclass(frozen=True)
class Question:
    """Immutable question snapshot used for one attempt."""

    id: uuid.UUID
    text: str
    question_type: str
    option_type: str
    options: tuple[str, ...]
    correct_answer: str
    level: str
    media_ref: str | None = None
    hint: str | None = None
    category: str | None = None

    def __post_init__(self) -> None:
        if len(self.options) < 2:
            raise ValueError(f"Question {self.id} needs at least two options")
        if self.correct_answer not in self.options:
            raise ValueError(f"Question {self.id} correct answer is not an option")

    @classmethod
    def from_row(cls, row: QuizQuestion) -> "Question":
        return cls(
            id=row.id,
            text=row.question_text,
            question_type=row.question_type.value,
            option_type=row.option_type.value,
            options=tuple(str(o) for o in (row.options or [])),
            correct_answer=row.correct_answer,
            level=row.level.value,
            media_ref=row.media_ref,
            hint=row.hint,
            category=row.category,
        )


def list_quizzes(db: Session) -> list[QuizRead]:
    """Quiz list with the number of active questions per quiz."""
    counts = dict(
        db.query(QuizQuestion.quiz_id, func.count(QuizQuestion.id))
        .filter(QuizQuestion.is_active.is_(True))
        .group_by(QuizQuestion.quiz_id)
        .all()
    )
    quizzes = db.query(Quiz).order_by(Quiz.id).all()
    return [
        QuizRead(
            id=q.id,
            title=q.title,
            category=q.category,
            level=q.level.value,
            strategy=q.strategy.value,
            question_count=counts.get(q.id, 0),
        )
        for q in quizzes
    ]


def load_attempt(
    db: Session,
    quiz_id: str,
    level: str | None = None,
    rng: random.Random | None = None,
) -> list[Question]:
    """Fetch the active questions of *quiz_id* and return them shuffled.

    Malformed rows (fewer than two options, answer not among the options)
    are skipped with a warning.

    Raises:
        QuizNotFound: if no usable question remains.
    """
    q = db.query(QuizQuestion).filter(
        QuizQuestion.quiz_id == quiz_id,
        QuizQuestion.is_active.is_(True),
    )
    if level:
        try:
            q = q.filter(QuizQuestion.level == QuizLevelEnum(level))
        except ValueError:
            raise QuizNotFound(quiz_id, level)

    questions: list[Question] = []
    for row in q.order_by(QuizQuestion.id).all():
        try:
            questions.append(Question.from_row(row))
        except ValueError as e:
            logger.warning("Skipping malformed question: %s", e)

    if not questions:
        raise QuizNotFound(quiz_id, level)

    (rng or random).shuffle(questions)
    return questions


def to_prompt_read(question: Question, manifest: MediaManifest) -> PromptRead:
    """Build the answer-free payload, resolving media names through the manifest."""
    image_options = question.option_type == "image"
    return PromptRead(
        id=question.id,
        question_text=question.text,
        question_type=question.question_type,
        media_url=manifest.resolve(question.media_ref),
        option_type=question.option_type,
        options=[
            OptionRead(
                value=value,
                media_url=manifest.resolve(value) if image_options else None,
            )
            for value in question.options
        ],
        category=question.category,
        level=question.level,
    )


def to_question_read(question: Question, manifest: MediaManifest) -> QuestionRead:
    """Full payload for client-run attempts, answer and hint included."""
    return QuestionRead(
        **to_prompt_read(question, manifest).model_dump(),
        correct_answer=question.correct_answer,
        hint=question.hint,
    )
