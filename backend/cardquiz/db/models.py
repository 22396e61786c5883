"""SQLAlchemy ORM models for the vocabulary quiz platform.

Tables
------
- users                 – learner accounts + profile
- revoked_tokens        – signed-out JWTs (by jti)
- password_reset_tokens – single-use reset tokens (hashed)
- quizzes               – quiz catalog entries (slug ids such as ``quiz1-easy``)
- quiz_questions        – questions belonging to a quiz
- quiz_sessions         – one timed quiz play-through per row
- quiz_interactions     – one row per answer submission within a session
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cardquiz.db.session import Base


# ── helpers ───────────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


# ── Enums (stored as VARCHAR via SQLAlchemy Enum) ─────────────────────────────


class QuestionTypeEnum(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"


class OptionTypeEnum(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"


class QuizLevelEnum(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuizStrategyEnum(str, enum.Enum):
    REPETITION = "repetition"
    ASSOCIATION = "association"
    CLASSIFICATION = "classification"


# ── Users ─────────────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    full_name: Mapped[str] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    sessions: Mapped[list["QuizSession"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


class RevokedToken(Base):
    """Access tokens invalidated by sign-out."""

    __tablename__ = "revoked_tokens"

    jti: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    revoked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class PasswordResetToken(Base):
    """Single-use password reset token; only the SHA-256 digest is stored."""

    __tablename__ = "password_reset_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    user: Mapped["User"] = relationship("User")


# ── Quiz catalog ──────────────────────────────────────────────────────────────


class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    category: Mapped[str] = mapped_column(String(100), index=True)
    level: Mapped[QuizLevelEnum] = mapped_column(
        Enum(QuizLevelEnum, name="quiz_level_enum"), default=QuizLevelEnum.EASY
    )
    strategy: Mapped[QuizStrategyEnum] = mapped_column(
        Enum(QuizStrategyEnum, name="quiz_strategy_enum"),
        default=QuizStrategyEnum.CLASSIFICATION,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    questions: Mapped[list["QuizQuestion"]] = relationship(
        back_populates="quiz", cascade="all, delete-orphan"
    )


class QuizQuestion(Base):
    """A single question; ``options`` is a JSON list of option values."""

    __tablename__ = "quiz_questions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    quiz_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("quizzes.id"), index=True
    )
    question_text: Mapped[str] = mapped_column(Text)
    question_type: Mapped[QuestionTypeEnum] = mapped_column(
        Enum(QuestionTypeEnum, name="question_type_enum"),
        default=QuestionTypeEnum.TEXT,
    )
    media_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    option_type: Mapped[OptionTypeEnum] = mapped_column(
        Enum(OptionTypeEnum, name="option_type_enum"), default=OptionTypeEnum.TEXT
    )
    options: Mapped[list] = mapped_column(JSON, default=list)
    correct_answer: Mapped[str] = mapped_column(Text)
    hint: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    level: Mapped[QuizLevelEnum] = mapped_column(
        Enum(QuizLevelEnum, name="quiz_level_enum", create_constraint=False),
        default=QuizLevelEnum.EASY,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    quiz: Mapped["Quiz"] = relationship(back_populates="questions")


# ── Sessions & interactions ───────────────────────────────────────────────────


class QuizSession(Base):
    """One quiz play-through. ``ended_at`` stays NULL while the session is open."""

    __tablename__ = "quiz_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), index=True
    )
    quiz_id: Mapped[str | None] = mapped_column(
        String(100), ForeignKey("quizzes.id"), nullable=True
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    duration_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)
    correct_count: Mapped[int] = mapped_column(Integer, default=0)
    wrong_count: Mapped[int] = mapped_column(Integer, default=0)
    words_seen: Mapped[list] = mapped_column(JSON, default=list)
    mood: Mapped[str | None] = mapped_column(String(20), nullable=True)

    user: Mapped["User"] = relationship(back_populates="sessions")
    quiz: Mapped["Quiz | None"] = relationship("Quiz")
    interactions: Mapped[list["QuizInteraction"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="QuizInteraction.created_at",
    )


class QuizInteraction(Base):
    """A single answer submission (each retry gets its own row)."""

    __tablename__ = "quiz_interactions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("quiz_sessions.id"), index=True
    )
    question_text: Mapped[str] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean)
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    time_taken_seconds: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    session: Mapped["QuizSession"] = relationship(back_populates="interactions")
