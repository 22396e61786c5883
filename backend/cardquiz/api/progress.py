"""Progress & analytics routes."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, selectinload

from cardquiz.api.deps import get_current_user, get_optional_user
from cardquiz.config import settings
from cardquiz.db.models import QuizInteraction, QuizSession, User
from cardquiz.db.session import get_db
from cardquiz.schemas.progress import HistorySummary, Metrics
from cardquiz.services.history_store import HistoryStore, get_history_store
from cardquiz.services.progress import (
    InteractionRecord,
    SessionRecord,
    metrics_or_sample,
    summarize_history,
)

router = APIRouter()


def _local_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


@router.get("/", response_model=Metrics)
def get_progress(
    window_days: int = Query(default=settings.PROGRESS_WINDOW_DAYS, ge=1, le=90),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Accuracy, streak and per-day buckets for the signed-in user.

    A user with no recorded activity gets placeholder data flagged with
    ``is_sample``.
    """
    tz = _local_tz()
    today = datetime.now(tz).date()
    since = datetime.now(timezone.utc) - timedelta(days=settings.PROGRESS_LOOKBACK_DAYS)

    rows = (
        db.query(QuizSession)
        .options(selectinload(QuizSession.quiz))
        .filter(QuizSession.user_id == current_user.id, QuizSession.started_at >= since)
        .all()
    )
    interactions = (
        db.query(QuizInteraction)
        .join(QuizSession, QuizInteraction.session_id == QuizSession.id)
        .filter(QuizSession.user_id == current_user.id, QuizSession.started_at >= since)
        .all()
    )
    return metrics_or_sample(
        [SessionRecord.from_row(r) for r in rows],
        [InteractionRecord.from_row(i) for i in interactions],
        window_days,
        today=today,
        tz=tz,
    )


@router.get("/history", response_model=HistorySummary)
def get_history_summary(
    current_user: User | None = Depends(get_optional_user),
    store: HistoryStore = Depends(get_history_store),
):
    """Summary, insights and achievements over the locally kept quiz history.

    Without a bearer token the guest history is summarised.
    """
    tz = _local_tz()
    items = store.load(str(current_user.id) if current_user else None)
    return summarize_history(items, today=datetime.now(tz).date(), tz=tz)
