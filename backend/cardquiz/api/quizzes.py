"""Quiz catalog routes."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from cardquiz.db.session import get_db
from cardquiz.schemas.quiz import QuizQuestionsRead, QuizRead
from cardquiz.services.catalog import QuizNotFound, list_quizzes, load_attempt, to_question_read
from cardquiz.services.media import MediaManifest, get_media_manifest

router = APIRouter()


@router.get("/", response_model=list[QuizRead])
def get_quizzes(db: Session = Depends(get_db)):
    """List every quiz with its number of active questions."""
    return list_quizzes(db)


@router.get("/{quiz_id}/questions", response_model=QuizQuestionsRead)
def get_questions(
    quiz_id: str,
    level: str | None = Query(default=None, description="easy | medium | hard"),
    db: Session = Depends(get_db),
    manifest: MediaManifest = Depends(get_media_manifest),
):
    """Return the quiz's active questions in a fresh random order.

    Used by clients that run the attempt themselves and report through
    ``/api/sessions``.
    """
    try:
        questions = load_attempt(db, quiz_id, level)
    except QuizNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return QuizQuestionsRead(
        quiz_id=quiz_id,
        questions=[to_question_read(q, manifest) for q in questions],
        question_count=len(questions),
    )
