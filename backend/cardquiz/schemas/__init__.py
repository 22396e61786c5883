"""Pydantic schemas, re-exported for convenience."""

from cardquiz.schemas.common import ErrorResponse, HealthRead, SuccessResponse  # noqa: F401
from cardquiz.schemas.user import (  # noqa: F401
    AuthResponse,
    UserCreate,
    UserLogin,
    UserRead,
)
from cardquiz.schemas.quiz import (  # noqa: F401
    PromptRead,
    QuestionRead,
    QuizQuestionsRead,
    QuizRead,
)
from cardquiz.schemas.session import (  # noqa: F401
    InteractionCreate,
    SessionClose,
    SessionDetail,
    SessionRead,
)
from cardquiz.schemas.play import (  # noqa: F401
    AnswerResult,
    AttemptRead,
)
from cardquiz.schemas.progress import (  # noqa: F401
    HistorySummary,
    Metrics,
)
