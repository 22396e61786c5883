"""API route package, imports all routers for main.py."""

from cardquiz.api.health import router as health_router  # noqa: F401
from cardquiz.api.users import router as users_router  # noqa: F401
from cardquiz.api.quizzes import router as quizzes_router  # noqa: F401
from cardquiz.api.sessions import router as sessions_router  # noqa: F401
from cardquiz.api.play import router as play_router  # noqa: F401
from cardquiz.api.progress import router as progress_router  # noqa: F401
