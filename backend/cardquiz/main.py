"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from cardquiz.config import settings
from cardquiz.api import (
    health_router,
    users_router,
    quizzes_router,
    sessions_router,
    play_router,
    progress_router,
)
from cardquiz.schemas.common import ErrorResponse
from cardquiz.services.identity import IdentityError, auth_events
from cardquiz.services.media import get_media_manifest
from cardquiz.services.runner_registry import RunnerRegistry, get_runner_registry

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s  %(name)-25s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger(__name__)


async def _sweep_idle_attempts(registry: RunnerRegistry) -> None:
    """Periodically tear down attempts that clients walked away from."""
    while True:
        await asyncio.sleep(settings.ATTEMPT_SWEEP_INTERVAL_SECONDS)
        try:
            swept = await asyncio.to_thread(registry.sweep)
        except Exception:
            logger.exception("Idle attempt sweep failed")
            continue
        if swept:
            logger.info("Swept %d idle attempt(s)", swept)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 cARd quiz backend starting…")
    get_media_manifest()
    registry = get_runner_registry()
    unsubscribe = registry.attach(auth_events)
    sweeper = asyncio.create_task(_sweep_idle_attempts(registry))
    yield
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    unsubscribe()
    registry.teardown_all()
    logger.info("✅ cARd quiz backend shut down")


app = FastAPI(
    title="cARd Quiz API",
    description="Vocabulary flash-card quizzes with progress tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware ─────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)


# ── Error handlers ────────────────────────────────────────────────────────────


@app.exception_handler(IdentityError)
async def identity_error_handler(request: Request, exc: IdentityError):
    """Auth form errors are shown inline, so they carry a code and a message."""
    body = ErrorResponse(error_code=exc.error_code, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


# ── Routers ───────────────────────────────────────────────────────────────────

app.include_router(health_router, tags=["Health"])
app.include_router(users_router, prefix="/api/users", tags=["Users"])
app.include_router(quizzes_router, prefix="/api/quizzes", tags=["Quizzes"])
app.include_router(sessions_router, prefix="/api/sessions", tags=["Sessions"])
app.include_router(play_router, prefix="/api/play", tags=["Play"])
app.include_router(progress_router, prefix="/api/progress", tags=["Progress"])


@app.get("/")
async def root():
    return {
        "name": "cARd Quiz API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
