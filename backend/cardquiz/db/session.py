"""SQLAlchemy engine & session factory."""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from cardquiz.config import settings

# Created on first use so importing models never needs a reachable database
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None  # type: ignore[type-arg]


def get_engine() -> Engine:
    """Get or create the engine for ``DATABASE_URL``.

    SQLite URLs (handy for local runs) get ``check_same_thread=False`` because
    FastAPI serves sync routes from a thread pool.
    """
    global _engine
    if _engine is None:
        url = settings.DATABASE_URL
        kwargs: dict = {"echo": settings.DATABASE_ECHO}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs["pool_pre_ping"] = True
        _engine = create_engine(url, **kwargs)
    return _engine


def get_session_factory() -> sessionmaker:  # type: ignore[type-arg]
    """Get or create the session factory.

    The quiz runner's recorder opens one short-lived session per write from
    this factory; request handlers use :func:`get_db`.
    """
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autocommit=False, autoflush=False)
    return _SessionLocal


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


def get_db() -> Session:  # type: ignore[misc]
    """FastAPI dependency: one DB session per request, closed afterwards."""
    db = get_session_factory()()
    try:
        yield db  # type: ignore[misc]
    finally:
        db.close()
