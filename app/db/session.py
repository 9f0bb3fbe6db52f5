"""Database engine setup.

Tests run against in-memory SQLite; the test suite rebinds ``SessionLocal``
to its own StaticPool engine so every connection sees the same database.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings


def _build_engine(url: str):
    if url.startswith("postgresql"):
        return create_engine(
            url,
            future=True,
            pool_size=5,
            max_overflow=10,
            pool_recycle=3600,
            pool_pre_ping=True,
        )
    if url.startswith("sqlite"):
        # SQLite connections are shared between the API thread pool and the sweep
        return create_engine(url, future=True, connect_args={"check_same_thread": False})
    return create_engine(url, future=True)


engine = _build_engine(settings.DATABASE_URL or "sqlite:///./policyvault-dev.db")
SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
