import os
from collections.abc import Iterator
from contextlib import contextmanager

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

# Load .env file (database URLs live there)
load_dotenv()


def _database_url(name: str) -> str:
    url = os.getenv(name)
    if not url:
        raise RuntimeError(f"{name} environment variable is not set")
    # Hosted Postgres hands out postgresql:// but SQLAlchemy needs postgresql+psycopg2://
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg2://", 1)
    return url


LIVE_DATABASE_URL = _database_url("LIVE_DATABASE_URL")
ARCHIVE_DATABASE_URL = _database_url("ARCHIVE_DATABASE_URL")

# One engine and session factory per store. The archive store is only ever
# reached through store_context(ArchiveSessionLocal).
live_engine = create_engine(LIVE_DATABASE_URL, future=True, echo=False, pool_pre_ping=True)
archive_engine = create_engine(ARCHIVE_DATABASE_URL, future=True, echo=False, pool_pre_ping=True)

LiveSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=live_engine, future=True)
ArchiveSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=archive_engine, future=True)

LiveBase = declarative_base()
ArchiveBase = declarative_base()


def init_db() -> None:
    """
    Import models and create tables in both stores if they don't exist.
    Alembic is the real migration tool, but this keeps local dev sane.
    """
    from app import models  # noqa: F401

    LiveBase.metadata.create_all(bind=live_engine)
    ArchiveBase.metadata.create_all(bind=archive_engine)


@contextmanager
def store_context(session_factory: sessionmaker) -> Iterator[Session]:
    """
    Scoped access to one store.

    The connection is acquired up front, so an unreachable store fails here
    rather than halfway through a batch. The session is rolled back on error
    and always closed on exit.
    """
    db: Session = session_factory()
    try:
        db.connection()
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db():
    """
    FastAPI dependency that gives you a live-store session and cleans it up after.
    """
    db: Session = LiveSessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_archive_db():
    """FastAPI dependency for an archive-store session."""
    db: Session = ArchiveSessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factories() -> tuple[sessionmaker, sessionmaker]:
    """FastAPI dependency returning the (live, archive) session factories."""
    return LiveSessionLocal, ArchiveSessionLocal
