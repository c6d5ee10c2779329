# tests/conftest.py
"""
Pytest configuration and fixtures.
"""

import os
import uuid
from datetime import datetime, timedelta

import pytest

# Set test environment before app.database builds its engines
os.environ.setdefault("LIVE_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ARCHIVE_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("LOG_JSON", "false")

# Fixed clock for scenario tests
NOW = datetime(2026, 10, 1, 12, 0, 0)


def _memory_sessions(base):
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from sqlalchemy.pool import StaticPool

    from app import models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    base.metadata.create_all(bind=engine)
    return engine, sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def live_sessions():
    """Session factory for an in-memory live store."""
    from app.database import LiveBase

    engine, factory = _memory_sessions(LiveBase)
    yield factory
    engine.dispose()


@pytest.fixture
def archive_sessions():
    """Session factory for an in-memory archive store."""
    from app.database import ArchiveBase

    engine, factory = _memory_sessions(ArchiveBase)
    yield factory
    engine.dispose()


@pytest.fixture
def live_db(live_sessions):
    """Session for seeding and inspecting the live store."""
    db = live_sessions()
    yield db
    db.close()


@pytest.fixture
def archive_db(archive_sessions):
    """Session for seeding and inspecting the archive store."""
    db = archive_sessions()
    yield db
    db.close()


@pytest.fixture
def unreachable_sessions(tmp_path):
    """Session factory whose store can never be opened."""
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker

    engine = create_engine(f"sqlite:///{tmp_path}/missing/dir/store.db")
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def metrics():
    from app.metrics import MetricsCollector

    return MetricsCollector()


def make_signature(**overrides):
    """Build a PendingSignature with sensible defaults."""
    from app.models import PendingSignature

    values = {
        "id": uuid.uuid4(),
        "validation_secret": uuid.uuid4().hex,
        "source": "website",
        "petition_id": "petition-1",
        "first_name": "Test",
        "last_name": "Signer",
        "email": "signer@example.com",
        "postcode": "SW1A 1AA",
        "country_code": "GB",
        "received_at": NOW - timedelta(days=20),
        "processed": False,
    }
    values.update(overrides)
    return PendingSignature(**values)


def make_validation(**overrides):
    """Build a PendingValidation with sensible defaults."""
    from app.models import PendingValidation

    values = {
        "id": uuid.uuid4(),
        "validation_secret": uuid.uuid4().hex,
        "source": "email-link",
        "received_at": NOW - timedelta(days=20),
        "validation_closes_at": NOW - timedelta(days=1),
        "remote_address": "192.0.2.1",
    }
    values.update(overrides)
    return PendingValidation(**values)


def count_rows(db, model) -> int:
    """Row count for a model, bypassing anything cached on the session."""
    db.expire_all()
    return db.query(model).count()
