# app/models.py
"""
Signature queue and archive database models.

Live store (LiveBase):
- PendingSignature: signatures waiting for (or done with) validation
- PendingValidation: validation tokens, matched to signatures by secret
- QueueStatus: when each upstream queue was last fully drained

Archive store (ArchiveBase):
- ArchivedSignatureNotValidated: signatures that were never validated
- ArchivedSignatureProcessed: signatures whose validation completed
- ArchivedValidationProcessed: validations belonging to processed signatures
- ArchivedValidationOrphaned: validations with no signature

Archive rows keep the live row's id as primary key, so archiving the same
row twice overwrites instead of duplicating.
"""

from datetime import datetime
from enum import Enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    String,
    Uuid,
)

from app.database import ArchiveBase, LiveBase


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class ArchiveCategory(str, Enum):
    """Archive destination for a live row."""
    NOT_VALIDATED = "not_validated"
    PROCESSED = "processed"
    ORPHANED = "orphaned"


# -----------------------------------------------------------------------------
# Shared columns
# -----------------------------------------------------------------------------

class SignatureColumns:
    """Columns shared by the live signature queue and its archives."""

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    validation_secret = Column(String(64), nullable=False, unique=True)
    source = Column(String(64), nullable=False)

    petition_id = Column(String(64), nullable=False)
    petition_closes_at = Column(DateTime, nullable=True)
    validation_closes_at = Column(DateTime, nullable=True)

    # Submitter
    first_name = Column(String(128), nullable=True)
    last_name = Column(String(128), nullable=True)
    email = Column(String(255), nullable=True)
    postcode = Column(String(16), nullable=True)
    country_code = Column(String(2), nullable=True)

    # Lifecycle
    received_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    queued_at = Column(DateTime, nullable=True)
    validated_at = Column(DateTime, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    processed = Column(Boolean, default=False, nullable=False)


class ValidationColumns:
    """Columns shared by the live validation queue and its archives."""

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    validation_secret = Column(String(64), nullable=False)
    source = Column(String(64), nullable=True)
    received_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    validation_closes_at = Column(DateTime, nullable=False)
    remote_address = Column(String(45), nullable=True)


class ArchiveColumns:
    """Bookkeeping columns present only on archive tables."""

    archived_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


# -----------------------------------------------------------------------------
# Live store
# -----------------------------------------------------------------------------

class PendingSignature(SignatureColumns, LiveBase):
    """A signature in the pending-validation queue."""
    __tablename__ = "pending_signatures"

    __table_args__ = (
        Index("ix_pending_signatures_processed", "processed"),
        Index("ix_pending_signatures_received_at", "received_at"),
    )


class PendingValidation(ValidationColumns, LiveBase):
    """A validation token waiting to be matched to its signature."""
    __tablename__ = "pending_validations"

    __table_args__ = (
        Index("ix_pending_validations_secret", "validation_secret"),
        Index("ix_pending_validations_closes_at", "validation_closes_at"),
    )


class QueueStatus(LiveBase):
    """Last time an upstream queue was seen completely empty."""
    __tablename__ = "queue_status"

    queue_name = Column(String(64), primary_key=True)
    last_emptied_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


# -----------------------------------------------------------------------------
# Archive store
# -----------------------------------------------------------------------------

class ArchivedSignatureNotValidated(SignatureColumns, ArchiveColumns, ArchiveBase):
    """Signature that expired without ever being validated."""
    __tablename__ = "archived_signatures_not_validated"


class ArchivedSignatureProcessed(SignatureColumns, ArchiveColumns, ArchiveBase):
    """Signature whose validation completed."""
    __tablename__ = "archived_signatures_processed"


class ArchivedValidationProcessed(ValidationColumns, ArchiveColumns, ArchiveBase):
    """Validation token belonging to a processed signature."""
    __tablename__ = "archived_validations_processed"


class ArchivedValidationOrphaned(ValidationColumns, ArchiveColumns, ArchiveBase):
    """Validation token that never matched a signature."""
    __tablename__ = "archived_validations_orphaned"
