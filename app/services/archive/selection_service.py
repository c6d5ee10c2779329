# app/services/archive/selection_service.py
"""
Bounded, read-only selection of archivable rows from the live store.

"No matching row" conditions use an outer join and an IS NULL test on the
joined table's key (anti-join). Every selection is capped by a limit, oldest
rows first.
"""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from app.config import ArchiveConfig
from app.models import ArchiveCategory, PendingSignature, PendingValidation
from app.services.archive.policy_service import EligibilityWindow, evaluate_policy, get_policy_summary


def _unprocessed_signatures_query(db: Session, window: EligibilityWindow) -> Query:
    return (
        db.query(PendingSignature)
        .outerjoin(
            PendingValidation,
            PendingValidation.validation_secret == PendingSignature.validation_secret,
        )
        .filter(window.not_validated_criteria())
    )


def _processed_signatures_query(db: Session, window: EligibilityWindow) -> Query:
    return db.query(PendingSignature).filter(window.processed_criteria())


def _orphaned_validations_query(db: Session, window: EligibilityWindow) -> Query:
    return (
        db.query(PendingValidation)
        .outerjoin(
            PendingSignature,
            PendingSignature.validation_secret == PendingValidation.validation_secret,
        )
        .filter(window.orphaned_criteria())
    )


def find_unprocessed_signatures(
    db: Session,
    window: EligibilityWindow,
    limit: int,
) -> list[PendingSignature]:
    """
    Find signatures that expired without being validated.

    Returns signatures that:
    - Are not processed
    - Have no validation token with the same secret
    - Were received before the window's signature cutoff
    """
    return (
        _unprocessed_signatures_query(db, window)
        .order_by(PendingSignature.received_at.asc())
        .limit(limit)
        .all()
    )


def find_processed_signatures(
    db: Session,
    window: EligibilityWindow,
    limit: int,
) -> list[PendingSignature]:
    """Find processed signatures, oldest first."""
    return (
        _processed_signatures_query(db, window)
        .order_by(PendingSignature.received_at.asc())
        .limit(limit)
        .all()
    )


def find_validations_for_secrets(
    db: Session,
    secrets: Iterable[str],
) -> list[PendingValidation]:
    """Find validation tokens matching any of the given secrets."""
    secrets = list(secrets)
    if not secrets:
        return []
    return (
        db.query(PendingValidation)
        .filter(PendingValidation.validation_secret.in_(secrets))
        .all()
    )


def find_orphaned_validations(
    db: Session,
    window: EligibilityWindow,
    limit: int,
) -> list[PendingValidation]:
    """
    Find validation tokens with no signature whose validation window closed.

    These typically come from tampered or malformed validation links.
    """
    return (
        _orphaned_validations_query(db, window)
        .order_by(PendingValidation.validation_closes_at.asc())
        .limit(limit)
        .all()
    )


def count_eligible(db: Session, window: EligibilityWindow) -> dict[str, int]:
    """
    Count every eligible row per category, without the batch limit.

    Used for previews; nothing is moved.
    """
    def _count(query: Query, key) -> int:
        return query.with_entities(func.count(key)).scalar() or 0

    return {
        ArchiveCategory.NOT_VALIDATED.value: _count(_unprocessed_signatures_query(db, window), PendingSignature.id),
        ArchiveCategory.PROCESSED.value: _count(_processed_signatures_query(db, window), PendingSignature.id),
        ArchiveCategory.ORPHANED.value: _count(_orphaned_validations_query(db, window), PendingValidation.id),
    }


def get_archive_preview(db: Session, config: ArchiveConfig, now: datetime | None = None) -> dict:
    """
    Preview what the next runs would archive, without moving anything.

    Useful for admin dashboard display.
    """
    window = evaluate_policy(config, now)
    if window is None:
        return {
            "enabled": False,
            "signature_cutoff": None,
            "eligible": {category.value: 0 for category in ArchiveCategory},
            "next_batch": {category.value: 0 for category in ArchiveCategory},
            "policy": get_policy_summary(config),
        }

    eligible = count_eligible(db, window)
    return {
        "enabled": True,
        "signature_cutoff": window.signature_cutoff.isoformat(),
        "eligible": eligible,
        "next_batch": {category: min(count, config.batch_size) for category, count in eligible.items()},
        "policy": get_policy_summary(config),
    }
