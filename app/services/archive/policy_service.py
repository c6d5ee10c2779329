# app/services/archive/policy_service.py
"""
Retention policy evaluation.

Decides, for one run, which records are eligible for archival:
- not validated: unprocessed, no matching validation, older than the
  minimum signature lifetime
- processed: processed signatures, regardless of age
- orphaned: validations with no matching signature whose validation
  window has closed

Also answers the drain watermark query used by callers to decide whether
archival should run at all.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import and_
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from app.config import ArchiveConfig
from app.models import PendingSignature, PendingValidation, QueueStatus

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC now, matching the DateTime columns."""
    return datetime.now(UTC).replace(tzinfo=None)


@dataclass(frozen=True)
class EligibilityWindow:
    """Cutoffs for a single archive run."""

    now: datetime
    signature_cutoff: datetime  # unprocessed signatures received before this are eligible

    def not_validated_criteria(self) -> ColumnElement[bool]:
        """Unprocessed signatures with no validation (requires an outer join to PendingValidation)."""
        return and_(
            PendingSignature.processed.is_(False),
            PendingValidation.id.is_(None),
            PendingSignature.received_at < self.signature_cutoff,
        )

    def processed_criteria(self) -> ColumnElement[bool]:
        """Processed signatures. Already validated, so no age check."""
        return PendingSignature.processed.is_(True)

    def orphaned_criteria(self) -> ColumnElement[bool]:
        """Validations with no signature (requires an outer join to PendingSignature)."""
        return and_(
            PendingSignature.id.is_(None),
            PendingValidation.validation_closes_at < self.now,
        )


def is_archiving_enabled(config: ArchiveConfig) -> bool:
    return config.enabled


def signature_cutoff(config: ArchiveConfig, now: datetime) -> datetime:
    """Signatures received before this instant have outlived the minimum lifetime."""
    return now - config.min_signature_lifetime


def evaluate_policy(config: ArchiveConfig, now: datetime | None = None) -> EligibilityWindow | None:
    """
    Compute the eligibility window for this run.

    Returns None when archiving is disabled, in which case nothing may be
    selected, moved or pruned.
    """
    if not is_archiving_enabled(config):
        logger.debug("Archiving disabled, no eligibility window")
        return None

    now = now or utcnow()
    return EligibilityWindow(now=now, signature_cutoff=signature_cutoff(config, now))


def get_queue_last_emptied(db: Session, queue_names: tuple[str, ...] | list[str]) -> dict[str, datetime | None]:
    """
    Get when each named upstream queue was last fully drained.

    Queues with no status row map to None.
    """
    rows = db.query(QueueStatus).filter(QueueStatus.queue_name.in_(list(queue_names))).all()
    found = {row.queue_name: row.last_emptied_at for row in rows}
    return {name: found.get(name) for name in queue_names}


def get_archive_watermark(
    db: Session,
    config: ArchiveConfig,
    now: datetime | None = None,
) -> datetime | None:
    """
    Earliest point up to which every upstream queue is known to be drained.

    The minimum of each configured queue's last-emptied timestamp and
    now - min_signature_lifetime. If any queue has never been recorded as
    empty there is no safe watermark and None is returned.
    """
    now = now or utcnow()
    drained = get_queue_last_emptied(db, config.upstream_queues)

    never_drained = [name for name, emptied_at in drained.items() if emptied_at is None]
    if never_drained:
        logger.debug(f"No drain recorded for queues {never_drained}, no watermark")
        return None

    return min([*drained.values(), signature_cutoff(config, now)])


def get_policy_summary(config: ArchiveConfig) -> dict:
    """
    Current archive configuration as a dict.

    Useful for displaying in status endpoints and CLI.
    """
    lifetime: timedelta = config.min_signature_lifetime
    return {
        "enabled": config.enabled,
        "batch_size": config.batch_size,
        "min_signature_lifetime_seconds": int(lifetime.total_seconds()),
        "delete_unconfirmed_orphans": config.delete_unconfirmed_orphans,
        "upstream_queues": list(config.upstream_queues),
    }
