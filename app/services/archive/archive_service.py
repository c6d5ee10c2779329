# app/services/archive/archive_service.py
"""
Archive mover: copy live rows into the archive store.

Handles:
- Idempotent upsert of each row into its archive table, keyed by id
- Per-row failure isolation (one bad row never aborts the batch)
- Reporting which ids were confirmed, so only those are pruned
- Store-size gauge and summary metrics after each batch
"""

import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.database import store_context
from app.logging_config import ArchiveLogger
from app.metrics import ROWS_ARCHIVED, ROWS_FAILED, STORE_SIZE, MetricsSink
from app.models import (
    ArchivedSignatureNotValidated,
    ArchivedSignatureProcessed,
    ArchivedValidationOrphaned,
    ArchivedValidationProcessed,
    PendingSignature,
    PendingValidation,
)
from app.services.archive.policy_service import utcnow

archive_log = ArchiveLogger(__name__)


@dataclass
class ArchiveResult:
    """Result of archiving one batch into one archive table."""

    table: str
    selected: int = 0
    confirmed_ids: list[uuid.UUID] = field(default_factory=list)
    failed_ids: list[uuid.UUID] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    store_size: int | None = None

    @property
    def archived(self) -> int:
        return len(self.confirmed_ids)

    @property
    def failed(self) -> int:
        return len(self.failed_ids)

    @property
    def success(self) -> bool:
        return not self.failed_ids


def archive_values(row: Any, archive_model: type) -> dict[str, Any]:
    """
    Copy a live row's column values for its archive model.

    Columns the live row doesn't have (archived_at) are filled in here.
    """
    values = {
        attr.key: getattr(row, attr.key)
        for attr in inspect(archive_model).column_attrs
        if attr.key != "archived_at"
    }
    values["archived_at"] = utcnow()
    return values


def count_archive_rows(archive_db: Session, archive_model: type) -> int:
    """Total rows currently in an archive table."""
    return archive_db.query(func.count()).select_from(archive_model).scalar() or 0


def archive_rows(
    rows: Sequence[Any],
    archive_model: type,
    archive_sessions: sessionmaker,
    metrics: MetricsSink,
) -> ArchiveResult:
    """
    Upsert rows into an archive table, one transaction per row.

    Process:
    1. Read every row's values while the live session still holds them
    2. Open the archive store (fails fast if it's unreachable)
    3. merge + commit each row; on error roll back that row only,
       log it at CRITICAL and leave its id out of confirmed_ids
    4. Gauge the archive table size and report the confirmed count. A
       failed count is logged at CRITICAL and leaves store_size None, so
       confirmed rows are still returned for pruning

    Args:
        rows: Live ORM rows (PendingSignature or PendingValidation)
        archive_model: Destination archive model
        archive_sessions: Session factory for the archive store
        metrics: Sink for counters and gauges

    Returns:
        ArchiveResult; only confirmed_ids may be deleted from the live store
    """
    table = archive_model.__tablename__
    result = ArchiveResult(table=table, selected=len(rows))

    if not rows:
        return result

    pending = [(row.id, archive_values(row, archive_model)) for row in rows]
    started = time.monotonic()

    with store_context(archive_sessions) as archive_db:
        for record_id, values in pending:
            try:
                archive_db.merge(archive_model(**values))
                archive_db.commit()
            except SQLAlchemyError as e:
                archive_db.rollback()
                result.failed_ids.append(record_id)
                result.errors.append(f"{table} {record_id}: {e}")
                archive_log.critical(
                    "archive_row_failed",
                    f"Failed to archive {table} row {record_id}: {e}",
                    table=table,
                    record_id=str(record_id),
                    error=str(e),
                )
                metrics.increment(ROWS_FAILED, table=table)
            else:
                result.confirmed_ids.append(record_id)

        try:
            result.store_size = count_archive_rows(archive_db, archive_model)
        except SQLAlchemyError as e:
            archive_db.rollback()
            archive_log.critical(
                "archive_store_size_failed",
                f"Could not count {table} after batch: {e}",
                table=table,
                error=str(e),
            )

    if result.store_size is not None:
        metrics.gauge(STORE_SIZE, result.store_size, table=table)

    if result.confirmed_ids:
        metrics.increment(ROWS_ARCHIVED, result.archived, table=table)
        archive_log.info(
            "archive_batch_complete",
            f"Archived {result.archived}/{result.selected} rows into {table} "
            f"({result.failed} failed, {time.monotonic() - started:.1f}s)",
            table=table,
            selected=result.selected,
            archived=result.archived,
            failed=result.failed,
        )

    return result


def get_archive_stats(live_db: Session, archive_db: Session) -> dict:
    """
    Get row counts for every live queue and archive table.

    Returns counts for dashboard and CLI display.
    """
    live = {
        model.__tablename__: live_db.query(func.count()).select_from(model).scalar() or 0
        for model in (PendingSignature, PendingValidation)
    }
    archive = {
        model.__tablename__: count_archive_rows(archive_db, model)
        for model in (
            ArchivedSignatureNotValidated,
            ArchivedSignatureProcessed,
            ArchivedValidationProcessed,
            ArchivedValidationOrphaned,
        )
    }
    return {
        "live": live,
        "archive": archive,
        "total_live": sum(live.values()),
        "total_archived": sum(archive.values()),
    }
