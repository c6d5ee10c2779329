# app/services/archive/purge_service.py
"""
Live-store pruner.

Deletes rows from the live queues by id once they are archived. Deletion is
an IN-membership delete in chunks; ids that are already gone are skipped
silently, so overlapping runs never fail on each other's deletes.
"""

import logging
import uuid
from collections.abc import Iterable, Sequence

from sqlalchemy.orm import Session

from app.config import ArchiveConfig
from app.metrics import ROWS_PRUNED, MetricsSink
from app.services.archive.archive_service import ArchiveResult

logger = logging.getLogger(__name__)

# Keeps IN lists well under driver bind-parameter limits
DELETE_CHUNK_SIZE = 1000


def _chunks(ids: Sequence[uuid.UUID], size: int) -> Iterable[Sequence[uuid.UUID]]:
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


def prune_rows(
    db: Session,
    live_model: type,
    ids: Iterable[uuid.UUID],
    metrics: MetricsSink | None = None,
) -> int:
    """
    Delete live rows whose id is in ids.

    Returns the number of rows actually deleted. An empty id set is a no-op.
    """
    ids = list(dict.fromkeys(ids))
    if not ids:
        return 0

    deleted = 0
    for chunk in _chunks(ids, DELETE_CHUNK_SIZE):
        deleted += (
            db.query(live_model)
            .filter(live_model.id.in_(chunk))
            .delete(synchronize_session=False)
        )
    db.commit()

    table = live_model.__tablename__
    if deleted < len(ids):
        logger.debug(f"{len(ids) - deleted} of {len(ids)} {table} rows were already gone")

    if metrics is not None and deleted:
        metrics.increment(ROWS_PRUNED, deleted, table=table)

    logger.info(
        f"Pruned {deleted} rows from {table}",
        extra={"event": "live_rows_pruned", "table": table, "pruned": deleted},
    )
    return deleted


def orphan_prune_ids(
    selected_ids: Sequence[uuid.UUID],
    result: ArchiveResult,
    config: ArchiveConfig,
) -> list[uuid.UUID]:
    """
    Ids of orphaned validations to delete after archiving.

    Orphans are disposable: by default every selected orphan is deleted,
    whether or not its archive write succeeded. With
    delete_unconfirmed_orphans off, only confirmed orphans are deleted, as in
    the other two sub-workflows.
    """
    if config.delete_unconfirmed_orphans:
        return list(selected_ids)
    return list(result.confirmed_ids)
