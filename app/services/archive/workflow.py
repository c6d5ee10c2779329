# app/services/archive/workflow.py
"""
Archive workflow orchestration.

One run processes a single bounded batch per category, in a fixed order:
1. pending: unprocessed signatures that never got a validation
2. processed: processed signatures and their validation tokens
3. orphaned: validation tokens that never matched a signature

Each stage is gated by the retention policy on its own and none consumes
another's output. Per-row archive failures are absorbed by the mover; a
store-level fault aborts the run and is reported through the exit code.
"""

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.config import ArchiveConfig
from app.database import ArchiveSessionLocal, LiveSessionLocal, store_context
from app.logging_config import ArchiveLogger, correlation_context, log_stage
from app.metrics import STAGE_SKIPPED, LoggingMetricsSink, MetricsSink
from app.models import (
    ArchivedSignatureNotValidated,
    ArchivedSignatureProcessed,
    ArchivedValidationOrphaned,
    ArchivedValidationProcessed,
    PendingSignature,
    PendingValidation,
)
from app.services.archive.archive_service import ArchiveResult, archive_rows
from app.services.archive.policy_service import evaluate_policy, utcnow
from app.services.archive.purge_service import orphan_prune_ids, prune_rows
from app.services.archive.selection_service import (
    find_orphaned_validations,
    find_processed_signatures,
    find_unprocessed_signatures,
    find_validations_for_secrets,
)

archive_log = ArchiveLogger(__name__)

STAGE_PENDING = "pending"
STAGE_PROCESSED = "processed"
STAGE_ORPHANED = "orphaned"


class ExitCode(IntEnum):
    """Status codes returned by run_archive_job."""
    OK = 0
    STORE_UNAVAILABLE = 1
    RUN_FAILED = 2


@dataclass
class StageResult:
    """Outcome of one sub-workflow."""

    stage: str
    skipped: bool = False
    selected: int = 0
    archived: int = 0
    failed: int = 0
    pruned: int = 0
    errors: list[str] = field(default_factory=list)

    def record(self, result: ArchiveResult) -> None:
        """Fold one archive batch into the stage totals."""
        self.selected += result.selected
        self.archived += result.archived
        self.failed += result.failed
        self.errors.extend(result.errors)

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "skipped": self.skipped,
            "selected": self.selected,
            "archived": self.archived,
            "failed": self.failed,
            "pruned": self.pruned,
            "errors": list(self.errors),
        }


@dataclass
class WorkflowResult:
    """Outcome of a whole archive run."""

    stages: list[StageResult] = field(default_factory=list)
    status: ExitCode = ExitCode.OK
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == ExitCode.OK

    def stage(self, name: str) -> StageResult | None:
        return next((s for s in self.stages if s.stage == name), None)

    def to_dict(self) -> dict:
        return {
            "status": int(self.status),
            "success": self.success,
            "error": self.error,
            "stages": [s.to_dict() for s in self.stages],
            "totals": {
                "archived": sum(s.archived for s in self.stages),
                "failed": sum(s.failed for s in self.stages),
                "pruned": sum(s.pruned for s in self.stages),
            },
        }


def _skip(stage: StageResult, metrics: MetricsSink) -> StageResult:
    stage.skipped = True
    metrics.increment(STAGE_SKIPPED, stage=stage.stage)
    return stage


def archive_pending_signatures(
    live_db: Session,
    archive_sessions: sessionmaker,
    config: ArchiveConfig,
    metrics: MetricsSink,
    now: datetime,
) -> StageResult:
    """Archive unprocessed, unmatched signatures past the minimum lifetime."""
    stage = StageResult(STAGE_PENDING)

    window = evaluate_policy(config, now)
    if window is None:
        return _skip(stage, metrics)

    signatures = find_unprocessed_signatures(live_db, window, limit=config.batch_size)
    if not signatures:
        return stage

    result = archive_rows(signatures, ArchivedSignatureNotValidated, archive_sessions, metrics)
    stage.record(result)
    stage.pruned = prune_rows(live_db, PendingSignature, result.confirmed_ids, metrics)
    return stage


def archive_processed_signatures(
    live_db: Session,
    archive_sessions: sessionmaker,
    config: ArchiveConfig,
    metrics: MetricsSink,
    now: datetime,
) -> StageResult:
    """
    Archive processed signatures together with their validation tokens.

    A signature is only pruned when it and its validation (if any) are both
    archived, so a pair is never split across runs.
    """
    stage = StageResult(STAGE_PROCESSED)

    window = evaluate_policy(config, now)
    if window is None:
        return _skip(stage, metrics)

    signatures = find_processed_signatures(live_db, window, limit=config.batch_size)
    if not signatures:
        return stage

    secret_by_id = {signature.id: signature.validation_secret for signature in signatures}

    signature_result = archive_rows(signatures, ArchivedSignatureProcessed, archive_sessions, metrics)
    stage.record(signature_result)

    validations = find_validations_for_secrets(
        live_db, [secret_by_id[sid] for sid in signature_result.confirmed_ids]
    )
    validation_result = archive_rows(validations, ArchivedValidationProcessed, archive_sessions, metrics)
    stage.record(validation_result)

    secret_by_validation = {validation.id: validation.validation_secret for validation in validations}
    held_secrets = {secret_by_validation[vid] for vid in validation_result.failed_ids}
    signature_ids = [sid for sid in signature_result.confirmed_ids if secret_by_id[sid] not in held_secrets]

    stage.pruned = prune_rows(live_db, PendingValidation, validation_result.confirmed_ids, metrics)
    stage.pruned += prune_rows(live_db, PendingSignature, signature_ids, metrics)
    return stage


def archive_orphaned_validations(
    live_db: Session,
    archive_sessions: sessionmaker,
    config: ArchiveConfig,
    metrics: MetricsSink,
    now: datetime,
) -> StageResult:
    """
    Archive validation tokens that never matched a signature.

    Deletion follows config.delete_unconfirmed_orphans (see orphan_prune_ids).
    """
    stage = StageResult(STAGE_ORPHANED)

    window = evaluate_policy(config, now)
    if window is None:
        return _skip(stage, metrics)

    validations = find_orphaned_validations(live_db, window, limit=config.batch_size)
    if not validations:
        return stage

    selected_ids = [validation.id for validation in validations]
    result = archive_rows(validations, ArchivedValidationOrphaned, archive_sessions, metrics)
    stage.record(result)
    stage.pruned = prune_rows(
        live_db, PendingValidation, orphan_prune_ids(selected_ids, result, config), metrics
    )
    return stage


StageFn = Callable[[Session, sessionmaker, ArchiveConfig, MetricsSink, datetime], StageResult]

STAGES: tuple[tuple[str, StageFn], ...] = (
    (STAGE_PENDING, archive_pending_signatures),
    (STAGE_PROCESSED, archive_processed_signatures),
    (STAGE_ORPHANED, archive_orphaned_validations),
)


def run_archive_workflow(
    config: ArchiveConfig,
    live_sessions: sessionmaker,
    archive_sessions: sessionmaker,
    metrics: MetricsSink,
    now: datetime | None = None,
    result: WorkflowResult | None = None,
) -> WorkflowResult:
    """
    Run all three stages in order against one live-store session.

    Store-level errors propagate; stages completed before the error stay
    recorded on result.
    """
    now = now or utcnow()
    result = result if result is not None else WorkflowResult()

    with store_context(live_sessions) as live_db:
        for name, stage_fn in STAGES:
            with log_stage(name):
                result.stages.append(stage_fn(live_db, archive_sessions, config, metrics, now))

    return result


def execute_archive_job(
    job_id: str,
    server_id: str,
    worker_id: str,
    options: dict[str, Any] | None = None,
    *,
    config: ArchiveConfig | None = None,
    live_sessions: sessionmaker | None = None,
    archive_sessions: sessionmaker | None = None,
    metrics: MetricsSink | None = None,
    now: datetime | None = None,
) -> WorkflowResult:
    """
    Run the archive workflow for one job and return the detailed result.

    options is accepted for the job interface and currently unused.
    """
    config = config or ArchiveConfig.from_settings()
    metrics = metrics or LoggingMetricsSink()
    result = WorkflowResult()

    with correlation_context(job_id, server_id, worker_id):
        try:
            run_archive_workflow(
                config,
                live_sessions or LiveSessionLocal,
                archive_sessions or ArchiveSessionLocal,
                metrics,
                now=now,
                result=result,
            )
        except SQLAlchemyError as e:
            result.status = ExitCode.STORE_UNAVAILABLE
            result.error = str(e)
            archive_log.alert(
                "archive_run_failed",
                f"Archive run aborted, store unavailable: {e}",
                error=str(e),
            )
            return result
        except Exception as e:
            result.status = ExitCode.RUN_FAILED
            result.error = str(e)
            archive_log.alert(
                "archive_run_failed",
                f"Archive run aborted: {type(e).__name__}: {e}",
                error=str(e),
            )
            return result

        totals = result.to_dict()["totals"]
        archive_log.info(
            "archive_run_complete",
            f"Archive run complete: {totals['archived']} archived, "
            f"{totals['failed']} failed, {totals['pruned']} pruned",
            archived=totals["archived"],
            failed=totals["failed"],
            pruned=totals["pruned"],
        )
    return result


def run_archive_job(
    job_id: str,
    server_id: str,
    worker_id: str,
    options: dict[str, Any] | None = None,
    **kwargs: Any,
) -> int:
    """
    Job entry point: run one archive pass and return its status code.

    Returns ExitCode.OK, ExitCode.STORE_UNAVAILABLE when a store-level
    fault aborted the run, or ExitCode.RUN_FAILED for any other fatal error.
    """
    return execute_archive_job(job_id, server_id, worker_id, options, **kwargs).status


def new_job_id() -> str:
    return uuid.uuid4().hex
