# app/services/archive/__init__.py
"""
Archive services for the signature validation queues.

Rows that are no longer actionable move from the live store to the archive
store, and are deleted from the live store only once archived.

Services:
- policy_service: eligibility windows and the drain watermark
- selection_service: bounded anti-join selection of archivable rows
- archive_service: per-row idempotent upsert into the archive store
- purge_service: id-keyed deletion from the live store
- workflow: three-stage orchestration and the job entry point
"""

from app.services.archive.archive_service import (
    ArchiveResult,
    archive_rows,
    get_archive_stats,
)
from app.services.archive.policy_service import (
    EligibilityWindow,
    evaluate_policy,
    get_archive_watermark,
    get_queue_last_emptied,
    is_archiving_enabled,
)
from app.services.archive.purge_service import (
    orphan_prune_ids,
    prune_rows,
)
from app.services.archive.selection_service import (
    count_eligible,
    find_orphaned_validations,
    find_processed_signatures,
    find_unprocessed_signatures,
    find_validations_for_secrets,
    get_archive_preview,
)
from app.services.archive.workflow import (
    ExitCode,
    StageResult,
    WorkflowResult,
    execute_archive_job,
    run_archive_job,
    run_archive_workflow,
)

__all__ = [
    # Policy
    "EligibilityWindow",
    "evaluate_policy",
    "is_archiving_enabled",
    "get_queue_last_emptied",
    "get_archive_watermark",
    # Selection
    "find_unprocessed_signatures",
    "find_processed_signatures",
    "find_validations_for_secrets",
    "find_orphaned_validations",
    "count_eligible",
    "get_archive_preview",
    # Archive
    "archive_rows",
    "get_archive_stats",
    "ArchiveResult",
    # Purge
    "prune_rows",
    "orphan_prune_ids",
    # Workflow
    "run_archive_job",
    "execute_archive_job",
    "run_archive_workflow",
    "ExitCode",
    "StageResult",
    "WorkflowResult",
]
