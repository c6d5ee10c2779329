# app/routers/admin_archive.py
"""
Admin endpoints for the signature archive.

POST /v1/admin/archive/run       - Run one archive pass
GET  /v1/admin/archive/status    - Live queue and archive table sizes
GET  /v1/admin/archive/preview   - Rows eligible for the next pass
GET  /v1/admin/archive/watermark - Upstream queue drain watermark
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.auth import require_admin_key
from app.config import ArchiveConfig
from app.database import get_archive_db, get_db, get_session_factories
from app.services.archive import (
    ExitCode,
    execute_archive_job,
    get_archive_preview,
    get_archive_stats,
    get_archive_watermark,
    get_queue_last_emptied,
)
from app.services.archive.policy_service import get_policy_summary
from app.services.archive.workflow import new_job_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin/archive", tags=["admin-archive"])


def get_archive_config() -> ArchiveConfig:
    """Dependency for the run configuration, overridable in tests."""
    return ArchiveConfig.from_settings()


# -----------------------------------------------------------------------------
# Response Models
# -----------------------------------------------------------------------------


class StageResponse(BaseModel):
    """One sub-workflow's outcome."""

    stage: str
    skipped: bool
    selected: int
    archived: int
    failed: int
    pruned: int
    errors: list[str]


class RunResponse(BaseModel):
    """Archive run result."""

    job_id: str
    status: int
    success: bool
    error: str | None = None
    stages: list[StageResponse]
    totals: dict[str, int]


class StatusResponse(BaseModel):
    """Table sizes in both stores."""

    live: dict[str, int]
    archive: dict[str, int]
    total_live: int
    total_archived: int
    policy: dict[str, Any]


class PreviewResponse(BaseModel):
    """Eligible row counts per category."""

    enabled: bool
    signature_cutoff: datetime | None
    eligible: dict[str, int]
    next_batch: dict[str, int]
    policy: dict[str, Any]


class WatermarkResponse(BaseModel):
    """Upstream drain state."""

    queues: dict[str, datetime | None]
    watermark: datetime | None


class RunRequest(BaseModel):
    """Request to trigger an archive pass."""

    job_id: str | None = Field(None, description="Job identifier (random if omitted)")
    server_id: str = Field("admin-api", description="Server identifier for correlation")
    worker_id: str = Field("0", description="Worker identifier for correlation")
    batch_size: int | None = Field(None, ge=1, le=50000, description="Override the configured batch size")


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@router.post("/run", response_model=RunResponse)
def trigger_run(
    request: RunRequest,
    factories: tuple[sessionmaker, sessionmaker] = Depends(get_session_factories),
    config: ArchiveConfig = Depends(get_archive_config),
    _: None = Depends(require_admin_key),
) -> RunResponse:
    """
    Run one archive pass synchronously.

    Returns 503 when either store was unreachable and 500 for any other
    fatal error; stages that completed before the fault are still reported
    in the error detail.
    """
    live_sessions, archive_sessions = factories
    if request.batch_size:
        config = replace(config, batch_size=request.batch_size)

    job_id = request.job_id or new_job_id()
    result = execute_archive_job(
        job_id,
        request.server_id,
        request.worker_id,
        config=config,
        live_sessions=live_sessions,
        archive_sessions=archive_sessions,
    )

    if result.status == ExitCode.STORE_UNAVAILABLE:
        raise HTTPException(
            status_code=503,
            detail={"message": "Archive store unavailable", "job_id": job_id, **result.to_dict()},
        )
    if result.status != ExitCode.OK:
        raise HTTPException(
            status_code=500,
            detail={"message": "Archive run failed", "job_id": job_id, **result.to_dict()},
        )

    return RunResponse(job_id=job_id, **result.to_dict())


@router.get("/status", response_model=StatusResponse)
def get_status(
    db: Session = Depends(get_db),
    archive_db: Session = Depends(get_archive_db),
    config: ArchiveConfig = Depends(get_archive_config),
    _: None = Depends(require_admin_key),
) -> StatusResponse:
    """
    Get row counts for the live queues and archive tables.
    """
    try:
        stats = get_archive_stats(db, archive_db)
    except SQLAlchemyError as e:
        logger.error(f"Archive status failed: {e}")
        raise HTTPException(status_code=503, detail="Store unavailable")

    return StatusResponse(**stats, policy=get_policy_summary(config))


@router.get("/preview", response_model=PreviewResponse)
def get_preview(
    db: Session = Depends(get_db),
    config: ArchiveConfig = Depends(get_archive_config),
    _: None = Depends(require_admin_key),
) -> PreviewResponse:
    """
    Preview what the next pass would archive without moving anything.
    """
    try:
        preview = get_archive_preview(db, config)
    except SQLAlchemyError as e:
        logger.error(f"Archive preview failed: {e}")
        raise HTTPException(status_code=503, detail="Store unavailable")

    return PreviewResponse(**preview)


@router.get("/watermark", response_model=WatermarkResponse)
def get_watermark(
    db: Session = Depends(get_db),
    config: ArchiveConfig = Depends(get_archive_config),
    _: None = Depends(require_admin_key),
) -> WatermarkResponse:
    """
    Get the last-drained time of each upstream queue and the resulting watermark.

    The watermark is null until every upstream queue has drained at least once.
    """
    try:
        queues = get_queue_last_emptied(db, config.upstream_queues)
        watermark = get_archive_watermark(db, config)
    except SQLAlchemyError as e:
        logger.error(f"Archive watermark failed: {e}")
        raise HTTPException(status_code=503, detail="Store unavailable")

    return WatermarkResponse(queues=queues, watermark=watermark)
