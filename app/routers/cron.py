# app/routers/cron.py
"""
Scheduler entry point for archival.

GET /api/cron/archive - Run every archival rule (daily, 02:00 UTC)

The external scheduler authenticates with `Authorization: Bearer <CRON_SECRET>`.
Re-invoking the endpoint is always safe: already-archived rows are never
selected again.
"""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.auth import require_cron_secret
from app.config import get_settings
from app.dependencies import get_lifecycle_engine
from app.schemas.archival import (
    ArchivalDisabledResponse,
    ArchivalResults,
    ArchivalRunResponse,
    ArchivalSummary,
    PromotionResultSchema,
    TierResultSchema,
)
from app.services.archival import ArchivalRunReport, LifecycleEngine, TierResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def _tier(report: ArchivalRunReport, table: str) -> TierResultSchema:
    result = report.warm.get(table, TierResult())
    return TierResultSchema(archived=result.archived, errors=result.errors)


def build_run_response(report: ArchivalRunReport) -> ArchivalRunResponse:
    """Shape an engine report into the cron JSON contract."""
    return ArchivalRunResponse(
        dry_run=report.dry_run,
        timestamp=report.timestamp,
        results=ArchivalResults(
            datasets=_tier(report, "datasets"),
            audit_logs=_tier(report, "audit_logs"),
            saved_references=_tier(report, "saved_references"),
            glacier=PromotionResultSchema(moved=report.cold.moved, errors=report.cold.errors),
        ),
        summary=ArchivalSummary(
            total_archived=report.total_archived,
            total_errors=report.total_errors,
            glacier_moved=report.glacier_moved,
        ),
    )


@router.get("/archive", response_model=None)
def run_archival(
    dry_run: bool = Query(False, alias="dryRun", description="Simulate without mutating anything"),
    _: None = Depends(require_cron_secret),
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> ArchivalRunResponse | ArchivalDisabledResponse | JSONResponse:
    """
    Archive aging records and promote old archives to the cold tier.

    Returns `success: false` (HTTP 200) when archive storage is not
    configured; the scheduler should not treat that as a failed run.

    With `dryRun=true` the counts are projections of what a real run would
    do; nothing is written.
    """
    if not engine.is_enabled():
        logger.warning("Archival cron invoked but archive storage is not configured")
        return ArchivalDisabledResponse()

    try:
        report = engine.run(dry_run=dry_run)
    except Exception as e:
        logger.error(f"Archival cron job failed: {e}", exc_info=True)
        detail = str(e) if get_settings().is_development else "Archival run failed"
        return JSONResponse(status_code=500, content={"success": False, "error": detail})

    return build_run_response(report)
