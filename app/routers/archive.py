# app/routers/archive.py
"""
On-demand access to archived records.

GET /api/archive/retrieve - Rehydrate one archived record
GET /api/archive/url      - Presigned URL for the record's storage object
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from app.auth import require_session_user
from app.config import get_settings
from app.dependencies import get_lifecycle_engine
from app.schemas.archival import PresignResponse, RetrieveResponse
from app.services.archival import (
    LifecycleEngine,
    NotArchived,
    RecordNotFound,
    UnknownTable,
)
from app.storage import RestoreInProgress, StorageNotConfigured

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/archive", tags=["archive"])

# Seconds a client should wait before retrying a cold read
RESTORE_RETRY_AFTER = 3600


def _require_storage(engine: LifecycleEngine) -> None:
    if not engine.is_enabled():
        raise HTTPException(status_code=503, detail="Archive storage not configured")


def _map_archival_error(e: Exception, record_id: str) -> HTTPException:
    """Translate engine errors into user-safe HTTP errors."""
    if isinstance(e, UnknownTable):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, RecordNotFound):
        return HTTPException(status_code=404, detail="Record not found")
    if isinstance(e, NotArchived):
        return HTTPException(status_code=409, detail="Record is not archived")
    if isinstance(e, RestoreInProgress):
        return HTTPException(
            status_code=503,
            detail="Archived record is being restored from cold storage, retry later",
            headers={"Retry-After": str(RESTORE_RETRY_AFTER)},
        )
    if isinstance(e, StorageNotConfigured):
        return HTTPException(status_code=503, detail="Archive storage not configured")

    logger.error(f"Failed to retrieve archived record {record_id}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail="Failed to retrieve archived data")


@router.get("/retrieve", response_model=RetrieveResponse)
def retrieve_archived(
    record_id: str | None = Query(None, alias="id", description="Record identifier"),
    table: str = Query("datasets", description="Governed table the record belongs to"),
    user_id: str = Depends(require_session_user),
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> RetrieveResponse:
    """
    Read an archived record back from object storage.

    Works for both tiers; a cold object that needs an asynchronous restore
    answers 503 with Retry-After.
    """
    _require_storage(engine)
    if not record_id:
        raise HTTPException(status_code=400, detail="id parameter required")

    try:
        result = engine.retrieve(record_id, table=table)
    except Exception as e:
        raise _map_archival_error(e, record_id) from e

    logger.info(
        f"User {user_id} retrieved archived {table} {record_id}",
        extra={"event": "archive_retrieved", "table": table, "record_id": record_id},
    )
    return RetrieveResponse(
        id=result.id,
        table=result.table,
        tier=result.tier.value,
        data=result.data,
        archived_at=result.archived_at,
        retrieved_at=result.retrieved_at,
    )


@router.get("/url", response_model=PresignResponse)
def presign_archived(
    record_id: str | None = Query(None, alias="id", description="Record identifier"),
    table: str = Query("datasets"),
    ttl: int | None = Query(None, ge=60, le=604800, description="URL lifetime in seconds"),
    _: str = Depends(require_session_user),
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> PresignResponse:
    """Presigned URL for direct download of an archived record's object."""
    _require_storage(engine)
    if not record_id:
        raise HTTPException(status_code=400, detail="id parameter required")

    expires_in = ttl or get_settings().PRESIGN_TTL_SECONDS
    try:
        url = engine.presign(record_id, table=table, ttl_seconds=expires_in)
    except Exception as e:
        raise _map_archival_error(e, record_id) from e

    return PresignResponse(id=record_id, url=url, expires_in=expires_in)
