# app/schemas/archival.py
"""
Schemas for the archival cron trigger and archive retrieval endpoints.

JSON field names are camelCase on the wire.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -----------------------------------------------------------------------------
# Cron trigger
# -----------------------------------------------------------------------------


class TierResultSchema(CamelModel):
    """Warm-tier outcome for one table."""

    archived: int
    errors: int


class PromotionResultSchema(CamelModel):
    """Cold-tier promotion outcome."""

    moved: int
    errors: int


class ArchivalResults(CamelModel):
    datasets: TierResultSchema
    audit_logs: TierResultSchema
    saved_references: TierResultSchema
    glacier: PromotionResultSchema


class ArchivalSummary(CamelModel):
    total_archived: int
    total_errors: int
    glacier_moved: int


class ArchivalRunResponse(CamelModel):
    """Report returned by the scheduler trigger."""

    success: bool = True
    dry_run: bool
    timestamp: datetime
    results: ArchivalResults
    summary: ArchivalSummary


class ArchivalDisabledResponse(CamelModel):
    """Returned (HTTP 200) when archive storage is not configured."""

    success: bool = False
    message: str = "Archive storage not configured"
    archived: int = 0
    errors: int = 0


# -----------------------------------------------------------------------------
# Retrieval
# -----------------------------------------------------------------------------


class RetrieveResponse(CamelModel):
    """An archived record read back from object storage."""

    success: bool = True
    id: str
    table: str
    tier: str
    data: Any
    archived_at: datetime | None = None
    retrieved_at: datetime


class PresignResponse(CamelModel):
    """Time-limited direct-access URL for an archived record."""

    success: bool = True
    id: str
    url: str
    expires_in: int = Field(..., description="URL lifetime in seconds")
