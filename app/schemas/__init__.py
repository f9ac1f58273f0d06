"""
Pydantic schemas for API request/response validation.
"""

from app.schemas.archival import (
    ArchivalDisabledResponse,
    ArchivalResults,
    ArchivalRunResponse,
    ArchivalSummary,
    PresignResponse,
    PromotionResultSchema,
    RetrieveResponse,
    TierResultSchema,
)

__all__ = [
    # Cron
    "ArchivalRunResponse",
    "ArchivalDisabledResponse",
    "ArchivalResults",
    "ArchivalSummary",
    "TierResultSchema",
    "PromotionResultSchema",
    # Retrieval
    "RetrieveResponse",
    "PresignResponse",
]
