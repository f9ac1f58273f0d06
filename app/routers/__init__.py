# app/routers/__init__.py
"""
API routers for the scheduler trigger and archive retrieval.
"""

from app.routers.archive import router as archive_router
from app.routers.cron import router as cron_router

__all__ = [
    "archive_router",
    "cron_router",
]
