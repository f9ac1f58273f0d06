# app/dependencies.py
"""FastAPI dependencies wiring the archival engine to a request."""

from fastapi import Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.archival import LifecycleEngine
from app.storage import get_storage_provider


def get_lifecycle_engine(db: Session = Depends(get_db)) -> LifecycleEngine:
    """Engine bound to this request's DB session and the shared storage provider."""
    return LifecycleEngine(storage=get_storage_provider(), db=db)
