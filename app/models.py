# app/models.py
"""
Database models for the archival subsystem.

Tables:
- Dataset: Uploaded field-trial datasets (bulk rows in `data`)
- AuditLog: Per-user audit trail, high volume, small rows
- SavedReference: Literature references saved from external search
- UserSession: Server-side session tokens for authenticated users
- ArchivalEvent: Immutable trail of tier transitions
"""

from datetime import datetime
from enum import Enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)

from app.database import Base
from app.utils.clock import utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class DatasetStatus(str, Enum):
    """Validation status of an uploaded dataset."""
    PENDING = "PENDING"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"


class ArchivalEventType(str, Enum):
    """Tier transitions recorded in archival_events."""
    ARCHIVED = "archived"    # relational store -> STANDARD
    PROMOTED = "promoted"    # STANDARD -> GLACIER


# -----------------------------------------------------------------------------
# Archival state
# -----------------------------------------------------------------------------

class ArchivableMixin:
    """
    Archival state shared by every governed table.

    Subclasses name the column holding their bulk payload in
    `__payload_column__`; after archival that column holds a stub.
    """
    __payload_column__: str = "data"

    archived_at = Column(DateTime, nullable=True)
    is_archived = Column(Boolean, default=False, nullable=False)
    storage_key = Column(String(512), nullable=True)
    storage_tier = Column(String(16), nullable=True)  # STANDARD, GLACIER


# -----------------------------------------------------------------------------
# Governed tables
# -----------------------------------------------------------------------------

class Dataset(ArchivableMixin, Base):
    """An uploaded dataset belonging to a project."""
    __tablename__ = "datasets"
    __payload_column__ = "data"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), nullable=False)
    name = Column(String(255), nullable=False)
    filename = Column(String(255), nullable=True)
    status = Column(String(32), default=DatasetStatus.PENDING.value, nullable=False)
    data = Column(JSON, nullable=True)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_datasets_project_id", "project_id"),
        Index("ix_datasets_archival", "is_archived", "created_at"),
        Index("ix_datasets_storage_tier", "storage_tier"),
    )

    def __repr__(self) -> str:
        return f"<Dataset {self.id} ({self.name})>"


class AuditLog(ArchivableMixin, Base):
    """One audited user action."""
    __tablename__ = "audit_logs"
    __payload_column__ = "details"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False)
    action = Column(String(64), nullable=False)
    entity_type = Column(String(64), nullable=True)
    entity_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_audit_logs_user_id", "user_id"),
        Index("ix_audit_logs_archival", "is_archived", "created_at"),
        Index("ix_audit_logs_storage_tier", "storage_tier"),
    )


class SavedReference(ArchivableMixin, Base):
    """A literature reference a user saved from search."""
    __tablename__ = "saved_references"
    __payload_column__ = "data"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False)
    title = Column(Text, nullable=False)
    url = Column(Text, nullable=True)
    source = Column(String(64), nullable=True)
    data = Column(JSON, nullable=True)
    last_synced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_saved_references_user_id", "user_id"),
        Index("ix_saved_references_archival", "is_archived", "created_at"),
        Index("ix_saved_references_storage_tier", "storage_tier"),
    )


# -----------------------------------------------------------------------------
# Sessions
# -----------------------------------------------------------------------------

class UserSession(Base):
    """Server-side session; the token is handed to the browser as a cookie."""
    __tablename__ = "user_sessions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False)
    token = Column(String(128), unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or utcnow())


# -----------------------------------------------------------------------------
# Archival audit trail
# -----------------------------------------------------------------------------

class ArchivalEvent(Base):
    """
    Immutable record of one storage write and the rows it covered.

    Written in the same transaction as the state update it describes.
    """
    __tablename__ = "archival_events"

    id = Column(String(36), primary_key=True, default=_uuid)
    table_name = Column(String(64), nullable=False)
    event_type = Column(String(32), nullable=False)
    storage_key = Column(String(512), nullable=False)
    storage_tier = Column(String(16), nullable=False)
    record_count = Column(Integer, default=1, nullable=False)
    initiated_by = Column(String(64), nullable=False, default="scheduler")
    event_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_archival_events_table_created", "table_name", "created_at"),
    )
