# app/services/archival/repository.py
"""
Relational side of archival: selecting eligible rows and writing their state.

One repository wraps one governed model. Each update runs in its own
transaction; nothing spans records.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Mapping, Optional, Sequence, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import ArchivableMixin, ArchivalEvent
from app.services.archival.errors import RelationalUpdateFailed
from app.services.archival.payloads import StubPayload
from app.services.archival.rules import NOT_NULL
from app.storage.base import StorageTier

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=ArchivableMixin)


@dataclass
class ArchivalPatch:
    """State fields to write; None means leave the column alone."""
    storage_tier: StorageTier
    storage_key: Optional[str] = None
    archived_at: Optional[datetime] = None
    is_archived: Optional[bool] = None
    payload: Optional[StubPayload] = None

    def values(self, model: type[ArchivableMixin]) -> dict[str, Any]:
        values: dict[str, Any] = {"storage_tier": self.storage_tier.value}
        if self.storage_key is not None:
            values["storage_key"] = self.storage_key
        if self.archived_at is not None:
            values["archived_at"] = self.archived_at
        if self.is_archived is not None:
            values["is_archived"] = self.is_archived
        if self.payload is not None:
            values[model.__payload_column__] = self.payload.to_column()
        return values


class ArchivalRepository(Generic[M]):
    """Archival queries and state updates for one governed model."""

    def __init__(self, db: Session, model: type[M]):
        self.db = db
        self.model = model

    @property
    def table(self) -> str:
        return self.model.__tablename__

    def _column(self, name: str):
        column = getattr(self.model, name, None)
        if column is None:
            raise ValueError(f"{self.table} has no column '{name}'")
        return column

    def find_eligible(
        self,
        cutoff: datetime,
        conditions: Mapping[str, Any],
        limit: int,
    ) -> list[M]:
        """
        Unarchived rows created before cutoff that match the rule conditions.

        Oldest first. `is_archived == False` is the idempotency guard:
        archived rows are never selected again.
        """
        query = self.db.query(self.model).filter(
            self.model.created_at < cutoff,
            self.model.is_archived == False,  # noqa: E712
        )
        for name, expected in conditions.items():
            column = self._column(name)
            if expected is NOT_NULL:
                query = query.filter(column.isnot(None))
            elif expected is None:
                query = query.filter(column.is_(None))
            else:
                query = query.filter(column == expected)

        return query.order_by(self.model.created_at.asc()).limit(limit).all()

    def find_promotable(self, cutoff: datetime, limit: int, whole_objects: bool = False) -> list[M]:
        """
        Archived rows still in STANDARD and created before cutoff.

        With `whole_objects`, rows whose object also holds a STANDARD row
        created on or after cutoff are left out, so a shared object only
        becomes promotable once its newest row is past the threshold.
        """
        query = self.db.query(self.model).filter(
            self.model.created_at < cutoff,
            self.model.is_archived == True,  # noqa: E712
            self.model.storage_tier == StorageTier.STANDARD.value,
            self.model.storage_key.isnot(None),
        )
        if whole_objects:
            too_young = select(self.model.storage_key).where(
                self.model.storage_tier == StorageTier.STANDARD.value,
                self.model.storage_key.isnot(None),
                self.model.created_at >= cutoff,
            )
            query = query.filter(self.model.storage_key.notin_(too_young))
        return (
            query
            .order_by(self.model.created_at.asc())
            .limit(limit)
            .all()
        )

    def get(self, record_id: str) -> Optional[M]:
        return self.db.get(self.model, record_id)

    def update_archival_state(
        self,
        record_id: str,
        patch: ArchivalPatch,
        expected_tier: Optional[StorageTier] = None,
        event: Optional[ArchivalEvent] = None,
    ) -> int:
        """Write patch to one row. Returns the number of rows changed."""
        return self.bulk_update_archival_state([record_id], patch, expected_tier=expected_tier, event=event)

    def bulk_update_archival_state(
        self,
        record_ids: Sequence[str],
        patch: ArchivalPatch,
        expected_tier: Optional[StorageTier] = None,
        event: Optional[ArchivalEvent] = None,
    ) -> int:
        """
        Write the same patch to every listed row in one statement.

        Args:
            record_ids: Rows to update
            patch: Fields to write
            expected_tier: Only touch rows currently in this tier
            event: Audit row committed in the same transaction

        Raises:
            RelationalUpdateFailed: the statement or commit failed (rolled back)
        """
        if not record_ids:
            return 0

        stmt = (
            update(self.model)
            .where(self.model.id.in_(list(record_ids)))
            .values(**patch.values(self.model))
        )
        if expected_tier is not None:
            stmt = stmt.where(self.model.storage_tier == expected_tier.value)

        try:
            result = self.db.execute(stmt)
            if event is not None:
                event.record_count = result.rowcount
                self.db.add(event)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RelationalUpdateFailed(
                f"Failed to update archival state of {len(record_ids)} {self.table} row(s): {e}"
            ) from e

        if result.rowcount != len(record_ids):
            logger.warning(
                f"{self.table}: updated {result.rowcount} of {len(record_ids)} rows",
                extra={"event": "archival_update_partial", "table": self.table},
            )
        return result.rowcount

    def count_by_tier(self) -> dict[str, int]:
        """Row counts for live, STANDARD and GLACIER records."""
        rows = (
            self.db.query(self.model.storage_tier, func.count(self.model.id))
            .group_by(self.model.storage_tier)
            .all()
        )
        counts = {"live": 0, StorageTier.STANDARD.value: 0, StorageTier.GLACIER.value: 0}
        for tier, count in rows:
            counts[tier or "live"] = counts.get(tier or "live", 0) + count
        return counts

    def ids_for_key(self, storage_key: str, tier: Optional[StorageTier] = None) -> list[str]:
        """Ids of every row pointing at one storage object."""
        query = self.db.query(self.model.id).filter(self.model.storage_key == storage_key)
        if tier is not None:
            query = query.filter(self.model.storage_tier == tier.value)
        return [row_id for (row_id,) in query.all()]

    def tiers_for_key(self, storage_key: str) -> set[str]:
        """Distinct tiers recorded on rows pointing at one storage object."""
        query = self.db.query(self.model.storage_tier).filter(self.model.storage_key == storage_key).distinct()
        return {tier for (tier,) in query.all()}
