# app/services/archival/engine.py
"""
Lifecycle engine: moves aging records from Postgres into object storage.

Handles:
- Archiving eligible records to the warm tier (STANDARD) and stubbing them
- Promoting STANDARD objects to the cold tier (GLACIER)
- Rehydrating one archived record on demand
- Dry runs that count would-be actions without touching anything

Records are processed one at a time; a failure is tallied against that
record (or owner group) and the batch carries on. There is no retry queue:
a record that failed stays eligible and the next scheduled run picks it up.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from app.logging_config import log_run
from app.models import ArchivalEvent, ArchivalEventType, AuditLog, Dataset, SavedReference
from app.services.archival.errors import NotArchived, RecordNotFound, RelationalUpdateFailed, UnknownTable
from app.services.archival.payloads import StubPayload, read_payload
from app.services.archival.repository import ArchivalPatch, ArchivalRepository
from app.services.archival.rules import RetentionAction, cold_rules, rules_for, warm_rules
from app.storage.base import StorageProvider, StorageTier
from app.storage.errors import ObjectNotFound, StorageError, StorageNotConfigured
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Record families
# -----------------------------------------------------------------------------


def _export_dataset(record: Dataset) -> dict:
    return {
        "id": record.id,
        "project_id": record.project_id,
        "name": record.name,
        "filename": record.filename,
        "status": record.status,
        "data": record.data,
        "metadata": record.meta,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


def _export_audit_log(record: AuditLog) -> dict:
    return {
        "id": record.id,
        "user_id": record.user_id,
        "action": record.action,
        "entity_type": record.entity_type,
        "entity_id": record.entity_id,
        "details": record.details,
        "ip_address": record.ip_address,
        "created_at": record.created_at,
    }


def _export_saved_reference(record: SavedReference) -> dict:
    return {
        "id": record.id,
        "user_id": record.user_id,
        "title": record.title,
        "url": record.url,
        "source": record.source,
        "data": record.data,
        "last_synced_at": record.last_synced_at,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


@dataclass(frozen=True)
class RecordFamily:
    """How one governed table is keyed, batched and exported."""
    table: str
    model: type
    namespace: str
    owner_attr: str
    batch_size: int
    export: Callable[[Any], dict]
    grouped: bool = False

    def key_for(self, record) -> str:
        return f"{self.namespace}/{getattr(record, self.owner_attr)}/{record.id}.json"

    def group_key(self, owner: str, day: date, seq: int = 0) -> str:
        suffix = f"-{seq}" if seq else ""
        return f"{self.namespace}/{owner}/{day.isoformat()}{suffix}.json"


FAMILIES: dict[str, RecordFamily] = {
    "datasets": RecordFamily(
        table="datasets",
        model=Dataset,
        namespace="datasets",
        owner_attr="project_id",
        batch_size=100,
        export=_export_dataset,
    ),
    # Many small rows per user: one object per user per run-day
    "audit_logs": RecordFamily(
        table="audit_logs",
        model=AuditLog,
        namespace="audit-logs",
        owner_attr="user_id",
        batch_size=1000,
        export=_export_audit_log,
        grouped=True,
    ),
    "saved_references": RecordFamily(
        table="saved_references",
        model=SavedReference,
        namespace="saved-references",
        owner_attr="user_id",
        batch_size=100,
        export=_export_saved_reference,
    ),
}


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------


@dataclass
class TierResult:
    """Outcome of one warm-tier pass over a table."""
    archived: int = 0
    errors: int = 0


@dataclass
class PromotionResult:
    """Outcome of one cold-tier promotion pass."""
    moved: int = 0
    errors: int = 0


@dataclass
class ArchivalRunReport:
    """Everything one scheduled run did. Not persisted."""
    dry_run: bool
    timestamp: datetime
    warm: dict[str, TierResult] = field(default_factory=dict)
    cold: PromotionResult = field(default_factory=PromotionResult)

    @property
    def total_archived(self) -> int:
        return sum(r.archived for r in self.warm.values())

    @property
    def total_errors(self) -> int:
        return sum(r.errors for r in self.warm.values()) + self.cold.errors

    @property
    def glacier_moved(self) -> int:
        return self.cold.moved


@dataclass
class RetrievalResult:
    """One record rehydrated from object storage."""
    id: str
    table: str
    data: Any
    tier: StorageTier
    archived_at: Optional[datetime]
    retrieved_at: datetime


# -----------------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------------


class LifecycleEngine:
    """
    Runs archival rules against the relational store and object storage.

    Idempotency comes entirely from the row state: `is_archived` keeps a
    record out of warm selection, `storage_tier` out of cold selection.
    Two overlapping runs may both write the same object; the content is
    identical and the last relational update wins.
    """

    PROMOTION_BATCH_SIZE = 50

    def __init__(
        self,
        storage: StorageProvider,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        initiated_by: str = "scheduler",
    ):
        self.storage = storage
        self.db = db
        self.clock = clock
        self.initiated_by = initiated_by

    def is_enabled(self) -> bool:
        return self.storage.is_enabled()

    def family(self, table: str) -> RecordFamily:
        try:
            return FAMILIES[table]
        except KeyError:
            raise UnknownTable(f"Table '{table}' is not governed by any archival rule") from None

    def repository(self, table: str) -> ArchivalRepository:
        return ArchivalRepository(self.db, self.family(table).model)

    # -------------------------------------------------------------------------
    # Warm tier
    # -------------------------------------------------------------------------

    def archive_to_warm_tier(self, table: str, dry_run: bool = False) -> TierResult:
        """
        Copy eligible records of a table to STANDARD storage and stub them.

        Args:
            table: Governed table name
            dry_run: Count and log would-be archivals only

        Returns:
            TierResult with archived/error counts (rows, for grouped tables)
        """
        family = self.family(table)
        result = TierResult()

        if not self.storage.is_enabled():
            logger.warning(f"Archive storage not enabled, skipping {table} archival")
            return result

        rule = next((r for r in rules_for(table) if r.target_tier == StorageTier.STANDARD), None)
        if rule is None:
            return result
        if rule.retention_action != RetentionAction.ARCHIVE:
            logger.warning(f"Retention action {rule.retention_action.value} for {table} is reserved, skipping")
            return result

        now = self.clock()
        repo = self.repository(family.table)
        records = repo.find_eligible(rule.cutoff(now), rule.conditions, family.batch_size)

        logger.info(
            f"Found {len(records)} {table} to archive (dry_run={dry_run})",
            extra={"event": "archive_candidates", "table": table, "dry_run": dry_run},
        )

        if family.grouped:
            self._archive_grouped(family, repo, records, now, dry_run, result)
        else:
            for record in records:
                if dry_run:
                    logger.info(f"[DRY RUN] Would archive {table} {record.id} to {family.key_for(record)}")
                    result.archived += 1
                    continue

                try:
                    if self._archive_record(family, repo, record, now):
                        result.archived += 1
                    else:
                        result.errors += 1
                except Exception as e:
                    logger.error(f"Error archiving {table} {record.id}: {e}", exc_info=True)
                    result.errors += 1

        logger.info(
            f"Archive {table} complete: {result.archived} archived, {result.errors} failed",
            extra={
                "event": "archive_complete",
                "table": table,
                "dry_run": dry_run,
                "items_processed": result.archived,
                "items_failed": result.errors,
            },
        )
        return result

    def _archive_record(self, family: RecordFamily, repo: ArchivalRepository, record, now: datetime) -> bool:
        """Write one record to storage, then flip its state. False on failure."""
        if isinstance(read_payload(getattr(record, family.model.__payload_column__)), StubPayload):
            logger.critical(
                f"{family.table} {record.id} holds a stub payload but is not archived; refusing to overwrite",
                extra={"event": "archive_inconsistent", "table": family.table, "record_id": record.id},
            )
            return False

        key = family.key_for(record)
        try:
            self.storage.put(key, family.export(record), StorageTier.STANDARD, archived_at=now)
        except (StorageError, StorageNotConfigured) as e:
            logger.error(
                f"Failed to archive {family.table} {record.id}: {e}",
                extra={"event": "archive_failed", "table": family.table, "record_id": record.id},
            )
            return False

        try:
            repo.update_archival_state(
                record.id,
                self._warm_patch(key, now),
                event=self._event(family.table, ArchivalEventType.ARCHIVED, key, StorageTier.STANDARD, [record.id]),
            )
        except RelationalUpdateFailed as e:
            self._log_orphan(family.table, key, [record.id], e)
            return False

        logger.info(
            f"Archived {family.table} {record.id} to {key}",
            extra={"event": "archived", "table": family.table, "record_id": record.id, "storage_key": key},
        )
        return True

    def _archive_grouped(
        self,
        family: RecordFamily,
        repo: ArchivalRepository,
        records: list,
        now: datetime,
        dry_run: bool,
        result: TierResult,
    ) -> None:
        """Archive rows batched by owner, one object per owner per day."""
        by_owner: dict[str, list] = {}
        for record in records:
            by_owner.setdefault(getattr(record, family.owner_attr), []).append(record)

        for owner, rows in by_owner.items():
            key = self._open_group_key(family, repo, owner, now.date())
            if dry_run:
                logger.info(f"[DRY RUN] Would archive {len(rows)} {family.table} for {owner} to {key}")
                result.archived += len(rows)
                continue

            try:
                archived = self._archive_group(family, repo, key, rows, now)
            except Exception as e:
                logger.error(f"Error archiving {family.table} for {owner}: {e}", exc_info=True)
                archived = 0
            result.archived += archived
            result.errors += len(rows) - archived

    @staticmethod
    def _open_group_key(family: RecordFamily, repo: ArchivalRepository, owner: str, day: date) -> str:
        """
        First key for owner/day whose rows are all still STANDARD.

        An object that has been promoted is never reopened; later rows for the
        same day go to the next sequence key.
        """
        seq = 0
        while repo.tiers_for_key(family.group_key(owner, day, seq)) - {StorageTier.STANDARD.value}:
            seq += 1
        return family.group_key(owner, day, seq)

    def _archive_group(
        self,
        family: RecordFamily,
        repo: ArchivalRepository,
        key: str,
        rows: list,
        now: datetime,
    ) -> int:
        """Merge rows into the owner's object for the day. Returns rows archived."""
        payload_column = family.model.__payload_column__
        clean = []
        for row in rows:
            if isinstance(read_payload(getattr(row, payload_column)), StubPayload):
                logger.critical(
                    f"{family.table} {row.id} holds a stub payload but is not archived; excluded",
                    extra={"event": "archive_inconsistent", "table": family.table, "record_id": row.id},
                )
                continue
            clean.append(row)
        if not clean:
            return 0

        try:
            current = self.storage.get(key)
        except ObjectNotFound:
            existing = []
        else:
            if current.tier != StorageTier.STANDARD:
                raise StorageError(f"{key} is in {current.tier.value}, refusing to rewrite it as STANDARD", key=key)
            existing = current.data

        # A second run on the same day extends the object instead of replacing it
        merged = {entry["id"]: entry for entry in existing if isinstance(entry, dict) and "id" in entry}
        for row in clean:
            merged[row.id] = family.export(row)

        try:
            self.storage.put(key, list(merged.values()), StorageTier.STANDARD, archived_at=now)
        except (StorageError, StorageNotConfigured) as e:
            logger.error(
                f"Failed to archive {len(clean)} {family.table} to {key}: {e}",
                extra={"event": "archive_failed", "table": family.table, "storage_key": key},
            )
            return 0

        ids = [row.id for row in clean]
        try:
            repo.bulk_update_archival_state(
                ids,
                self._warm_patch(key, now),
                event=self._event(family.table, ArchivalEventType.ARCHIVED, key, StorageTier.STANDARD, ids),
            )
        except RelationalUpdateFailed as e:
            self._log_orphan(family.table, key, ids, e)
            return 0

        logger.info(
            f"Archived {len(ids)} {family.table} to {key}",
            extra={"event": "archived", "table": family.table, "storage_key": key, "items_processed": len(ids)},
        )
        return len(ids)

    # -------------------------------------------------------------------------
    # Cold tier
    # -------------------------------------------------------------------------

    def promote_to_cold_tier(self, dry_run: bool = False) -> PromotionResult:
        """
        Move STANDARD objects past a cold-tier threshold to GLACIER.

        Rows sharing one object (grouped tables) move together, and only once
        the newest of them is past the threshold. The object's tier is the
        source of truth for every row pointing at it.
        """
        result = PromotionResult()

        if not self.storage.is_enabled():
            logger.warning("Archive storage not enabled, skipping cold-tier promotion")
            return result

        now = self.clock()
        for rule in cold_rules():
            family = self.family(rule.table)
            repo = self.repository(family.table)
            records = repo.find_promotable(
                rule.cutoff(now), self.PROMOTION_BATCH_SIZE, whole_objects=family.grouped
            )

            logger.info(
                f"Found {len(records)} {rule.table} to move to {StorageTier.GLACIER.value}",
                extra={"event": "promote_candidates", "table": rule.table, "dry_run": dry_run},
            )

            keys: dict[str, list[str]] = {}
            for record in records:
                keys.setdefault(record.storage_key, []).append(record.id)

            for key, ids in keys.items():
                if family.grouped:
                    ids = repo.ids_for_key(key, StorageTier.STANDARD)

                if dry_run:
                    logger.info(f"[DRY RUN] Would move {key} ({len(ids)} {rule.table}) to GLACIER")
                    result.moved += len(ids)
                    continue

                try:
                    moved = self._promote_object(family, repo, key, ids)
                except Exception as e:
                    logger.error(f"Error promoting {key}: {e}", exc_info=True)
                    moved = None

                if moved is None:
                    result.errors += len(ids)
                else:
                    result.moved += moved

        logger.info(
            f"Cold-tier promotion complete: {result.moved} moved, {result.errors} failed",
            extra={
                "event": "promote_complete",
                "dry_run": dry_run,
                "items_processed": result.moved,
                "items_failed": result.errors,
            },
        )
        return result

    def _promote_object(
        self,
        family: RecordFamily,
        repo: ArchivalRepository,
        key: str,
        ids: list[str],
    ) -> Optional[int]:
        """Change one object's tier, then the rows pointing at it. Rows moved, or None on failure."""
        try:
            self.storage.change_tier(key, StorageTier.GLACIER)
        except (StorageError, StorageNotConfigured) as e:
            logger.error(
                f"Failed to move {key} to GLACIER: {e}",
                extra={"event": "promote_failed", "table": family.table, "storage_key": key},
            )
            return None

        try:
            updated = repo.bulk_update_archival_state(
                ids,
                ArchivalPatch(storage_tier=StorageTier.GLACIER),
                expected_tier=StorageTier.STANDARD,
                event=self._event(family.table, ArchivalEventType.PROMOTED, key, StorageTier.GLACIER, ids),
            )
        except RelationalUpdateFailed as e:
            logger.critical(
                f"{key} is in GLACIER but {len(ids)} {family.table} row(s) still say STANDARD: {e}",
                extra={"event": "promote_state_mismatch", "table": family.table, "storage_key": key},
            )
            return None

        logger.info(
            f"Moved {key} to GLACIER",
            extra={"event": "promoted", "table": family.table, "storage_key": key, "tier": StorageTier.GLACIER.value},
        )
        return updated

    # -------------------------------------------------------------------------
    # Retrieval
    # -------------------------------------------------------------------------

    def _archived_record(self, record_id: str, table: str):
        family = self.family(table)
        if not self.storage.is_enabled():
            raise StorageNotConfigured("Archive storage not configured")

        record = self.repository(family.table).get(record_id)
        if record is None:
            raise RecordNotFound(f"{table} {record_id} not found")
        if not record.is_archived or not record.storage_key:
            raise NotArchived(f"{table} {record_id} is not archived")
        return family, record

    def retrieve(self, record_id: str, table: str = "datasets") -> RetrievalResult:
        """
        Read an archived record back from object storage.

        Raises:
            StorageNotConfigured: storage disabled
            RecordNotFound: unknown id
            NotArchived: record still lives in the relational store
            RestoreInProgress: cold object being restored, retry later
            StorageError: any other storage failure
        """
        family, record = self._archived_record(record_id, table)
        obj = self.storage.get(record.storage_key)

        data = obj.data
        if family.grouped:
            data = next(
                (entry for entry in obj.data if isinstance(entry, dict) and entry.get("id") == record.id),
                None,
            )
            if data is None:
                raise StorageError(f"{table} {record_id} missing from {record.storage_key}", key=record.storage_key)

        return RetrievalResult(
            id=record.id,
            table=table,
            data=data,
            tier=obj.tier,
            archived_at=obj.archived_at,
            retrieved_at=self.clock(),
        )

    def presign(self, record_id: str, table: str = "datasets", ttl_seconds: int = 3600) -> str:
        """Presigned URL for the object holding an archived record."""
        _, record = self._archived_record(record_id, table)
        return self.storage.presign(record.storage_key, ttl_seconds)

    # -------------------------------------------------------------------------
    # Full run
    # -------------------------------------------------------------------------

    def run(self, dry_run: bool = False) -> ArchivalRunReport:
        """Every warm-tier rule, then one cold-tier promotion pass."""
        with log_run(uuid.uuid4().hex):
            report = ArchivalRunReport(dry_run=dry_run, timestamp=self.clock())
            for rule in warm_rules():
                report.warm[rule.table] = self.archive_to_warm_tier(rule.table, dry_run=dry_run)
            report.cold = self.promote_to_cold_tier(dry_run=dry_run)

            logger.info(
                f"Archival run complete: {report.total_archived} archived, "
                f"{report.glacier_moved} promoted, {report.total_errors} errors",
                extra={"event": "run_complete", "dry_run": dry_run},
            )
            return report

    def stats(self) -> dict[str, dict[str, int]]:
        """Row counts per table and tier."""
        return {table: self.repository(family.table).count_by_tier() for table, family in FAMILIES.items()}

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _warm_patch(key: str, now: datetime) -> ArchivalPatch:
        return ArchivalPatch(
            storage_tier=StorageTier.STANDARD,
            storage_key=key,
            archived_at=now,
            is_archived=True,
            payload=StubPayload(storage_key=key),
        )

    def _event(
        self,
        table: str,
        event_type: ArchivalEventType,
        key: str,
        tier: StorageTier,
        ids: list[str],
    ) -> ArchivalEvent:
        return ArchivalEvent(
            table_name=table,
            event_type=event_type.value,
            storage_key=key,
            storage_tier=tier.value,
            record_count=len(ids),
            initiated_by=self.initiated_by,
            event_metadata={"record_ids": ids},
        )

    @staticmethod
    def _log_orphan(table: str, key: str, ids: list[str], error: Exception) -> None:
        logger.critical(
            f"Stored {key} but could not mark {len(ids)} {table} row(s) archived; "
            f"object has no relational pointer until the next run: {error}",
            extra={"event": "archive_orphaned_object", "table": table, "storage_key": key},
        )
