# app/services/archival/rules.py
"""
Archival rule catalog.

Static, declarative table of which record families move to object storage,
after how many days, and into which tier. Rules for one table form a
progression of thresholds (90d -> STANDARD, 365d -> GLACIER) and are
evaluated independently of each other.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Mapping, Optional

from app.storage.base import StorageTier


class RetentionAction(str, Enum):
    """What happens to a record once a rule applies."""
    ARCHIVE = "ARCHIVE"
    DELETE = "DELETE"  # reserved, never executed


class _NotNull:
    """Existence condition: the column must hold a value."""

    def __repr__(self) -> str:
        return "NOT_NULL"


NOT_NULL = _NotNull()


@dataclass(frozen=True)
class ArchivalRule:
    """One migration policy for a record family."""
    table: str
    age_threshold_days: int
    target_tier: StorageTier
    retention_action: RetentionAction = RetentionAction.ARCHIVE
    conditions: Mapping[str, Any] = field(default_factory=dict)

    def cutoff(self, now: datetime) -> datetime:
        """Records created before this instant are old enough."""
        return now - timedelta(days=self.age_threshold_days)


ARCHIVAL_RULES: tuple[ArchivalRule, ...] = (
    ArchivalRule(
        table="datasets",
        age_threshold_days=90,
        target_tier=StorageTier.STANDARD,
        conditions={"status": "VALIDATED"},
    ),
    ArchivalRule(
        table="datasets",
        age_threshold_days=365,
        target_tier=StorageTier.GLACIER,
    ),
    ArchivalRule(
        table="audit_logs",
        age_threshold_days=30,
        target_tier=StorageTier.STANDARD,
    ),
    ArchivalRule(
        table="audit_logs",
        age_threshold_days=365,
        target_tier=StorageTier.GLACIER,
    ),
    ArchivalRule(
        table="saved_references",
        age_threshold_days=180,
        target_tier=StorageTier.STANDARD,
        conditions={"last_synced_at": NOT_NULL},
    ),
)


def rules_for(table: str) -> list[ArchivalRule]:
    """All rules governing a table, youngest threshold first."""
    return sorted(
        (r for r in ARCHIVAL_RULES if r.table == table),
        key=lambda r: r.age_threshold_days,
    )


def rule_for(table: str, age_threshold_days: int) -> Optional[ArchivalRule]:
    """The rule for a table at an exact threshold, if any."""
    for rule in ARCHIVAL_RULES:
        if rule.table == table and rule.age_threshold_days == age_threshold_days:
            return rule
    return None


def warm_rules() -> list[ArchivalRule]:
    """ARCHIVE rules that move records out of the relational store."""
    return [
        r for r in ARCHIVAL_RULES
        if r.target_tier == StorageTier.STANDARD and r.retention_action == RetentionAction.ARCHIVE
    ]


def cold_rules() -> list[ArchivalRule]:
    """ARCHIVE rules that promote STANDARD objects to the cold tier."""
    return [
        r for r in ARCHIVAL_RULES
        if r.target_tier == StorageTier.GLACIER and r.retention_action == RetentionAction.ARCHIVE
    ]


def tables() -> list[str]:
    """Governed tables in catalog order."""
    seen: list[str] = []
    for rule in ARCHIVAL_RULES:
        if rule.table not in seen:
            seen.append(rule.table)
    return seen
