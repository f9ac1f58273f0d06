"""
Tiered archival for aging records.

Two storage tiers beyond Postgres:
- STANDARD: warm object storage, records stubbed in Postgres
- GLACIER: cold object storage for records past a year

Services:
- rules: Static archival rule catalog
- payloads: Full vs. stub payload variant
- repository: Relational selection + state updates
- engine: Tier transitions, retrieval, full runs
"""

from app.services.archival.engine import (
    FAMILIES,
    ArchivalRunReport,
    LifecycleEngine,
    PromotionResult,
    RecordFamily,
    RetrievalResult,
    TierResult,
)
from app.services.archival.errors import (
    ArchivalError,
    NotArchived,
    RecordNotFound,
    RelationalUpdateFailed,
    UnknownTable,
)
from app.services.archival.rules import (
    ARCHIVAL_RULES,
    NOT_NULL,
    ArchivalRule,
    RetentionAction,
    cold_rules,
    rule_for,
    rules_for,
    warm_rules,
)

__all__ = [
    # Rules
    "ARCHIVAL_RULES",
    "NOT_NULL",
    "ArchivalRule",
    "RetentionAction",
    "rules_for",
    "rule_for",
    "warm_rules",
    "cold_rules",
    # Engine
    "FAMILIES",
    "LifecycleEngine",
    "RecordFamily",
    "TierResult",
    "PromotionResult",
    "ArchivalRunReport",
    "RetrievalResult",
    # Errors
    "ArchivalError",
    "UnknownTable",
    "RecordNotFound",
    "NotArchived",
    "RelationalUpdateFailed",
]
