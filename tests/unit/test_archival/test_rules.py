# tests/unit/test_archival/test_rules.py
"""Unit tests for the archival rule catalog."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta

import pytest

from app.services.archival.rules import (
    ARCHIVAL_RULES,
    NOT_NULL,
    ArchivalRule,
    RetentionAction,
    cold_rules,
    rule_for,
    rules_for,
    tables,
    warm_rules,
)
from app.storage.base import StorageTier


class TestCatalog:
    """The shipped rule set."""

    def test_datasets_progression(self):
        rules = rules_for("datasets")
        assert [(r.age_threshold_days, r.target_tier) for r in rules] == [
            (90, StorageTier.STANDARD),
            (365, StorageTier.GLACIER),
        ]

    def test_datasets_warm_rule_requires_validated(self):
        assert rule_for("datasets", 90).conditions == {"status": "VALIDATED"}

    def test_audit_logs_progression(self):
        rules = rules_for("audit_logs")
        assert [(r.age_threshold_days, r.target_tier) for r in rules] == [
            (30, StorageTier.STANDARD),
            (365, StorageTier.GLACIER),
        ]

    def test_saved_references_requires_sync(self):
        rule = rule_for("saved_references", 180)
        assert rule.target_tier == StorageTier.STANDARD
        assert rule.conditions == {"last_synced_at": NOT_NULL}

    def test_every_shipped_rule_archives(self):
        assert all(r.retention_action == RetentionAction.ARCHIVE for r in ARCHIVAL_RULES)

    def test_unknown_table_has_no_rules(self):
        assert rules_for("weather_stations") == []
        assert rule_for("datasets", 42) is None


class TestSelectors:
    """warm_rules / cold_rules / tables."""

    def test_warm_rules_cover_every_table(self):
        assert [r.table for r in warm_rules()] == ["datasets", "audit_logs", "saved_references"]

    def test_cold_rules(self):
        assert [r.table for r in cold_rules()] == ["datasets", "audit_logs"]
        assert all(r.target_tier == StorageTier.GLACIER for r in cold_rules())

    def test_tables_in_catalog_order(self):
        assert tables() == ["datasets", "audit_logs", "saved_references"]


class TestArchivalRule:
    """ArchivalRule value semantics."""

    def test_cutoff(self):
        rule = ArchivalRule(table="datasets", age_threshold_days=90, target_tier=StorageTier.STANDARD)
        now = datetime(2026, 6, 1, 12, 0)
        assert rule.cutoff(now) == now - timedelta(days=90)

    def test_rules_are_immutable(self):
        rule = rule_for("datasets", 90)
        with pytest.raises(FrozenInstanceError):
            rule.age_threshold_days = 1

    def test_not_null_repr(self):
        assert repr(NOT_NULL) == "NOT_NULL"
