# tests/unit/test_logging_config.py
"""Unit tests for structured logging helpers."""

import json
import logging

import pytest

from app.logging_config import JSONFormatter, log_run, log_storage_operation, run_id_var


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("archival", logging.INFO, __file__, 1, "archived %s", ("x",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_basic_fields(self):
        payload = json.loads(JSONFormatter().format(_record()))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "archival"
        assert payload["message"] == "archived x"
        assert payload["timestamp"].endswith("Z")

    def test_extra_fields_copied(self):
        payload = json.loads(JSONFormatter().format(_record(table="datasets", storage_key="k", unrelated=1)))

        assert payload["table"] == "datasets"
        assert payload["storage_key"] == "k"
        assert "unrelated" not in payload

    def test_run_context(self):
        with log_run("run-123"):
            payload = json.loads(JSONFormatter().format(_record()))

        assert payload["run_id"] == "run-123"
        assert payload["component"] == "archival"
        assert run_id_var.get() is None


class TestLogStorageOperation:

    def test_failure_is_logged_and_reraised(self, caplog):
        with caplog.at_level(logging.ERROR, logger="archival.storage"):
            with pytest.raises(RuntimeError):
                with log_storage_operation("s3", "put", "k"):
                    raise RuntimeError("boom")

        assert [r.event for r in caplog.records] == ["storage_put_failed"]

    def test_success_records_size(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="archival.storage"):
            with log_storage_operation("local", "get", "k") as metrics:
                metrics["size_bytes"] = 42

        assert caplog.records[-1].size_bytes == 42
