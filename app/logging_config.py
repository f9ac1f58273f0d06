"""
Structured JSON logging for archival observability.

Provides structured logging with run IDs for correlating logs across an
archival run, plus a context manager for object-storage operations.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime

# Context variables for run correlation
run_id_var: ContextVar[str | None] = ContextVar("run_id", default=None)
component_var: ContextVar[str | None] = ContextVar("component", default=None)

# Extra fields copied from log records into the JSON payload
EXTRA_FIELDS = (
    "event",
    "table",
    "record_id",
    "storage_key",
    "tier",
    "dry_run",
    "operation",
    "duration_ms",
    "size_bytes",
    "items_processed",
    "items_failed",
)

# Third-party loggers capped at WARNING
QUIET_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "sqlalchemy")


# -----------------------------------------------------------------------------
# JSON Formatter
# -----------------------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON.

    Output format:
    {"timestamp": "...", "level": "INFO", "message": "...", "run_id": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = run_id_var.get()
        if run_id:
            log_data["run_id"] = run_id

        component = component_var.get()
        if component:
            log_data["component"] = component

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """
    Configure logging for deployment or local development.

    Args:
        json_format: If True, use JSON format. If False, use human-readable format.
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def log_run(run_id: str, component: str = "archival"):
    """
    Bind a run ID to every log line emitted inside the block.

    Usage:
        with log_run(uuid.uuid4().hex):
            engine.run(dry_run=False)
    """
    run_token = run_id_var.set(run_id)
    component_token = component_var.set(component)
    try:
        yield
    finally:
        run_id_var.reset(run_token)
        component_var.reset(component_token)


@contextmanager
def log_storage_operation(provider: str, operation: str, key: str):
    """
    Context manager for object-storage operation instrumentation.

    Logs operation end with timing and size; failures are logged and re-raised.

    Usage:
        with log_storage_operation("s3", "put", key) as metrics:
            body = compress_content(...)
            metrics["size_bytes"] = len(body)
    """
    start_time = time.time()
    logger = logging.getLogger("archival.storage")
    metrics: dict = {"size_bytes": 0}

    try:
        yield metrics

        duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(
            f"{provider} {operation} completed: {key} ({metrics['size_bytes']} bytes, {duration_ms}ms)",
            extra={
                "event": f"storage_{operation}_complete",
                "operation": operation,
                "storage_key": key,
                "duration_ms": duration_ms,
                "size_bytes": metrics["size_bytes"],
            },
        )
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"{provider} {operation} failed: {key} - {e}",
            extra={
                "event": f"storage_{operation}_failed",
                "operation": operation,
                "storage_key": key,
                "duration_ms": duration_ms,
            },
        )
        raise
