"""Naive-UTC clock shared by models and the archival engine."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current UTC time without tzinfo, matching the DateTime columns."""
    return datetime.now(UTC).replace(tzinfo=None)
