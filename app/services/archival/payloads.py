# app/services/archival/payloads.py
"""
Typed view over the payload column of a governed record.

A payload column holds either the record's full bulk data or, once the
record is archived, a stub pointing at its storage key.
"""

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class FullPayload:
    """Bulk data still held in the relational store."""
    data: Any


@dataclass(frozen=True)
class StubPayload:
    """Minimized body left behind after archival."""
    storage_key: str

    def to_column(self) -> dict:
        return {"archived": True, "storage_key": self.storage_key}


Payload = Union[FullPayload, StubPayload]


def read_payload(value: Any) -> Payload:
    """Classify a raw column value."""
    if (
        isinstance(value, dict)
        and value.get("archived") is True
        and isinstance(value.get("storage_key"), str)
        and set(value) == {"archived", "storage_key"}
    ):
        return StubPayload(storage_key=value["storage_key"])
    return FullPayload(data=value)


def is_stub(value: Any) -> bool:
    return isinstance(read_payload(value), StubPayload)
