# tests/conftest.py
"""
Pytest configuration and fixtures.
"""

import os
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

import pytest

# Set test environment
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("STORAGE_PROVIDER", "local")

from app.storage.base import (  # noqa: E402
    ArchivedObject,
    StorageProvider,
    StorageTier,
    decode_envelope,
    encode_envelope,
)
from app.storage.errors import ObjectNotFound, StorageError  # noqa: E402

# Fixed "now" for engine tests
NOW = datetime(2026, 6, 1, 12, 0, 0)


class InMemoryStorage(StorageProvider):
    """
    Dict-backed storage provider.

    Keys listed in `fail_keys` raise StorageError on write, mimicking a
    remote outage for one object.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.objects: dict[str, bytes] = {}
        self.tiers: dict[str, StorageTier] = {}
        self.fail_keys: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "memory"

    def is_enabled(self) -> bool:
        return self.enabled

    def put(
        self,
        key: str,
        payload: Any,
        tier: StorageTier = StorageTier.STANDARD,
        archived_at: Optional[datetime] = None,
    ) -> str:
        self._require_enabled()
        self.calls.append(("put", key))
        if key in self.fail_keys:
            raise StorageError(f"Simulated outage writing {key}", key=key)
        self.objects[key] = encode_envelope(payload, tier, self._provenance(archived_at))
        self.tiers[key] = tier
        return f"memory://{key}"

    def get(self, key: str) -> ArchivedObject:
        self._require_enabled()
        self.calls.append(("get", key))
        if key not in self.objects:
            raise ObjectNotFound(f"No object at {key}", key=key)
        return decode_envelope(key, self.objects[key], tier=self.tiers[key])

    def delete(self, key: str) -> None:
        self._require_enabled()
        self.calls.append(("delete", key))
        self.objects.pop(key, None)
        self.tiers.pop(key, None)

    def presign(self, key: str, ttl_seconds: int = 3600) -> str:
        self._require_enabled()
        return f"https://archive.test/{key}?ttl={ttl_seconds}"

    def puts(self) -> list[str]:
        return [key for op, key in self.calls if op == "put"]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def db():
    """Fresh in-memory schema per test."""
    from app import models  # noqa: F401
    from app.database import Base, SessionLocal, engine

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def lifecycle(db, storage):
    """Engine pinned to NOW."""
    from app.services.archival import LifecycleEngine

    return LifecycleEngine(storage=storage, db=db, clock=lambda: NOW)


@pytest.fixture
def make_dataset(db):
    """Insert a dataset `age_days` old (VALIDATED unless overridden)."""
    from app.models import Dataset, DatasetStatus

    def _make(age_days: int, now: datetime = NOW, **overrides):
        values = {
            "id": str(uuid.uuid4()),
            "project_id": "proj-1",
            "name": "Maize yield trial",
            "filename": "trial.csv",
            "status": DatasetStatus.VALIDATED.value,
            "data": {"rows": [{"plot": 1, "yield_t_ha": 7.4}, {"plot": 2, "yield_t_ha": 6.9}]},
            "meta": {"season": "2025A"},
            "created_at": now - timedelta(days=age_days),
        }
        values.update(overrides)
        record = Dataset(**values)
        db.add(record)
        db.commit()
        return record

    return _make


@pytest.fixture
def make_audit_log(db):
    from app.models import AuditLog

    def _make(age_days: int, user_id: str = "user-1", now: datetime = NOW, **overrides):
        values = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "action": "dataset.download",
            "entity_type": "dataset",
            "entity_id": str(uuid.uuid4()),
            "details": {"format": "csv"},
            "ip_address": "10.0.0.1",
            "created_at": now - timedelta(days=age_days),
        }
        values.update(overrides)
        record = AuditLog(**values)
        db.add(record)
        db.commit()
        return record

    return _make


@pytest.fixture
def make_saved_reference(db):
    from app.models import SavedReference

    def _make(age_days: int, now: datetime = NOW, **overrides):
        values = {
            "id": str(uuid.uuid4()),
            "user_id": "user-1",
            "title": "Nitrogen response of tropical maize",
            "url": "https://doi.org/10.1000/maize",
            "source": "crossref",
            "data": {"authors": ["Okafor", "Mensah"], "year": 2019},
            "last_synced_at": now - timedelta(days=1),
            "created_at": now - timedelta(days=age_days),
        }
        values.update(overrides)
        record = SavedReference(**values)
        db.add(record)
        db.commit()
        return record

    return _make
