# app/storage/base.py
"""
Storage provider interface for archived records.

Design principles:
- Aging records leave Postgres and live in object storage (S3)
- Every object is a JSON envelope tagged with its tier and archival time
- Envelopes are gzip-compressed before upload
- Postgres keeps only a stub + the storage key
- A disabled provider refuses every operation with StorageNotConfigured
"""

import gzip
import hashlib
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from app.storage.errors import StorageNotConfigured, StorageError
from app.utils.clock import utcnow

ENVELOPE_VERSION = "1.0"


class StorageTier(str, Enum):
    """Object-storage class an archived record lives in."""
    STANDARD = "STANDARD"  # warm: occasional, low-latency access
    GLACIER = "GLACIER"    # cold: rare access, cheaper, slower


@dataclass
class StorageConfig:
    """Everything a provider needs, resolved once at construction."""
    bucket: Optional[str] = None
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    cold_storage_class: str = "GLACIER_IR"
    local_path: Optional[str] = "./storage"

    @classmethod
    def from_settings(cls, settings) -> "StorageConfig":
        return cls(
            bucket=settings.S3_ARCHIVE_BUCKET,
            region=settings.AWS_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            cold_storage_class=settings.ARCHIVE_COLD_STORAGE_CLASS,
            local_path=settings.LOCAL_STORAGE_PATH,
        )


@dataclass
class ArchivedObject:
    """A decoded envelope read back from storage."""
    key: str
    data: Any
    tier: StorageTier
    archived_at: Optional[datetime]
    content_hash: str = ""


def compute_content_hash(content: bytes) -> str:
    """Compute SHA256 hash of content."""
    return hashlib.sha256(content).hexdigest()


def compress_content(content: bytes) -> bytes:
    """Compress content using gzip."""
    return gzip.compress(content, compresslevel=6)


def decompress_content(content: bytes) -> bytes:
    """Decompress gzip content."""
    return gzip.decompress(content)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_envelope(payload: Any, tier: StorageTier, archived_at: datetime) -> bytes:
    """Serialize a payload into the tier-tagged envelope (uncompressed)."""
    envelope = {
        "version": ENVELOPE_VERSION,
        "tier": tier.value,
        "archived_at": archived_at.isoformat(),
        "data": payload,
    }
    return json.dumps(envelope, default=_json_default, sort_keys=True).encode("utf-8")


def decode_envelope(key: str, content: bytes, tier: Optional[StorageTier] = None) -> ArchivedObject:
    """
    Parse an envelope read from storage.

    `tier` overrides the envelope's own tag when the provider knows the
    object's actual storage class (in-place transitions leave the body as-is).
    """
    try:
        envelope = json.loads(content.decode("utf-8"))
        archived_at = envelope.get("archived_at")
        return ArchivedObject(
            key=key,
            data=envelope["data"],
            tier=tier or StorageTier(envelope.get("tier", StorageTier.STANDARD.value)),
            archived_at=datetime.fromisoformat(archived_at) if archived_at else None,
            content_hash=compute_content_hash(content),
        )
    except (UnicodeDecodeError, json.JSONDecodeError, KeyError, ValueError) as e:
        raise StorageError(f"Corrupt archive envelope at {key}: {e}", key=key) from e


class StorageProvider(ABC):
    """
    Abstract interface for archive object storage.

    Implementations must handle:
    - Envelope encoding + compression on put, the reverse on get
    - Tier-transparent reads (or RestoreInProgress for async cold classes)
    - Refusing every operation while not enabled
    - Raising StorageError on any remote failure
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 's3', 'local')."""
        pass

    @abstractmethod
    def is_enabled(self) -> bool:
        """True when a target and credentials are configured."""
        pass

    @abstractmethod
    def put(
        self,
        key: str,
        payload: Any,
        tier: StorageTier = StorageTier.STANDARD,
        archived_at: Optional[datetime] = None,
    ) -> str:
        """
        Write payload under key in the given tier.

        Args:
            key: Object key (e.g., "datasets/{project_id}/{id}.json")
            payload: JSON-serializable record export
            tier: Target storage tier
            archived_at: Provenance marker (defaults to now)

        Returns:
            Locator of the written object (e.g., "s3://bucket/key")
        """
        pass

    @abstractmethod
    def get(self, key: str) -> ArchivedObject:
        """
        Read and decode the object under key.

        Raises:
            ObjectNotFound: nothing stored under key
            RestoreInProgress: cold object not yet readable
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the object under key. Missing objects are not an error."""
        pass

    @abstractmethod
    def presign(self, key: str, ttl_seconds: int = 3600) -> str:
        """Time-limited URL granting direct read access to key."""
        pass

    def change_tier(self, key: str, tier: StorageTier) -> str:
        """
        Move an existing object to another tier.

        Default is rewrite-based: read the object and put it again with the
        new tier, keeping the original archived_at. Providers with a native
        in-place transition override this.
        """
        self._require_enabled()
        existing = self.get(key)
        return self.put(key, existing.data, tier=tier, archived_at=existing.archived_at)

    def _require_enabled(self) -> None:
        if not self.is_enabled():
            raise StorageNotConfigured(f"{self.name} archive storage not configured")

    @staticmethod
    def _provenance(archived_at: Optional[datetime]) -> datetime:
        return archived_at or utcnow()
