# app/storage/local_provider.py
"""
Local filesystem archive storage for development and testing.

Mimics S3 behavior but stores files locally.
NOT for production use.
"""

import json
import logging
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from app.logging_config import log_storage_operation
from app.storage.base import (
    ArchivedObject,
    StorageConfig,
    StorageProvider,
    StorageTier,
    compress_content,
    compute_content_hash,
    decode_envelope,
    decompress_content,
    encode_envelope,
)
from app.storage.errors import ObjectNotFound, StorageError

logger = logging.getLogger(__name__)


class LocalStorageProvider(StorageProvider):
    """
    Local filesystem archive storage.

    Stores gzip envelopes in a directory structure that mimics S3, with a
    sidecar metadata file per object recording its current tier.
    """

    def __init__(self, config: StorageConfig):
        """
        Initialize local storage.

        Args:
            config: Resolved storage configuration (uses `local_path`)
        """
        self._base_path: Optional[Path] = Path(config.local_path) if config.local_path else None
        self._metadata_suffix = ".meta.json"

        if self._base_path is not None:
            self._base_path.mkdir(parents=True, exist_ok=True)
            logger.info(f"Local archive storage initialized: {self._base_path}")

    @property
    def name(self) -> str:
        return "local"

    def is_enabled(self) -> bool:
        return self._base_path is not None

    def _get_path(self, key: str) -> Path:
        """Get filesystem path for key, with path traversal protection."""
        resolved = (self._base_path / key).resolve()
        if not resolved.is_relative_to(self._base_path.resolve()):
            raise ValueError("Path traversal detected")
        return resolved

    def _get_metadata_path(self, key: str) -> Path:
        """Get metadata file path for key, with path traversal protection."""
        resolved = (self._base_path / f"{key}{self._metadata_suffix}").resolve()
        if not resolved.is_relative_to(self._base_path.resolve()):
            raise ValueError("Path traversal detected")
        return resolved

    def _write_metadata(self, key: str, tier: StorageTier, archived_at: datetime, content_hash: str) -> None:
        meta_path = self._get_metadata_path(key)
        meta_path.write_text(json.dumps({
            "tier": tier.value,
            "archived_at": archived_at.isoformat(),
            "content_hash": content_hash,
        }, indent=2))

    def _load_tier(self, key: str) -> Optional[StorageTier]:
        meta_path = self._get_metadata_path(key)
        if not meta_path.exists():
            return None
        try:
            return StorageTier(json.loads(meta_path.read_text())["tier"])
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.warning(f"Failed to load metadata for {key}: {e}")
            return None

    def put(
        self,
        key: str,
        payload: Any,
        tier: StorageTier = StorageTier.STANDARD,
        archived_at: Optional[datetime] = None,
    ) -> str:
        """Write a compressed envelope to the local filesystem."""
        self._require_enabled()
        archived_at = self._provenance(archived_at)

        content = encode_envelope(payload, tier, archived_at)
        compressed = compress_content(content)

        file_path = self._get_path(key)
        try:
            with log_storage_operation(self.name, "put", key) as metrics:
                file_path.parent.mkdir(parents=True, exist_ok=True)
                file_path.write_bytes(compressed)
                self._write_metadata(key, tier, archived_at, compute_content_hash(content))
                metrics["size_bytes"] = len(compressed)
        except OSError as e:
            raise StorageError(f"Local put failed for {key}: {e}", key=key) from e

        return file_path.as_uri()

    def get(self, key: str) -> ArchivedObject:
        """Read and decode an envelope from the local filesystem."""
        self._require_enabled()

        file_path = self._get_path(key)
        if not file_path.exists():
            raise ObjectNotFound(f"Local object not found: {key}", key=key)

        try:
            with log_storage_operation(self.name, "get", key) as metrics:
                compressed = file_path.read_bytes()
                metrics["size_bytes"] = len(compressed)
        except OSError as e:
            raise StorageError(f"Local get failed for {key}: {e}", key=key) from e

        return decode_envelope(key, decompress_content(compressed), tier=self._load_tier(key))

    def delete(self, key: str) -> None:
        """Delete object and metadata."""
        self._require_enabled()

        for path in (self._get_path(key), self._get_metadata_path(key)):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(f"Local delete failed for {key}: {e}", key=key) from e

    def presign(self, key: str, ttl_seconds: int = 3600) -> str:
        """File URL with an advisory expiry; there is no signer locally."""
        self._require_enabled()

        file_path = self._get_path(key)
        if not file_path.exists():
            raise ObjectNotFound(f"Local object not found: {key}", key=key)
        return f"{file_path.as_uri()}?expires={int(time.time()) + ttl_seconds}"

    def change_tier(self, key: str, tier: StorageTier) -> str:
        """Rewrite only the sidecar metadata; the envelope body is unchanged."""
        self._require_enabled()

        existing = self.get(key)
        try:
            self._write_metadata(
                key,
                tier,
                self._provenance(existing.archived_at),
                existing.content_hash,
            )
        except OSError as e:
            raise StorageError(f"Local tier change failed for {key}: {e}", key=key) from e
        return self._get_path(key).as_uri()

    def cleanup(self) -> None:
        """Remove all stored content (for testing)."""
        if self._base_path is not None and self._base_path.exists():
            shutil.rmtree(self._base_path)
            self._base_path.mkdir(parents=True, exist_ok=True)
