# app/storage/s3_provider.py
"""
S3 archive storage provider implementation using boto3.

Supports:
- AWS S3 (STANDARD for the warm tier, a Glacier class for the cold tier)
- S3-compatible services (MinIO, DigitalOcean Spaces, etc.)
"""

import logging
from datetime import datetime
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.logging_config import log_storage_operation
from app.storage.base import (
    ENVELOPE_VERSION,
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
from app.storage.errors import ObjectNotFound, RestoreInProgress, StorageError

logger = logging.getLogger(__name__)

# Classes whose objects must be restored before they can be read
ASYNC_RESTORE_CLASSES = {"GLACIER", "DEEP_ARCHIVE"}


def _error_code(e: ClientError) -> str:
    return e.response.get("Error", {}).get("Code", "")


class S3StorageProvider(StorageProvider):
    """
    S3/S3-compatible archive storage provider.

    Enabled only when a bucket and both AWS credentials are configured.
    """

    def __init__(self, config: StorageConfig, client: Any = None):
        """
        Initialize S3 provider.

        Args:
            config: Resolved storage configuration
            client: Pre-built boto3 S3 client (tests); built lazily otherwise
        """
        self._config = config
        self._client = client

        if self.is_enabled():
            logger.info(f"S3 archive storage initialized: bucket={config.bucket}")
        else:
            logger.warning(
                "S3 archival not configured. Set AWS credentials and S3_ARCHIVE_BUCKET to enable."
            )

    @property
    def name(self) -> str:
        return "s3"

    @property
    def bucket(self) -> Optional[str]:
        return self._config.bucket

    @property
    def client(self):
        """Lazy-build the boto3 client."""
        if self._client is None:
            config = Config(
                retries={"max_attempts": 3, "mode": "adaptive"},
                connect_timeout=5,
                read_timeout=30,
                signature_version="s3v4",
            )
            self._client = boto3.client(
                "s3",
                endpoint_url=self._config.endpoint_url,
                region_name=self._config.region,
                aws_access_key_id=self._config.access_key_id,
                aws_secret_access_key=self._config.secret_access_key,
                config=config,
            )
        return self._client

    def is_enabled(self) -> bool:
        return bool(
            self._config.bucket
            and self._config.access_key_id
            and self._config.secret_access_key
        )

    def storage_class_for(self, tier: StorageTier) -> str:
        if tier == StorageTier.GLACIER:
            return self._config.cold_storage_class
        return "STANDARD"

    def tier_for_class(self, storage_class: Optional[str]) -> StorageTier:
        # S3 omits StorageClass for STANDARD objects
        if not storage_class or storage_class in ("STANDARD", "REDUCED_REDUNDANCY"):
            return StorageTier.STANDARD
        return StorageTier.GLACIER

    def put(
        self,
        key: str,
        payload: Any,
        tier: StorageTier = StorageTier.STANDARD,
        archived_at: Optional[datetime] = None,
    ) -> str:
        """Upload a gzip-compressed envelope to S3."""
        self._require_enabled()
        archived_at = self._provenance(archived_at)

        content = encode_envelope(payload, tier, archived_at)
        body = compress_content(content)

        try:
            with log_storage_operation(self.name, "put", key) as metrics:
                self.client.put_object(
                    Bucket=self._config.bucket,
                    Key=key,
                    Body=body,
                    ContentType="application/json",
                    ContentEncoding="gzip",
                    StorageClass=self.storage_class_for(tier),
                    Metadata={
                        "archived-at": archived_at.isoformat(),
                        "tier": tier.value,
                        "version": ENVELOPE_VERSION,
                        "content-hash": compute_content_hash(content),
                        "original-size": str(len(content)),
                    },
                )
                metrics["size_bytes"] = len(body)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 put failed for {key}: {e}", key=key) from e

        return f"s3://{self._config.bucket}/{key}"

    def get(self, key: str) -> ArchivedObject:
        """Download and decode an envelope from S3."""
        self._require_enabled()

        try:
            with log_storage_operation(self.name, "get", key) as metrics:
                response = self.client.get_object(Bucket=self._config.bucket, Key=key)
                compressed = response["Body"].read()
                metrics["size_bytes"] = len(compressed)
        except ClientError as e:
            code = _error_code(e)
            if code in ("NoSuchKey", "404"):
                raise ObjectNotFound(f"S3 object not found: {key}", key=key) from e
            if code == "InvalidObjectState":
                self._request_restore(key)
                raise RestoreInProgress(f"S3 object {key} is being restored from cold storage", key=key) from e
            raise StorageError(f"S3 get failed for {key}: {e}", key=key) from e
        except BotoCoreError as e:
            raise StorageError(f"S3 get failed for {key}: {e}", key=key) from e

        return decode_envelope(
            key,
            decompress_content(compressed),
            tier=self.tier_for_class(response.get("StorageClass")),
        )

    def delete(self, key: str) -> None:
        """Delete object from S3."""
        self._require_enabled()

        try:
            with log_storage_operation(self.name, "delete", key):
                self.client.delete_object(Bucket=self._config.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 delete failed for {key}: {e}", key=key) from e

    def presign(self, key: str, ttl_seconds: int = 3600) -> str:
        """Generate a presigned GET URL."""
        self._require_enabled()

        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._config.bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 presign failed for {key}: {e}", key=key) from e

    def change_tier(self, key: str, tier: StorageTier) -> str:
        """
        Transition the object in place with a self-copy to the new class.

        Metadata is copied unchanged; reads report the tier from the
        object's actual storage class.
        """
        self._require_enabled()

        try:
            with log_storage_operation(self.name, "change_tier", key):
                self.client.copy_object(
                    Bucket=self._config.bucket,
                    Key=key,
                    CopySource={"Bucket": self._config.bucket, "Key": key},
                    StorageClass=self.storage_class_for(tier),
                    MetadataDirective="COPY",
                )
        except ClientError as e:
            if _error_code(e) in ("NoSuchKey", "404"):
                raise ObjectNotFound(f"S3 object not found: {key}", key=key) from e
            raise StorageError(f"S3 tier change failed for {key}: {e}", key=key) from e
        except BotoCoreError as e:
            raise StorageError(f"S3 tier change failed for {key}: {e}", key=key) from e

        return f"s3://{self._config.bucket}/{key}"

    def _request_restore(self, key: str, days: int = 1) -> None:
        """Ask S3 to stage a cold object for reading."""
        try:
            self.client.restore_object(
                Bucket=self._config.bucket,
                Key=key,
                RestoreRequest={"Days": days, "GlacierJobParameters": {"Tier": "Standard"}},
            )
            logger.info(f"Requested restore of {key}", extra={"event": "restore_requested", "storage_key": key})
        except ClientError as e:
            if _error_code(e) == "RestoreAlreadyInProgress":
                logger.debug(f"Restore already in progress for {key}")
                return
            raise StorageError(f"S3 restore request failed for {key}: {e}", key=key) from e
