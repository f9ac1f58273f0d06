"""Tests for LocalStorageProvider."""

import os
import tempfile
from datetime import datetime

import pytest

from app.storage.base import StorageConfig, StorageTier
from app.storage.errors import ObjectNotFound, StorageNotConfigured
from app.storage.local_provider import LocalStorageProvider


class TestPathTraversal:
    """Verify _get_path rejects path traversal attempts."""

    def setup_method(self):
        self.tmpdir = os.path.realpath(tempfile.mkdtemp())
        self.provider = LocalStorageProvider(StorageConfig(local_path=self.tmpdir))

    def test_traversal_with_dotdot(self):
        with pytest.raises(ValueError, match="Path traversal detected"):
            self.provider._get_path("../../../etc/passwd")

    def test_traversal_with_absolute(self):
        with pytest.raises(ValueError, match="Path traversal detected"):
            self.provider._get_path("/etc/passwd")

    def test_normal_key_succeeds(self):
        path = self.provider._get_path("datasets/proj-1/abc123.json")
        assert str(path).startswith(self.tmpdir)

    def test_metadata_traversal(self):
        with pytest.raises(ValueError, match="Path traversal detected"):
            self.provider._get_metadata_path("../../../etc/passwd")


class TestLocalStorage:

    @pytest.fixture
    def provider(self, tmp_path):
        return LocalStorageProvider(StorageConfig(local_path=str(tmp_path)))

    def test_put_then_get(self, provider):
        archived_at = datetime(2026, 6, 1, 12, 0)
        locator = provider.put("datasets/p/1.json", {"rows": [1, 2]}, archived_at=archived_at)

        obj = provider.get("datasets/p/1.json")

        assert locator.startswith("file://")
        assert obj.data == {"rows": [1, 2]}
        assert obj.tier == StorageTier.STANDARD
        assert obj.archived_at == archived_at
        assert obj.content_hash

    def test_body_is_gzipped(self, provider, tmp_path):
        provider.put("k.json", {"a": 1})
        assert (tmp_path / "k.json").read_bytes()[:2] == b"\x1f\x8b"

    def test_missing_object(self, provider):
        with pytest.raises(ObjectNotFound):
            provider.get("nope.json")

    def test_change_tier_keeps_body_and_archived_at(self, provider):
        archived_at = datetime(2025, 1, 1)
        provider.put("k.json", {"a": 1}, archived_at=archived_at)

        provider.change_tier("k.json", StorageTier.GLACIER)
        obj = provider.get("k.json")

        assert obj.tier == StorageTier.GLACIER
        assert obj.archived_at == archived_at
        assert obj.data == {"a": 1}

    def test_delete_is_idempotent(self, provider):
        provider.put("k.json", {"a": 1})
        provider.delete("k.json")
        provider.delete("k.json")

        with pytest.raises(ObjectNotFound):
            provider.get("k.json")

    def test_presign(self, provider):
        provider.put("k.json", {"a": 1})
        assert "?expires=" in provider.presign("k.json", ttl_seconds=60)

    def test_cleanup(self, provider, tmp_path):
        provider.put("a/b.json", {"a": 1})
        provider.cleanup()
        assert list(tmp_path.iterdir()) == []


class TestDisabled:

    def test_no_path_disables_provider(self):
        provider = LocalStorageProvider(StorageConfig(local_path=None))

        assert provider.is_enabled() is False
        with pytest.raises(StorageNotConfigured):
            provider.put("k.json", {"a": 1})
        with pytest.raises(StorageNotConfigured):
            provider.get("k.json")
