"""Unit tests for storage backend."""

import pytest

from droidspec.core.exceptions import StorageError
from droidspec.models.descriptor import BuildDescriptor
from droidspec.storage import LocalStorageBackend, StorageBackend


@pytest.mark.asyncio
class TestLocalStorageBackend:
    """Tests for local filesystem storage."""

    async def test_store_and_load_text(self, temp_dir):
        """Test storing and loading text."""
        storage = LocalStorageBackend(temp_dir)

        content = 'plugins {\n    id("com.android.application")\n}\n'
        key = "app/build.gradle.kts"

        stored_key = await storage.store_text(key, content)
        assert stored_key == key
        assert (temp_dir / "app" / "build.gradle.kts").read_text(encoding="utf-8") == content

        loaded = await storage.load_text(key)
        assert loaded == content

    async def test_store_and_load_model(self, temp_dir, template_descriptor):
        """Test storing and loading Pydantic models."""
        storage = LocalStorageBackend(temp_dir)

        key = "snapshots/app.json"
        await storage.store_model(key, template_descriptor)
        loaded = await storage.load_model(key, BuildDescriptor)

        assert loaded == template_descriptor
        assert (temp_dir / "snapshots" / "app.json").read_text(encoding="utf-8").endswith("}\n")

    async def test_exists(self, temp_dir):
        """Test checking if key exists."""
        storage = LocalStorageBackend(temp_dir)

        key = "app/proguard-rules.pro"
        assert not await storage.exists(key)

        await storage.store_text(key, "")
        assert await storage.exists(key)

    async def test_delete(self, temp_dir):
        """Test deleting a key."""
        storage = LocalStorageBackend(temp_dir)

        key = "app/build.gradle.kts"
        await storage.store_text(key, "content")
        assert await storage.exists(key)

        deleted = await storage.delete(key)
        assert deleted
        assert not await storage.exists(key)

        # Deleting non-existent key returns False
        deleted = await storage.delete(key)
        assert not deleted

    async def test_list_keys(self, temp_dir):
        """Test listing keys by prefix and suffix."""
        storage = LocalStorageBackend(temp_dir)

        await storage.store_text("app/build.gradle.kts", "")
        await storage.store_text("app/proguard-rules.pro", "")
        await storage.store_text("feature/build.gradle.kts", "")
        await storage.store_text("settings.gradle.kts", "")

        assert await storage.list_keys(suffix=".gradle.kts") == [
            "app/build.gradle.kts",
            "feature/build.gradle.kts",
            "settings.gradle.kts",
        ]
        assert await storage.list_keys("app") == ["app/build.gradle.kts", "app/proguard-rules.pro"]
        assert await storage.list_keys("missing") == []

    async def test_load_missing_key(self, temp_dir):
        """Test loading a missing key raises StorageError."""
        storage = LocalStorageBackend(temp_dir)

        with pytest.raises(StorageError) as exc_info:
            await storage.load_text("app/build.gradle.kts")
        assert exc_info.value.key == "app/build.gradle.kts"
        assert exc_info.value.service_name == "storage"

    async def test_key_outside_base_rejected(self, temp_dir):
        """Test keys escaping the storage directory.

        Verifies that relative traversal cannot read or write files
        outside the project directory.
        """
        storage = LocalStorageBackend(temp_dir / "project")

        with pytest.raises(StorageError):
            await storage.store_text("../outside.kts", "content")
        assert not (temp_dir / "outside.kts").exists()

        with pytest.raises(StorageError):
            await storage.exists("")

    async def test_load_non_utf8(self, temp_dir):
        """Test undecodable files raise StorageError."""
        storage = LocalStorageBackend(temp_dir)
        (temp_dir / "build.gradle.kts").write_bytes(b"android { \xff }")

        with pytest.raises(StorageError) as exc_info:
            await storage.load_text("build.gradle.kts")
        assert exc_info.value.operation == "load_text"
        assert isinstance(exc_info.value.cause, UnicodeDecodeError)

    async def test_store_over_directory(self, temp_dir):
        """Test writing to a key that is a directory raises StorageError."""
        storage = LocalStorageBackend(temp_dir)
        (temp_dir / "app" / "build.gradle.kts").mkdir(parents=True)

        with pytest.raises(StorageError) as exc_info:
            await storage.store_text("app/build.gradle.kts", "android {}")
        assert exc_info.value.operation == "store_text"
        assert isinstance(exc_info.value.cause, OSError)

    async def test_store_under_file(self, temp_dir):
        """Test writing below an existing file raises StorageError."""
        storage = LocalStorageBackend(temp_dir)
        (temp_dir / "app").write_text("", encoding="utf-8")

        with pytest.raises(StorageError):
            await storage.store_text("app/build.gradle.kts", "android {}")

    async def test_leading_slash_is_relative(self, temp_dir):
        """Test absolute-looking keys resolve inside the base directory."""
        storage = LocalStorageBackend(temp_dir)

        await storage.store_text("/app/build.gradle.kts", "content")
        assert (temp_dir / "app" / "build.gradle.kts").is_file()


class TestStorageHelpers:
    """Tests for synchronous storage helpers."""

    def test_get_local_path(self, temp_dir):
        """Test resolving local paths for existing and missing keys."""
        storage = LocalStorageBackend(temp_dir)
        (temp_dir / "app").mkdir()
        (temp_dir / "app" / "build.gradle.kts").write_text("", encoding="utf-8")

        assert storage.get_local_path("app/build.gradle.kts") == (temp_dir / "app" / "build.gradle.kts").resolve()
        assert storage.get_local_path("app/missing.kts") is None

    def test_compute_hash(self):
        """Test content hashes are stable SHA-256 hex digests."""
        first = StorageBackend.compute_hash(b"android {}")
        assert first == StorageBackend.compute_hash(b"android {}")
        assert first != StorageBackend.compute_hash(b"android { }")
        assert len(first) == 64
