"""
Local filesystem storage backend.

Reads and writes build scripts and descriptor snapshots inside a project
directory. Keys are POSIX paths relative to that directory.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import TypeVar

import aiofiles
import aiofiles.os
from pydantic import BaseModel

from ..core.exceptions import StorageError
from ..core.logging import get_logger
from .interface import StorageBackend

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class LocalStorageBackend(StorageBackend):
    """Local filesystem storage backend."""

    def __init__(self, base_path: Path) -> None:
        """Initialize local storage.

        Args:
            base_path: Project directory all keys are resolved against
        """
        self.base_path = base_path.resolve()

    def _get_full_path(self, key: str) -> Path:
        """Get full filesystem path for a key.

        Raises:
            StorageError: If the key is empty or resolves outside the base directory.
        """
        clean_key = PurePosixPath(key.replace("\\", "/").lstrip("/"))
        if not clean_key.parts:
            raise StorageError(message="Empty storage key", operation="resolve", key=key)

        full_path = (self.base_path / clean_key).resolve()
        try:
            full_path.relative_to(self.base_path)
        except ValueError as e:
            raise StorageError(
                message="Key escapes the storage directory",
                operation="resolve",
                key=key,
                cause=e,
            ) from e
        return full_path

    async def store_text(self, key: str, content: str) -> str:
        """Store text content to filesystem.

        Parent directories are created as needed.

        Raises:
            StorageError: If the file cannot be written.
        """
        full_path = self._get_full_path(key)
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(full_path, "w", encoding="utf-8") as f:
                await f.write(content)
        except (OSError, UnicodeEncodeError) as e:
            raise StorageError(
                message=f"Cannot write file: {e}",
                operation="store_text",
                key=key,
                cause=e,
            ) from e

        logger.debug(
            "stored_text",
            key=key,
            size_chars=len(content),
            hash=self.compute_hash(content.encode("utf-8")),
        )
        return key

    async def store_model(self, key: str, model: BaseModel) -> str:
        """Store Pydantic model as JSON."""
        return await self.store_text(key, model.model_dump_json(indent=2) + "\n")

    async def load_text(self, key: str) -> str:
        """Load text content from filesystem.

        Raises:
            StorageError: If the key does not exist or is not readable UTF-8 text.
        """
        full_path = self._get_full_path(key)

        if not full_path.is_file():
            raise StorageError(message="Key not found", operation="load_text", key=key)

        try:
            async with aiofiles.open(full_path, "r", encoding="utf-8") as f:
                return await f.read()
        except UnicodeDecodeError as e:
            raise StorageError(
                message="File is not valid UTF-8",
                operation="load_text",
                key=key,
                cause=e,
            ) from e
        except OSError as e:
            raise StorageError(
                message=f"Cannot read file: {e}",
                operation="load_text",
                key=key,
                cause=e,
            ) from e

    async def load_model(self, key: str, model_type: type[T]) -> T:
        """Load Pydantic model from JSON file.

        Raises:
            StorageError: If the key does not exist.
            pydantic.ValidationError: If the stored JSON does not fit the model.
        """
        json_content = await self.load_text(key)
        return model_type.model_validate_json(json_content)

    async def exists(self, key: str) -> bool:
        return self._get_full_path(key).is_file()

    async def delete(self, key: str) -> bool:
        full_path = self._get_full_path(key)
        if not full_path.is_file():
            return False
        try:
            await aiofiles.os.remove(full_path)
        except OSError as e:
            raise StorageError(message=f"Cannot delete file: {e}", operation="delete", key=key, cause=e) from e
        return True

    async def list_keys(self, prefix: str = "", suffix: str = "") -> list[str]:
        """List all keys under prefix ending with suffix.

        Args:
            prefix: Optional directory prefix. If empty, lists the whole base directory.
            suffix: Optional file name suffix filter.

        Returns:
            A sorted list of storage keys.
        """
        search_path = self._get_full_path(prefix) if prefix else self.base_path

        if not search_path.exists():
            return []

        keys = []
        for path in search_path.rglob("*"):
            if path.is_file() and path.name.endswith(suffix):
                keys.append(path.relative_to(self.base_path).as_posix())

        return sorted(keys)

    def get_local_path(self, key: str) -> Path | None:
        """Get local filesystem path for a key.

        Returns:
            The filesystem path if the key exists, None otherwise.
        """
        full_path = self._get_full_path(key)
        if full_path.exists():
            return full_path
        return None
