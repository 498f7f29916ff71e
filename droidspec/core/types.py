"""
Core type definitions for droidspec.

Provides type aliases and the result wrapper returned by every service
so callers get a uniform success/failure shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar


# Type aliases
StorageKey = str
Hash = str  # SHA-256 hash


class DescriptorFormat(str, Enum):
    """On-disk representations of a build descriptor."""

    KOTLIN_DSL = "kts"
    JSON = "json"

    @classmethod
    def from_key(cls, key: str) -> DescriptorFormat:
        """Infer the format from a storage key suffix.

        Args:
            key: Storage key or file name.

        Returns:
            JSON for ``.json`` keys, Kotlin DSL for everything else.
        """
        return cls.JSON if key.lower().endswith(".json") else cls.KOTLIN_DSL


T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """Result wrapper for service operations.

    Provides a consistent return type that includes success/failure status,
    the result data, and any errors or warnings.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0

    @classmethod
    def ok(cls, data: T, **metadata: Any) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(cls, error: str, **metadata: Any) -> ServiceResult[T]:
        """Create a failed result."""
        return cls(success=False, error=error, metadata=metadata)

    @classmethod
    def with_warnings(cls, data: T, warnings: list[str], **metadata: Any) -> ServiceResult[T]:
        """Create a successful result with warnings."""
        return cls(success=True, data=data, warnings=warnings, metadata=metadata)
