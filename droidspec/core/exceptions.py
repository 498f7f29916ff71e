"""
Custom exception hierarchy for droidspec.

All exceptions inherit from DroidSpecError so callers can handle every
parsing, validation and storage failure in one place. Each exception type
carries context for debugging and logging.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class DroidSpecError(Exception):
    """Base exception for all droidspec errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ValidationError(DroidSpecError):
    """Raised when input or output validation fails."""

    field_name: str | None = None
    expected_type: str | None = None
    actual_value: Any = None

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Validation failed for '{self.field_name}': {base}"
        return f"Validation failed: {base}"


@dataclass
class DescriptorValidationError(ValidationError):
    """Raised when a build descriptor violates one or more build invariants."""

    issues: list[Any] = field(default_factory=list)

    def __str__(self) -> str:
        lines = [f"{len(self.issues)} issue(s): {self.message}"]
        lines.extend(f"  - {issue}" for issue in self.issues)
        return "\n".join(lines)


@dataclass
class GradleSyntaxError(DroidSpecError):
    """Raised when a build script cannot be tokenized or parsed."""

    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        return f"Syntax error at {self.line}:{self.column}: {self.message}"


@dataclass
class UnsupportedConstructError(DroidSpecError):
    """Raised in strict parsing mode when a statement has no descriptor mapping."""

    construct: str = ""
    line: int = 0

    def __str__(self) -> str:
        return f"Unsupported construct '{self.construct}' at line {self.line}: {self.message}"


@dataclass
class ServiceError(DroidSpecError):
    """Raised when a service operation fails."""

    service_name: str = ""
    operation: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        return f"[{self.service_name}.{self.operation}]: {base}"


@dataclass
class StorageError(ServiceError):
    """Raised when a storage key cannot be read or written."""

    key: str = ""

    def __post_init__(self) -> None:
        self.service_name = "storage"

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} (key: {self.key})"
