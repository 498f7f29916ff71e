"""Core infrastructure components for droidspec."""

from .config import Config, get_config
from .exceptions import (
    DescriptorValidationError,
    DroidSpecError,
    GradleSyntaxError,
    ServiceError,
    StorageError,
    UnsupportedConstructError,
    ValidationError,
)
from .logging import get_logger, setup_logging
from .types import DescriptorFormat, Hash, ServiceResult, StorageKey

__all__ = [
    "Config",
    "get_config",
    "DescriptorValidationError",
    "DroidSpecError",
    "GradleSyntaxError",
    "ServiceError",
    "StorageError",
    "UnsupportedConstructError",
    "ValidationError",
    "get_logger",
    "setup_logging",
    "DescriptorFormat",
    "Hash",
    "ServiceResult",
    "StorageKey",
]
