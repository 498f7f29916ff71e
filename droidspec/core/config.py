"""
Configuration management for droidspec.

Provides centralized, type-safe configuration with environment variable overrides
and sensible defaults for parsing, validation and rendering.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()


DEFAULT_RUNTIME_REQUIRED_PATHS = [
    "AndroidManifest.xml",
    "classes.dex",
    "resources.arsc",
    "META-INF/services/kotlinx.coroutines.CoroutineExceptionHandler",
    "META-INF/services/kotlinx.coroutines.internal.MainDispatcherFactory",
    "lib/arm64-v8a/libflutter.so",
    "lib/armeabi-v7a/libflutter.so",
    "lib/x86_64/libflutter.so",
]


class ValidationConfig(BaseModel):
    """Descriptor validation configuration."""

    strict: bool = Field(default=False, description="Treat warnings as errors")
    max_known_sdk: int = Field(
        default=35, ge=1, description="Highest platform API level known to be released"
    )
    allow_debug_release_signing: bool = Field(
        default=True,
        description="Report release variants signed with the debug identity as warnings, not errors",
    )
    implicit_signing_configs: list[str] = Field(
        default_factory=lambda: ["debug"],
        description="Signing identities the Android plugin always provides",
    )
    runtime_required_paths: list[str] = Field(
        default_factory=lambda: list(DEFAULT_RUNTIME_REQUIRED_PATHS),
        description="Package paths that packaging exclusions must never match",
    )


class RenderConfig(BaseModel):
    """Build script rendering configuration."""

    indent: int = Field(default=4, ge=1, le=8, description="Spaces per nesting level")
    trailing_newline: bool = Field(default=True, description="End rendered scripts with a newline")


class StorageConfig(BaseModel):
    """Storage configuration for descriptors and scripts."""

    backend: Literal["local"] = Field(default="local", description="Storage backend")
    base_path: Path = Field(default=Path("."), description="Base path for local storage")


class Config(BaseModel):
    """Root configuration for droidspec."""

    project_name: str = Field(default="droidspec", description="Project identifier")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_format: Literal["auto", "console", "json"] = Field(
        default="auto", description="Log rendering; auto picks console on a terminal, JSON otherwise"
    )
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    model_config = {"extra": "ignore"}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        return cls(
            log_level=os.environ.get("DROIDSPEC_LOG_LEVEL", "INFO"),  # type: ignore
            log_format=os.environ.get("DROIDSPEC_LOG_FORMAT", "auto"),  # type: ignore
            validation=ValidationConfig(
                strict=os.environ.get("DROIDSPEC_STRICT", "false").lower() == "true",
                max_known_sdk=int(os.environ.get("DROIDSPEC_MAX_KNOWN_SDK", "35")),
                allow_debug_release_signing=os.environ.get(
                    "DROIDSPEC_ALLOW_DEBUG_RELEASE_SIGNING", "true"
                ).lower() == "true",
            ),
            render=RenderConfig(
                indent=int(os.environ.get("DROIDSPEC_INDENT", "4")),
            ),
            storage=StorageConfig(
                base_path=Path(os.environ.get("DROIDSPEC_BASE_PATH", ".")),
            ),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
