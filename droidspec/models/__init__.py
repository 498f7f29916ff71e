"""Data models for droidspec."""

from .descriptor import (
    BuildDescriptor,
    BuildVariant,
    CompileOptions,
    DefaultConfig,
    Dependency,
    DependencyStage,
    FlutterConfig,
    GradlePlugin,
    JavaVersion,
    PackagingOptions,
    ProguardFile,
    RawExpression,
    SigningConfig,
)

__all__ = [
    "BuildDescriptor",
    "BuildVariant",
    "CompileOptions",
    "DefaultConfig",
    "Dependency",
    "DependencyStage",
    "FlutterConfig",
    "GradlePlugin",
    "JavaVersion",
    "PackagingOptions",
    "ProguardFile",
    "RawExpression",
    "SigningConfig",
]
