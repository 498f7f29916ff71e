"""
Validation Service.

Checks build descriptors against the invariants the Android build enforces
(or should enforce) before any build runs: identifier shape, platform level
ordering, signing references, shrinking rules, packaging exclusions and
dependency consistency.
"""

from __future__ import annotations

import re
from collections import Counter
from enum import Enum
from typing import Callable, Iterator

from pydantic import BaseModel, Field

from ...core.config import ValidationConfig
from ...core.exceptions import DescriptorValidationError
from ...core.logging import get_logger
from ...models.descriptor import BuildDescriptor, DependencyStage
from .globs import glob_matches

logger = get_logger(__name__)

REVERSE_DOMAIN_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z][A-Za-z0-9_]*)+$")

# Below this level multidex needs the support library at runtime
NATIVE_MULTIDEX_SDK = 21


class Severity(str, Enum):
    """Issue severity."""

    ERROR = "error"
    WARNING = "warning"


class ValidationIssue(BaseModel):
    """A single rule violation."""

    rule_id: str = Field(description="Stable rule identifier")
    severity: Severity
    message: str
    path: str = Field(default="", description="Descriptor location, e.g. buildTypes.release")

    def __str__(self) -> str:
        location = f" at {self.path}" if self.path else ""
        return f"[{self.severity.value}] {self.rule_id}{location}: {self.message}"


class ValidationReport(BaseModel):
    """Outcome of validating one descriptor."""

    application_id: str
    issues: list[ValidationIssue] = Field(default_factory=list)
    strict: bool = Field(default=False, description="Whether warnings fail validation")

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    @property
    def is_valid(self) -> bool:
        if self.errors:
            return False
        return not (self.strict and self.warnings)

    def rule_ids(self) -> set[str]:
        """Get the ids of all rules that reported something."""
        return {i.rule_id for i in self.issues}


Rule = Callable[[BuildDescriptor], Iterator[ValidationIssue]]


class ValidationService:
    """Service for validating build descriptors.

    Every rule is a generator method yielding issues, so a single pass
    reports all problems instead of stopping at the first.
    """

    def __init__(self, config: ValidationConfig | None = None) -> None:
        """Initialize the validation service.

        Args:
            config: Validation settings; defaults apply when omitted.
        """
        self.config = config or ValidationConfig()
        self.rules: list[Rule] = [
            self._check_application_id,
            self._check_version,
            self._check_sdk_order,
            self._check_sdk_known,
            self._check_unique_names,
            self._check_signing_references,
            self._check_release_signing,
            self._check_minify_rules,
            self._check_shrink_requires_minify,
            self._check_packaging,
            self._check_desugaring,
            self._check_java_compat,
            self._check_duplicate_dependencies,
            self._check_multidex,
        ]

    def validate(self, descriptor: BuildDescriptor) -> ValidationReport:
        """Run every rule against a descriptor.

        Args:
            descriptor: Descriptor to check.

        Returns:
            Report listing all issues found.
        """
        issues: list[ValidationIssue] = []
        for rule in self.rules:
            issues.extend(rule(descriptor))

        report = ValidationReport(
            application_id=descriptor.application_id,
            issues=issues,
            strict=self.config.strict,
        )
        logger.info(
            "descriptor_validated",
            application_id=descriptor.application_id,
            errors=len(report.errors),
            warnings=len(report.warnings),
            valid=report.is_valid,
        )
        return report

    def ensure_valid(self, descriptor: BuildDescriptor) -> ValidationReport:
        """Validate and raise when the descriptor is not valid.

        Raises:
            DescriptorValidationError: Carrying every reported issue.
        """
        report = self.validate(descriptor)
        if not report.is_valid:
            failing = report.issues if self.config.strict else report.errors
            raise DescriptorValidationError(
                message=f"Descriptor for '{descriptor.application_id}' is invalid",
                field_name=failing[0].path or None,
                issues=failing,
            )
        return report

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    @staticmethod
    def _error(rule_id: str, message: str, path: str = "") -> ValidationIssue:
        return ValidationIssue(rule_id=rule_id, severity=Severity.ERROR, message=message, path=path)

    @staticmethod
    def _warning(rule_id: str, message: str, path: str = "") -> ValidationIssue:
        return ValidationIssue(rule_id=rule_id, severity=Severity.WARNING, message=message, path=path)

    def _check_application_id(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        for path, value in (
            ("defaultConfig.applicationId", descriptor.application_id),
            ("android.namespace", descriptor.namespace),
        ):
            if not REVERSE_DOMAIN_PATTERN.match(value):
                yield self._error(
                    "application-id",
                    f"'{value}' is not a reverse-domain identifier (e.g. com.example.app)",
                    path,
                )

    def _check_version(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        if not descriptor.default_config.version_name.strip():
            yield self._error("version-name", "versionName must not be empty", "defaultConfig.versionName")

    def _check_sdk_order(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        min_sdk, target_sdk, compile_sdk = descriptor.min_sdk, descriptor.target_sdk, descriptor.compile_sdk
        if min_sdk > target_sdk:
            yield self._error(
                "sdk-order", f"minSdk {min_sdk} is above targetSdk {target_sdk}", "defaultConfig.minSdk"
            )
        if target_sdk > compile_sdk:
            yield self._error(
                "sdk-order", f"targetSdk {target_sdk} is above compileSdk {compile_sdk}", "defaultConfig.targetSdk"
            )
        if min_sdk > compile_sdk:
            yield self._error(
                "sdk-order", f"minSdk {min_sdk} is above compileSdk {compile_sdk}", "defaultConfig.minSdk"
            )

    def _check_sdk_known(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        if descriptor.compile_sdk > self.config.max_known_sdk:
            yield self._warning(
                "sdk-known",
                f"compileSdk {descriptor.compile_sdk} is newer than the highest known level "
                f"{self.config.max_known_sdk}",
                "android.compileSdk",
            )

    def _check_unique_names(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        for section, names in (
            ("buildTypes", [v.name for v in descriptor.build_types]),
            ("signingConfigs", [s.name for s in descriptor.signing_configs]),
        ):
            for name, count in Counter(names).items():
                if count > 1:
                    yield self._error("duplicate-name", f"'{name}' is declared {count} times", f"{section}.{name}")

    def _check_signing_references(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        known = {s.name for s in descriptor.signing_configs} | set(self.config.implicit_signing_configs)
        for variant in descriptor.build_types:
            if variant.signing_config is not None and variant.signing_config not in known:
                yield self._error(
                    "signing-reference",
                    f"signing config '{variant.signing_config}' is not declared",
                    f"buildTypes.{variant.name}.signingConfig",
                )

    def _check_release_signing(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        release = descriptor.get_build_type("release")
        if release is None or release.signing_config != "debug":
            return
        message = "release variant is signed with the debug identity"
        path = "buildTypes.release.signingConfig"
        if self.config.allow_debug_release_signing:
            yield self._warning("release-debug-signing", message, path)
        else:
            yield self._error("release-debug-signing", message, path)

    def _check_minify_rules(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        for variant in descriptor.build_types:
            path = f"buildTypes.{variant.name}.proguardFiles"
            if any(not f.path.strip() for f in variant.proguard_files):
                yield self._error("minify-rules", "rule file reference is empty", path)
            if variant.minify_enabled and not any(f.path.strip() for f in variant.proguard_files):
                yield self._error("minify-rules", "minification is enabled but no rule file is listed", path)

    def _check_shrink_requires_minify(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        for variant in descriptor.build_types:
            if variant.shrink_resources and not variant.minify_enabled:
                yield self._error(
                    "shrink-requires-minify",
                    "resource shrinking requires minification",
                    f"buildTypes.{variant.name}.isShrinkResources",
                )

    def _check_packaging(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        for pattern in descriptor.packaging.resource_excludes:
            for required in self.config.runtime_required_paths:
                if glob_matches(pattern, required):
                    yield self._error(
                        "packaging-collision",
                        f"exclusion '{pattern}' removes '{required}', which is required at runtime",
                        "packaging.resources.excludes",
                    )

    def _check_desugaring(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        enabled = descriptor.compile_options.core_library_desugaring_enabled
        has_library = bool(descriptor.dependencies_for(DependencyStage.CORE_LIBRARY_DESUGARING))
        if enabled and not has_library:
            yield self._error(
                "desugaring",
                "core library desugaring is enabled but no coreLibraryDesugaring dependency is declared",
                "compileOptions.isCoreLibraryDesugaringEnabled",
            )
        elif has_library and not enabled:
            yield self._warning(
                "desugaring",
                "a coreLibraryDesugaring dependency is declared but desugaring is disabled",
                "dependencies",
            )

    def _check_java_compat(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        target = descriptor.compile_options.target_compatibility
        if descriptor.jvm_target is not None and descriptor.jvm_target != target.value:
            yield self._warning(
                "java-compat",
                f"Kotlin jvmTarget {descriptor.jvm_target} differs from Java targetCompatibility {target.value}",
                "kotlinOptions.jvmTarget",
            )
        if descriptor.toolchain_version is not None and descriptor.toolchain_version < target.major:
            yield self._warning(
                "java-compat",
                f"toolchain {descriptor.toolchain_version} cannot produce targetCompatibility {target.value}",
                "java.toolchain.languageVersion",
            )

    def _check_duplicate_dependencies(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        seen = Counter((d.stage, d.module) for d in descriptor.dependencies)
        for (stage, module), count in seen.items():
            if count > 1:
                yield self._warning(
                    "duplicate-dependency",
                    f"{module} is declared {count} times",
                    f"dependencies.{stage.value}",
                )

    def _check_multidex(self, descriptor: BuildDescriptor) -> Iterator[ValidationIssue]:
        config = descriptor.default_config
        if (
            config.multidex_enabled
            and config.min_sdk < NATIVE_MULTIDEX_SDK
            and not any(
                d.stage.is_runtime and d.module == "androidx.multidex:multidex" for d in descriptor.dependencies
            )
        ):
            yield self._warning(
                "multidex",
                f"minSdk {config.min_sdk} needs androidx.multidex:multidex at runtime when multidex is enabled",
                "dependencies",
            )
