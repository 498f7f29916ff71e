"""
Build descriptor data models.

These models represent an Android application module build script: identity,
platform targets, compiler settings, build variants, signing identities,
packaging rules and dependencies. A descriptor is plain data; it is authored
once, read at every build, and never mutated by the services that consume it.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


def kotlin_string(value: str) -> str:
    """Quote a value as a Kotlin string literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("$", "\\$")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'


class JavaVersion(str, Enum):
    """Java language levels accepted by compileOptions."""

    VERSION_1_8 = "1.8"
    VERSION_11 = "11"
    VERSION_17 = "17"
    VERSION_21 = "21"

    @property
    def gradle_constant(self) -> str:
        """Get the Kotlin DSL constant for this level.

        Returns:
            str: The constant reference, e.g. "JavaVersion.VERSION_17".
        """
        return f"JavaVersion.{self.name}"

    @property
    def major(self) -> int:
        """Get the major language version (8 for "1.8")."""
        return int(self.value.rsplit(".", 1)[-1])

    @classmethod
    def from_gradle_constant(cls, constant: str) -> JavaVersion:
        """Parse a Kotlin DSL constant reference.

        Args:
            constant: Either "JavaVersion.VERSION_17" or the bare "VERSION_17".

        Returns:
            The matching JavaVersion member.

        Raises:
            ValueError: If the constant names no known level.
        """
        name = constant.rsplit(".", 1)[-1]
        try:
            return cls[name]
        except KeyError as e:
            raise ValueError(f"Unknown Java version constant: {constant}") from e


class DependencyStage(str, Enum):
    """Gradle configurations a dependency can be declared in."""

    IMPLEMENTATION = "implementation"
    API = "api"
    COMPILE_ONLY = "compileOnly"
    RUNTIME_ONLY = "runtimeOnly"
    CORE_LIBRARY_DESUGARING = "coreLibraryDesugaring"
    TEST_IMPLEMENTATION = "testImplementation"
    ANDROID_TEST_IMPLEMENTATION = "androidTestImplementation"
    KAPT = "kapt"
    KSP = "ksp"

    @property
    def is_runtime(self) -> bool:
        """Whether artifacts in this stage end up in the packaged application."""
        return self in (
            DependencyStage.IMPLEMENTATION,
            DependencyStage.API,
            DependencyStage.RUNTIME_ONLY,
        )


class GradlePlugin(BaseModel):
    """A plugins-block entry."""

    plugin_id: str = Field(description="Plugin ID")
    version: str | None = Field(default=None, description="Plugin version")
    apply: bool = Field(default=True, description="Whether to apply the plugin")

    @property
    def declaration(self) -> str:
        """Get plugin declaration for the plugins block.

        Returns:
            str: Plugin declaration including version and apply directives.
        """
        version_part = f" version {kotlin_string(self.version)}" if self.version else ""
        apply_part = " apply false" if not self.apply else ""
        return f"id({kotlin_string(self.plugin_id)}){version_part}{apply_part}"


class Dependency(BaseModel):
    """A single (library, version) pair tagged with the stage it is needed in."""

    group: str = Field(description="Group ID")
    artifact: str = Field(description="Artifact ID")
    version: str = Field(default="", description="Version (empty for BOM-managed deps)")
    stage: DependencyStage = Field(default=DependencyStage.IMPLEMENTATION)
    is_platform: bool = Field(default=False, description="Whether this is a platform/BOM dependency")

    @property
    def module(self) -> str:
        """Get the "group:artifact" module coordinate."""
        return f"{self.group}:{self.artifact}"

    @property
    def notation(self) -> str:
        """Get dependency notation without quotes.

        Returns:
            str: "group:artifact:version", or "group:artifact" when unversioned.
        """
        if self.version:
            return f"{self.module}:{self.version}"
        return self.module

    @property
    def declaration(self) -> str:
        """Get full Kotlin DSL declaration.

        Returns:
            str: Declaration including the stage, wrapped with platform()
                for BOM dependencies.
        """
        if self.is_platform:
            return f"{self.stage.value}(platform({kotlin_string(self.notation)}))"
        return f"{self.stage.value}({kotlin_string(self.notation)})"

    @classmethod
    def from_notation(
        cls,
        notation: str,
        stage: DependencyStage = DependencyStage.IMPLEMENTATION,
        is_platform: bool = False,
    ) -> Dependency:
        """Build a dependency from "group:artifact[:version]" notation.

        Raises:
            ValueError: If the notation does not have two or three parts.
        """
        parts = notation.split(":")
        if len(parts) not in (2, 3) or not all(parts[:2]):
            raise ValueError(f"Invalid dependency notation: {notation!r}")
        version = parts[2] if len(parts) == 3 else ""
        return cls(
            group=parts[0],
            artifact=parts[1],
            version=version,
            stage=stage,
            is_platform=is_platform,
        )


class RawExpression(BaseModel):
    """A Kotlin expression kept verbatim because it is not a literal."""

    source: str = Field(description="Expression source text")


class ProguardFile(BaseModel):
    """A code-shrinking rule file reference."""

    path: str = Field(description="File name or project-relative path")
    is_default: bool = Field(
        default=False, description="Provided by the Android plugin via getDefaultProguardFile()"
    )

    @property
    def expression(self) -> str:
        """Get the Kotlin DSL expression for this reference."""
        if self.is_default:
            return f"getDefaultProguardFile({kotlin_string(self.path)})"
        return kotlin_string(self.path)


class SigningConfig(BaseModel):
    """A declared signing identity."""

    name: str = Field(description="Signing config name")
    store_file: str | RawExpression | None = Field(default=None, description="Keystore path")
    store_password: str | RawExpression | None = Field(default=None)
    key_alias: str | RawExpression | None = Field(default=None)
    key_password: str | RawExpression | None = Field(default=None)


class BuildVariant(BaseModel):
    """A named build type bundling shrink, obfuscation and signing settings."""

    name: str = Field(description="Build type name (debug/release/...)")
    minify_enabled: bool = Field(default=False)
    shrink_resources: bool = Field(default=False)
    proguard_files: list[ProguardFile] = Field(default_factory=list)
    signing_config: str | None = Field(default=None, description="Referenced signing config name")
    debuggable: bool | None = Field(default=None)


class DefaultConfig(BaseModel):
    """Application identity and platform targets."""

    application_id: str = Field(description="Reverse-domain application identifier")
    min_sdk: int = Field(default=21, ge=1)
    target_sdk: int = Field(default=34, ge=1)
    version_code: int = Field(default=1, ge=1)
    version_name: str = Field(default="1.0")
    multidex_enabled: bool = Field(default=False)


class CompileOptions(BaseModel):
    """Java language compatibility and desugaring settings."""

    source_compatibility: JavaVersion = Field(default=JavaVersion.VERSION_17)
    target_compatibility: JavaVersion = Field(default=JavaVersion.VERSION_17)
    core_library_desugaring_enabled: bool = Field(default=False)


class PackagingOptions(BaseModel):
    """Rules applied when merging dependency archives into the package."""

    resource_excludes: list[str] = Field(default_factory=list)
    resource_pick_firsts: list[str] = Field(default_factory=list)


class FlutterConfig(BaseModel):
    """Framework plugin configuration."""

    source: str = Field(default="../..", description="Framework project root, relative to the module")


class BuildDescriptor(BaseModel):
    """Complete application module build descriptor."""

    plugins: list[GradlePlugin] = Field(default_factory=list)
    namespace: str = Field(description="Application namespace")
    compile_sdk: int = Field(default=35, ge=1)
    ndk_version: str | None = Field(default=None, description="Native toolchain version")

    compile_options: CompileOptions = Field(default_factory=CompileOptions)
    jvm_target: str | None = Field(default=None, description="Kotlin JVM target")
    toolchain_version: int | None = Field(default=None, description="Java toolchain language version")

    default_config: DefaultConfig
    signing_configs: list[SigningConfig] = Field(default_factory=list)
    build_types: list[BuildVariant] = Field(default_factory=list)
    packaging: PackagingOptions = Field(default_factory=PackagingOptions)

    flutter: FlutterConfig | None = Field(default=None)
    dependencies: list[Dependency] = Field(default_factory=list)

    @property
    def application_id(self) -> str:
        return self.default_config.application_id

    @property
    def min_sdk(self) -> int:
        return self.default_config.min_sdk

    @property
    def target_sdk(self) -> int:
        return self.default_config.target_sdk

    def get_build_type(self, name: str) -> BuildVariant | None:
        """Get build variant by name.

        Args:
            name: The build type name (e.g., "release").

        Returns:
            The matching BuildVariant if found, None otherwise.
        """
        for build_type in self.build_types:
            if build_type.name == name:
                return build_type
        return None

    def get_signing_config(self, name: str) -> SigningConfig | None:
        """Get a declared signing config by name."""
        for signing_config in self.signing_configs:
            if signing_config.name == name:
                return signing_config
        return None

    def dependencies_for(self, stage: DependencyStage) -> list[Dependency]:
        """Get dependencies declared in one stage, in declaration order."""
        return [d for d in self.dependencies if d.stage == stage]

    def has_dependency(self, group: str, artifact: str, stage: DependencyStage | None = None) -> bool:
        """Check whether a module is declared, optionally in a specific stage."""
        return any(
            d.group == group and d.artifact == artifact and (stage is None or d.stage == stage)
            for d in self.dependencies
        )

    class Config:
        json_schema_extra = {
            "title": "Build Descriptor",
            "description": "Declarative inputs for building an installable Android application package",
        }
