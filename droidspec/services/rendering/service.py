"""
Rendering Service.

Renders BuildDescriptor models into canonical Kotlin DSL build scripts and
writes scripts or JSON snapshots to storage.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ...core.exceptions import DroidSpecError
from ...core.logging import get_logger
from ...core.types import DescriptorFormat, Hash, ServiceResult, StorageKey
from ...models.descriptor import (
    BuildDescriptor,
    BuildVariant,
    RawExpression,
    SigningConfig,
    kotlin_string,
)
from ...storage import StorageBackend

logger = get_logger(__name__)


def _kotlin_bool(value: bool) -> str:
    return "true" if value else "false"


class ScriptWriter:
    """Accumulates indented lines for nested Kotlin DSL blocks."""

    def __init__(self, indent: int = 4) -> None:
        self.indent = indent
        self.lines: list[str] = []
        self._depth = 0

    def line(self, text: str = "") -> None:
        self.lines.append(" " * (self.indent * self._depth) + text if text else "")

    def open(self, header: str) -> None:
        self.line(f"{header} {{")
        self._depth += 1

    def close(self) -> None:
        self.dedent()
        self.line("}")

    def indent_more(self) -> None:
        self._depth += 1

    def dedent(self) -> None:
        self._depth -= 1

    def render(self, trailing_newline: bool = True) -> str:
        text = "\n".join(self.lines)
        return text + "\n" if trailing_newline else text


class ScriptRenderer:
    """Renders descriptors in a fixed canonical layout."""

    def __init__(self, indent: int = 4, trailing_newline: bool = True) -> None:
        self.indent = indent
        self.trailing_newline = trailing_newline

    def render(self, descriptor: BuildDescriptor) -> str:
        """Render a descriptor as Kotlin DSL.

        Args:
            descriptor: Descriptor to render.

        Returns:
            Complete build.gradle.kts contents.
        """
        out = ScriptWriter(self.indent)

        if descriptor.plugins:
            out.open("plugins")
            for plugin in descriptor.plugins:
                out.line(plugin.declaration)
            out.close()
            out.line()

        out.open("android")
        self._render_android(out, descriptor)
        out.close()

        if descriptor.flutter is not None:
            out.line()
            out.open("flutter")
            out.line(f"source = {kotlin_string(descriptor.flutter.source)}")
            out.close()

        if descriptor.dependencies:
            out.line()
            out.open("dependencies")
            for dependency in descriptor.dependencies:
                out.line(dependency.declaration)
            out.close()

        return out.render(self.trailing_newline)

    def _render_android(self, out: ScriptWriter, descriptor: BuildDescriptor) -> None:
        out.line(f"namespace = {kotlin_string(descriptor.namespace)}")
        out.line(f"compileSdk = {descriptor.compile_sdk}")
        if descriptor.ndk_version is not None:
            out.line(f"ndkVersion = {kotlin_string(descriptor.ndk_version)}")

        options = descriptor.compile_options
        out.line()
        out.open("compileOptions")
        out.line(f"sourceCompatibility = {options.source_compatibility.gradle_constant}")
        out.line(f"targetCompatibility = {options.target_compatibility.gradle_constant}")
        out.line(f"isCoreLibraryDesugaringEnabled = {_kotlin_bool(options.core_library_desugaring_enabled)}")
        out.close()

        if descriptor.jvm_target is not None:
            out.line()
            out.open("kotlinOptions")
            out.line(f"jvmTarget = {kotlin_string(descriptor.jvm_target)}")
            out.close()

        if descriptor.toolchain_version is not None:
            out.line()
            out.open("java")
            out.open("toolchain")
            out.line(f"languageVersion.set(JavaLanguageVersion.of({descriptor.toolchain_version}))")
            out.close()
            out.close()

        config = descriptor.default_config
        out.line()
        out.open("defaultConfig")
        out.line(f"applicationId = {kotlin_string(config.application_id)}")
        out.line(f"minSdk = {config.min_sdk}")
        out.line(f"targetSdk = {config.target_sdk}")
        out.line(f"versionCode = {config.version_code}")
        out.line(f"versionName = {kotlin_string(config.version_name)}")
        if config.multidex_enabled:
            out.line("multiDexEnabled = true")
        out.close()

        if descriptor.signing_configs:
            out.line()
            out.open("signingConfigs")
            for signing_config in descriptor.signing_configs:
                self._render_signing_config(out, signing_config)
            out.close()

        if descriptor.build_types:
            out.line()
            out.open("buildTypes")
            for variant in descriptor.build_types:
                self._render_variant(out, variant)
            out.close()

        packaging = descriptor.packaging
        if packaging.resource_excludes or packaging.resource_pick_firsts:
            out.line()
            out.open("packaging")
            out.open("resources")
            for pattern in packaging.resource_excludes:
                out.line(f"excludes += {kotlin_string(pattern)}")
            for pattern in packaging.resource_pick_firsts:
                out.line(f"pickFirsts += {kotlin_string(pattern)}")
            out.close()
            out.close()

    @staticmethod
    def _value(value: str | RawExpression) -> str:
        if isinstance(value, RawExpression):
            return value.source
        return kotlin_string(value)

    def _render_signing_config(self, out: ScriptWriter, signing_config: SigningConfig) -> None:
        # The debug identity always exists, every other one has to be created
        if signing_config.name == "debug":
            out.open(f"getByName({kotlin_string(signing_config.name)})")
        else:
            out.open(f"create({kotlin_string(signing_config.name)})")
        if signing_config.store_file is not None:
            if isinstance(signing_config.store_file, RawExpression):
                out.line(f"storeFile = {signing_config.store_file.source}")
            else:
                out.line(f"storeFile = file({kotlin_string(signing_config.store_file)})")
        if signing_config.store_password is not None:
            out.line(f"storePassword = {self._value(signing_config.store_password)}")
        if signing_config.key_alias is not None:
            out.line(f"keyAlias = {self._value(signing_config.key_alias)}")
        if signing_config.key_password is not None:
            out.line(f"keyPassword = {self._value(signing_config.key_password)}")
        out.close()

    def _render_variant(self, out: ScriptWriter, variant: BuildVariant) -> None:
        if variant.name in ("debug", "release"):
            out.open(variant.name)
        else:
            out.open(f"create({kotlin_string(variant.name)})")
        out.line(f"isMinifyEnabled = {_kotlin_bool(variant.minify_enabled)}")
        out.line(f"isShrinkResources = {_kotlin_bool(variant.shrink_resources)}")
        if variant.debuggable is not None:
            out.line(f"isDebuggable = {_kotlin_bool(variant.debuggable)}")
        if variant.proguard_files:
            out.line("proguardFiles(")
            out.indent_more()
            expressions = [f.expression for f in variant.proguard_files]
            for i, expression in enumerate(expressions):
                suffix = "," if i < len(expressions) - 1 else ""
                out.line(f"{expression}{suffix}")
            out.dedent()
            out.line(")")
        if variant.signing_config is not None:
            out.line(f"signingConfig = signingConfigs.getByName({kotlin_string(variant.signing_config)})")
        out.close()


def render_build_script(descriptor: BuildDescriptor, indent: int = 4) -> str:
    """Render a descriptor as canonical Kotlin DSL text."""
    return ScriptRenderer(indent=indent).render(descriptor)


class RenderInput(BaseModel):
    """Input for the rendering service."""

    descriptor: BuildDescriptor
    key: StorageKey = Field(default="app/build.gradle.kts", description="Destination storage key")
    overwrite: bool = Field(default=True, description="Replace an existing file at key")


class RenderOutput(BaseModel):
    """Output from the rendering service."""

    key: str
    format: DescriptorFormat
    content_hash: Hash = Field(description="SHA-256 of the written content")


class RenderingService:
    """Service for writing descriptors to storage."""

    def __init__(self, storage: StorageBackend, indent: int = 4, trailing_newline: bool = True) -> None:
        """Initialize the rendering service."""
        self.storage = storage
        self.renderer = ScriptRenderer(indent=indent, trailing_newline=trailing_newline)

    async def render(self, input_data: RenderInput) -> ServiceResult[RenderOutput]:
        """Write a descriptor as a script or JSON snapshot, by key suffix.

        Args:
            input_data: Render input.

        Returns:
            ServiceResult with the written key and content hash.
        """
        fmt = DescriptorFormat.from_key(input_data.key)
        try:
            if not input_data.overwrite and await self.storage.exists(input_data.key):
                return ServiceResult.fail(f"Refusing to overwrite existing file: {input_data.key}")

            if fmt == DescriptorFormat.JSON:
                content = input_data.descriptor.model_dump_json(indent=2) + "\n"
            else:
                content = self.renderer.render(input_data.descriptor)
            await self.storage.store_text(input_data.key, content)
        except DroidSpecError as e:
            logger.error("descriptor_render_failed", key=input_data.key, error=str(e))
            return ServiceResult.fail(str(e), key=input_data.key)

        logger.info(
            "descriptor_rendered",
            key=input_data.key,
            format=fmt.value,
            application_id=input_data.descriptor.application_id,
        )
        return ServiceResult.ok(
            RenderOutput(
                key=input_data.key,
                format=fmt,
                content_hash=self.storage.compute_hash(content.encode("utf-8")),
            )
        )
