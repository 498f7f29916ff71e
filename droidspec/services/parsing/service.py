"""
Parsing Service.

Maps Kotlin DSL application build scripts onto BuildDescriptor models and
loads descriptors from storage in either script or JSON form.
"""

from __future__ import annotations

import time
from typing import Any, Callable

import pydantic
from pydantic import BaseModel, Field

from ...core.exceptions import (
    DroidSpecError,
    GradleSyntaxError,
    UnsupportedConstructError,
    ValidationError,
)
from ...core.logging import get_logger
from ...core.types import DescriptorFormat, Hash, ServiceResult, StorageKey
from ...models.descriptor import (
    BuildDescriptor,
    Dependency,
    DependencyStage,
    JavaVersion,
    ProguardFile,
    RawExpression,
)
from ...storage import StorageBackend
from .syntax import (
    INFIX_FUNCTIONS,
    Assignment,
    Call,
    Expr,
    ExpressionStatement,
    Index,
    Infix,
    Literal,
    Reference,
    Statement,
    parse_script,
)

logger = get_logger(__name__)

# Short plugin forms expanded to their full ids
KOTLIN_PLUGIN_PREFIX = "org.jetbrains.kotlin."


class ScriptParser:
    """Maps a Kotlin DSL syntax tree onto a BuildDescriptor.

    Statements with no descriptor counterpart are skipped and recorded in
    ``warnings``; with ``strict=True`` they raise UnsupportedConstructError
    instead. References such as ``flutter.minSdkVersion`` are resolved
    through ``properties`` when a literal is required.
    """

    def __init__(self, strict: bool = False, properties: dict[str, Any] | None = None) -> None:
        self.strict = strict
        self.properties = properties or {}
        self.warnings: list[str] = []

    def parse(self, text: str) -> BuildDescriptor:
        """Parse build script text.

        Raises:
            GradleSyntaxError: If the text is not well-formed.
            UnsupportedConstructError: In strict mode, for unmapped statements.
            ValidationError: If required fields are missing or mistyped.
        """
        self.warnings = []
        script = parse_script(text)
        data: dict[str, Any] = {
            "plugins": [],
            "dependencies": [],
        }
        android_seen = False

        for statement in script.statements:
            block = self._block(statement)
            if block is None:
                self._unsupported(statement, "top-level statement")
                continue
            name, call = block
            if name == "plugins":
                data["plugins"].extend(self._plugins(call))
            elif name == "android":
                android_seen = True
                self._android(call, data)
            elif name == "flutter":
                data["flutter"] = self._flat_fields(call, {"source": self._string})
            elif name == "dependencies":
                data["dependencies"].extend(self._dependencies(call))
            else:
                self._unsupported(statement, name)

        if not android_seen:
            raise ValidationError(message="Build script has no android block", field_name="android")
        if "default_config" not in data:
            raise ValidationError(
                message="android block has no defaultConfig", field_name="android.defaultConfig"
            )
        if "namespace" not in data:
            raise ValidationError(message="android block has no namespace", field_name="android.namespace")

        try:
            return BuildDescriptor.model_validate(data)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            raise ValidationError(
                message=first["msg"],
                field_name=".".join(str(part) for part in first["loc"]),
                actual_value=first.get("input"),
                cause=e,
            ) from e

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    def _unsupported(self, statement: Statement | Expr, construct: str) -> None:
        line = getattr(statement, "line", 0)
        if self.strict:
            raise UnsupportedConstructError(
                message="No descriptor field corresponds to this statement",
                construct=construct,
                line=line,
            )
        self.warnings.append(f"line {line}: ignored '{construct}'")
        logger.debug("statement_ignored", construct=construct, line=line)

    @staticmethod
    def _block(statement: Statement) -> tuple[str, Call] | None:
        """Get ``(name, call)`` when the statement is a named configuration block."""
        if not isinstance(statement, ExpressionStatement):
            return None
        expr = statement.expr
        if isinstance(expr, Call) and expr.body is not None and expr.receiver is None:
            return expr.name, expr
        return None

    @staticmethod
    def _named_block(call: Call) -> str | None:
        """Get the element name of ``name {}``, ``getByName("x") {}`` or ``create("x") {}``."""
        if call.name in ("getByName", "create", "register", "maybeCreate") and call.args:
            arg = call.args[0].value
            if isinstance(arg, Literal) and isinstance(arg.value, str):
                return arg.value
            return None
        if not call.args:
            return call.name
        return None

    def _resolve(self, expr: Expr, field_name: str) -> Any:
        """Get the literal value of an expression, resolving known references."""
        if isinstance(expr, Literal):
            if expr.has_template:
                raise ValidationError(
                    message="String templates are not supported here",
                    field_name=field_name,
                    actual_value=expr.source,
                )
            return expr.value
        if isinstance(expr, Reference) and expr.dotted in self.properties:
            return self.properties[expr.dotted]
        raise ValidationError(
            message="Expected a literal value",
            field_name=field_name,
            actual_value=getattr(expr, "source", ""),
        )

    def _string(self, expr: Expr, field_name: str) -> str:
        value = self._resolve(expr, field_name)
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ValidationError(message="Expected a string", field_name=field_name, actual_value=value)
        return str(value)

    def _int(self, expr: Expr, field_name: str) -> int:
        value = self._resolve(expr, field_name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(message="Expected an integer", field_name=field_name, actual_value=value)
        return value

    def _bool(self, expr: Expr, field_name: str) -> bool:
        value = self._resolve(expr, field_name)
        if not isinstance(value, bool):
            raise ValidationError(message="Expected a boolean", field_name=field_name, actual_value=value)
        return value

    def _secret(self, expr: Expr, field_name: str) -> str | RawExpression:
        """Get a literal string, or keep a non-literal expression verbatim.

        ``file("x")`` yields its path. ``file(...)`` over a non-literal
        argument, casts, elvis fallbacks and safe calls are kept whole.
        """
        if isinstance(expr, Call) and expr.name == "file" and expr.receiver is None and len(expr.args) == 1:
            arg = expr.args[0].value
            if isinstance(arg, Literal) or (isinstance(arg, Reference) and arg.dotted in self.properties):
                return self._string(arg, field_name)
        if isinstance(expr, Literal) and isinstance(expr.value, str) and not expr.has_template:
            return expr.value
        return RawExpression(source=expr.source)

    def _assignments(self, call: Call) -> list[tuple[str, Assignment | None, Statement]]:
        """Split a block body into ``(name, assignment, statement)`` entries.

        Legacy setter calls like ``minSdkVersion(21)`` are reported with
        ``assignment`` None so callers can decide how to read them.
        """
        entries = []
        for statement in call.body or []:
            if isinstance(statement, Assignment):
                entries.append((statement.target.dotted, statement, statement))
            elif isinstance(statement, ExpressionStatement) and isinstance(statement.expr, Call):
                entries.append((statement.expr.qualified_name, None, statement))
            else:
                entries.append(("", None, statement))
        return entries

    def _flat_fields(self, call: Call, readers: dict[str, Callable[[Expr, str], Any]]) -> dict[str, Any]:
        """Read ``name = value`` assignments with per-field readers."""
        result: dict[str, Any] = {}
        for name, assignment, statement in self._assignments(call):
            if assignment is not None and assignment.operator == "=" and name in readers:
                result[name] = readers[name](assignment.value, f"{call.name}.{name}")
            else:
                self._unsupported(statement, f"{call.name}.{name or '?'}")
        return result

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _plugins(self, call: Call) -> list[dict[str, Any]]:
        plugins = []
        for statement in call.body or []:
            expr = statement.expr if isinstance(statement, ExpressionStatement) else None
            version: str | None = None
            apply = True
            while isinstance(expr, Infix) and expr.operator in INFIX_FUNCTIONS:
                if expr.operator == "version":
                    version = self._string(expr.right, "plugins.version")
                else:
                    apply = self._bool(expr.right, "plugins.apply")
                expr = expr.left
            if isinstance(expr, Call) and expr.name in ("id", "kotlin") and len(expr.args) == 1:
                plugin_id = self._string(expr.args[0].value, "plugins.id")
                if expr.name == "kotlin":
                    plugin_id = KOTLIN_PLUGIN_PREFIX + plugin_id
                plugins.append({"plugin_id": plugin_id, "version": version, "apply": apply})
            else:
                self._unsupported(statement, "plugins entry")
        return plugins

    def _android(self, call: Call, data: dict[str, Any]) -> None:
        for name, assignment, statement in self._assignments(call):
            if assignment is not None:
                value = assignment.value
                if name == "namespace":
                    data["namespace"] = self._string(value, "android.namespace")
                elif name == "compileSdk":
                    data["compile_sdk"] = self._int(value, "android.compileSdk")
                elif name == "ndkVersion":
                    data["ndk_version"] = self._string(value, "android.ndkVersion")
                else:
                    self._unsupported(statement, f"android.{name}")
                continue

            expr = statement.expr if isinstance(statement, ExpressionStatement) else None
            if not isinstance(expr, Call):
                self._unsupported(statement, "android statement")
            elif expr.body is None and name == "compileSdkVersion" and len(expr.args) == 1:
                data["compile_sdk"] = self._int(expr.args[0].value, "android.compileSdkVersion")
            elif name == "compileOptions" and expr.body is not None:
                data["compile_options"] = self._compile_options(expr)
            elif name == "kotlinOptions" and expr.body is not None:
                options = self._flat_fields(expr, {"jvmTarget": self._jvm_target})
                if "jvmTarget" in options:
                    data["jvm_target"] = options["jvmTarget"]
            elif name == "java" and expr.body is not None:
                self._java(expr, data)
            elif name == "defaultConfig" and expr.body is not None:
                data["default_config"] = self._default_config(expr)
            elif name == "signingConfigs" and expr.body is not None:
                data["signing_configs"] = self._signing_configs(expr)
            elif name == "buildTypes" and expr.body is not None:
                data["build_types"] = self._build_types(expr)
            elif name in ("packaging", "packagingOptions") and expr.body is not None:
                data["packaging"] = self._packaging(expr)
            else:
                self._unsupported(statement, f"android.{name}")

    def _java_version(self, expr: Expr, field_name: str) -> JavaVersion:
        if isinstance(expr, Reference) and expr.parts[0] == "JavaVersion":
            try:
                return JavaVersion.from_gradle_constant(expr.dotted)
            except ValueError as e:
                raise ValidationError(
                    message=str(e), field_name=field_name, actual_value=expr.dotted, cause=e
                ) from e
        value = self._string(expr, field_name)
        try:
            return JavaVersion(value)
        except ValueError as e:
            raise ValidationError(
                message="Unknown Java version", field_name=field_name, actual_value=value, cause=e
            ) from e

    def _jvm_target(self, expr: Expr, field_name: str) -> str:
        # JavaVersion.VERSION_17.toString()
        if isinstance(expr, Call) and expr.name == "toString" and isinstance(expr.receiver, Reference):
            return self._java_version(expr.receiver, field_name).value
        return self._string(expr, field_name)

    def _compile_options(self, call: Call) -> dict[str, Any]:
        options = self._flat_fields(
            call,
            {
                "sourceCompatibility": self._java_version,
                "targetCompatibility": self._java_version,
                "isCoreLibraryDesugaringEnabled": self._bool,
            },
        )
        renamed = {
            "sourceCompatibility": "source_compatibility",
            "targetCompatibility": "target_compatibility",
            "isCoreLibraryDesugaringEnabled": "core_library_desugaring_enabled",
        }
        return {renamed[k]: v for k, v in options.items()}

    def _toolchain_version(self, expr: Expr, field_name: str) -> int:
        # JavaLanguageVersion.of(17)
        if isinstance(expr, Call) and expr.qualified_name == "JavaLanguageVersion.of" and len(expr.args) == 1:
            return self._int(expr.args[0].value, field_name)
        raise ValidationError(
            message="Expected JavaLanguageVersion.of(...)",
            field_name=field_name,
            actual_value=getattr(expr, "source", ""),
        )

    def _java(self, call: Call, data: dict[str, Any]) -> None:
        for name, _, statement in self._assignments(call):
            expr = statement.expr if isinstance(statement, ExpressionStatement) else None
            if name != "toolchain" or not isinstance(expr, Call) or expr.body is None:
                self._unsupported(statement, f"java.{name or '?'}")
                continue
            for inner_name, assignment, inner in self._assignments(expr):
                inner_expr = inner.expr if isinstance(inner, ExpressionStatement) else None
                if assignment is not None and inner_name == "languageVersion":
                    data["toolchain_version"] = self._toolchain_version(
                        assignment.value, "java.toolchain.languageVersion"
                    )
                elif (
                    isinstance(inner_expr, Call)
                    and inner_name == "languageVersion.set"
                    and len(inner_expr.args) == 1
                ):
                    data["toolchain_version"] = self._toolchain_version(
                        inner_expr.args[0].value, "java.toolchain.languageVersion"
                    )
                else:
                    self._unsupported(inner, f"java.toolchain.{inner_name or '?'}")

    def _default_config(self, call: Call) -> dict[str, Any]:
        fields = {
            "applicationId": ("application_id", self._string),
            "minSdk": ("min_sdk", self._int),
            "minSdkVersion": ("min_sdk", self._int),
            "targetSdk": ("target_sdk", self._int),
            "targetSdkVersion": ("target_sdk", self._int),
            "versionCode": ("version_code", self._int),
            "versionName": ("version_name", self._string),
            "multiDexEnabled": ("multidex_enabled", self._bool),
            "isMultiDexEnabled": ("multidex_enabled", self._bool),
        }
        config: dict[str, Any] = {}
        for name, assignment, statement in self._assignments(call):
            expr = statement.expr if isinstance(statement, ExpressionStatement) else None
            if name not in fields:
                self._unsupported(statement, f"defaultConfig.{name or '?'}")
                continue
            key, reader = fields[name]
            field_name = f"defaultConfig.{name}"
            if assignment is not None and assignment.operator == "=":
                config[key] = reader(assignment.value, field_name)
            elif isinstance(expr, Call) and expr.body is None and len(expr.args) == 1:
                config[key] = reader(expr.args[0].value, field_name)
            else:
                self._unsupported(statement, field_name)

        if "application_id" not in config:
            raise ValidationError(
                message="defaultConfig has no applicationId", field_name="defaultConfig.applicationId"
            )
        return config

    def _signing_configs(self, call: Call) -> list[dict[str, Any]]:
        configs = []
        for statement in call.body or []:
            block = self._block(statement)
            name = self._named_block(block[1]) if block else None
            if block is None or name is None:
                self._unsupported(statement, "signingConfigs entry")
                continue
            fields = self._flat_fields(
                block[1],
                {
                    "storeFile": self._secret,
                    "storePassword": self._secret,
                    "keyAlias": self._secret,
                    "keyPassword": self._secret,
                },
            )
            configs.append(
                {
                    "name": name,
                    "store_file": fields.get("storeFile"),
                    "store_password": fields.get("storePassword"),
                    "key_alias": fields.get("keyAlias"),
                    "key_password": fields.get("keyPassword"),
                }
            )
        return configs

    def _signing_reference(self, expr: Expr, field_name: str) -> str | None:
        # signingConfigs.getByName("debug") or signingConfigs["debug"]
        if isinstance(expr, Literal) and expr.value is None:
            return None
        if (
            isinstance(expr, Call)
            and expr.qualified_name == "signingConfigs.getByName"
            and len(expr.args) == 1
        ):
            return self._string(expr.args[0].value, field_name)
        if (
            isinstance(expr, Index)
            and isinstance(expr.target, Reference)
            and expr.target.dotted == "signingConfigs"
        ):
            return self._string(expr.index, field_name)
        if isinstance(expr, Reference) and len(expr.parts) == 2 and expr.parts[0] == "signingConfigs":
            return expr.parts[1]
        raise ValidationError(
            message="Expected a signingConfigs reference",
            field_name=field_name,
            actual_value=getattr(expr, "source", ""),
        )

    def _proguard_file(self, expr: Expr, field_name: str) -> ProguardFile:
        if isinstance(expr, Call) and expr.name == "getDefaultProguardFile" and len(expr.args) == 1:
            return ProguardFile(path=self._string(expr.args[0].value, field_name), is_default=True)
        if isinstance(expr, Call) and expr.name == "file" and len(expr.args) == 1:
            return ProguardFile(path=self._string(expr.args[0].value, field_name))
        return ProguardFile(path=self._string(expr, field_name))

    def _build_types(self, call: Call) -> list[dict[str, Any]]:
        variants = []
        for statement in call.body or []:
            block = self._block(statement)
            name = self._named_block(block[1]) if block else None
            if block is None or name is None:
                self._unsupported(statement, "buildTypes entry")
                continue

            variant: dict[str, Any] = {"name": name, "proguard_files": []}
            for field, assignment, inner in self._assignments(block[1]):
                field_name = f"buildTypes.{name}.{field}"
                expr = inner.expr if isinstance(inner, ExpressionStatement) else None
                if assignment is not None and assignment.operator == "=":
                    value = assignment.value
                    if field in ("isMinifyEnabled", "minifyEnabled"):
                        variant["minify_enabled"] = self._bool(value, field_name)
                    elif field in ("isShrinkResources", "shrinkResources"):
                        variant["shrink_resources"] = self._bool(value, field_name)
                    elif field in ("isDebuggable", "debuggable"):
                        variant["debuggable"] = self._bool(value, field_name)
                    elif field == "signingConfig":
                        variant["signing_config"] = self._signing_reference(value, field_name)
                    else:
                        self._unsupported(inner, field_name)
                elif isinstance(expr, Call) and field in ("proguardFiles", "proguardFile"):
                    variant["proguard_files"].extend(
                        self._proguard_file(arg.value, field_name) for arg in expr.args
                    )
                else:
                    self._unsupported(inner, field_name)
            variants.append(variant)
        return variants

    def _glob_values(self, assignment: Assignment | None, expr: Expr | None, field_name: str) -> list[str]:
        """Read ``x += "a"``, ``x += setOf("a", "b")`` or ``x.add("a")``."""
        if assignment is not None:
            value = assignment.value
            if isinstance(value, Call) and value.name in ("setOf", "listOf", "mutableSetOf") and value.body is None:
                return [self._string(arg.value, field_name) for arg in value.args]
            return [self._string(value, field_name)]
        if isinstance(expr, Call) and expr.name in ("add", "addAll"):
            return [self._string(arg.value, field_name) for arg in expr.args]
        return []

    def _packaging(self, call: Call) -> dict[str, Any]:
        packaging: dict[str, list[str]] = {"resource_excludes": [], "resource_pick_firsts": []}
        targets = {"excludes": "resource_excludes", "pickFirsts": "resource_pick_firsts"}
        for name, _, statement in self._assignments(call):
            block = self._block(statement)
            if block is None or name != "resources":
                self._unsupported(statement, f"packaging.{name or '?'}")
                continue
            for field, assignment, inner in self._assignments(block[1]):
                expr = inner.expr if isinstance(inner, ExpressionStatement) else None
                base = field.rsplit(".", 1)[0] if assignment is None else field
                field_name = f"packaging.resources.{base}"
                values = self._glob_values(assignment, expr, field_name)
                if base in targets and values and (assignment is None or assignment.operator == "+="):
                    packaging[targets[base]].extend(values)
                else:
                    self._unsupported(inner, field_name)
        return packaging

    def _dependencies(self, call: Call) -> list[Dependency]:
        dependencies = []
        stages = {stage.value: stage for stage in DependencyStage}
        for statement in call.body or []:
            expr = statement.expr if isinstance(statement, ExpressionStatement) else None
            if not isinstance(expr, Call) or expr.receiver is not None or expr.name not in stages:
                self._unsupported(statement, "dependencies entry")
                continue
            if len(expr.args) != 1 or expr.body is not None:
                self._unsupported(statement, f"dependencies.{expr.name}")
                continue

            arg = expr.args[0].value
            is_platform = False
            if isinstance(arg, Call) and arg.name in ("platform", "enforcedPlatform") and len(arg.args) == 1:
                is_platform = True
                arg = arg.args[0].value
            if not isinstance(arg, Literal):
                # project(":x") and files(...) have no coordinates
                self._unsupported(statement, f"dependencies.{expr.name}")
                continue

            notation = self._string(arg, f"dependencies.{expr.name}")
            try:
                dependencies.append(
                    Dependency.from_notation(notation, stages[expr.name], is_platform=is_platform)
                )
            except ValueError as e:
                raise ValidationError(
                    message=str(e),
                    field_name=f"dependencies.{expr.name}",
                    actual_value=notation,
                    cause=e,
                ) from e
        return dependencies


def parse_build_script(
    text: str,
    strict: bool = False,
    properties: dict[str, Any] | None = None,
) -> BuildDescriptor:
    """Parse Kotlin DSL build script text into a BuildDescriptor.

    Args:
        text: Script contents.
        strict: Raise on statements with no descriptor mapping instead of skipping them.
        properties: Values for references such as ``flutter.minSdkVersion``.

    Returns:
        The parsed descriptor.
    """
    return ScriptParser(strict=strict, properties=properties).parse(text)


class ParseInput(BaseModel):
    """Input for the parsing service."""

    key: StorageKey = Field(description="Storage key of a build script or JSON snapshot")
    strict: bool = Field(default=False, description="Fail on unmapped statements")
    properties: dict[str, Any] = Field(default_factory=dict, description="Reference values")


class ParseOutput(BaseModel):
    """Output from the parsing service."""

    descriptor: BuildDescriptor
    key: str
    format: DescriptorFormat
    source_hash: Hash = Field(description="SHA-256 of the source text")


class ParsingService:
    """Service for loading build descriptors from storage."""

    def __init__(self, storage: StorageBackend) -> None:
        """Initialize the parsing service.

        Args:
            storage: Storage backend holding scripts and snapshots
        """
        self.storage = storage

    async def parse(self, input_data: ParseInput) -> ServiceResult[ParseOutput]:
        """Load and parse a descriptor.

        The format follows the key suffix: ``.json`` snapshots are validated
        with pydantic, anything else is parsed as a Kotlin DSL script.

        Args:
            input_data: Parse input.

        Returns:
            ServiceResult with the descriptor, carrying any skipped-statement warnings.
        """
        started = time.perf_counter()
        fmt = DescriptorFormat.from_key(input_data.key)
        logger.info("parsing_descriptor", key=input_data.key, format=fmt.value)

        try:
            text = await self.storage.load_text(input_data.key)
            warnings: list[str] = []
            if fmt == DescriptorFormat.JSON:
                descriptor = BuildDescriptor.model_validate_json(text)
            else:
                parser = ScriptParser(strict=input_data.strict, properties=input_data.properties)
                descriptor = parser.parse(text)
                warnings = parser.warnings
        except GradleSyntaxError as e:
            logger.error("descriptor_syntax_error", key=input_data.key, line=e.line, column=e.column)
            return ServiceResult.fail(str(e), key=input_data.key)
        except DroidSpecError as e:
            logger.error("descriptor_parse_failed", key=input_data.key, error=str(e))
            return ServiceResult.fail(str(e), key=input_data.key)
        except pydantic.ValidationError as e:
            logger.error("descriptor_snapshot_invalid", key=input_data.key, errors=e.error_count())
            return ServiceResult.fail(f"Invalid descriptor snapshot: {e}", key=input_data.key)

        output = ParseOutput(
            descriptor=descriptor,
            key=input_data.key,
            format=fmt,
            source_hash=self.storage.compute_hash(text.encode("utf-8")),
        )
        logger.info(
            "descriptor_parsed",
            key=input_data.key,
            application_id=descriptor.application_id,
            warnings=len(warnings),
        )
        result = ServiceResult.with_warnings(output, warnings) if warnings else ServiceResult.ok(output)
        result.duration_ms = (time.perf_counter() - started) * 1000
        return result
