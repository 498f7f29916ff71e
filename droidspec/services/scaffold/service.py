"""
Scaffold Service.

Creates new application build descriptors from the cross-platform framework
template and writes them into a project directory.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ...core.exceptions import DroidSpecError
from ...core.logging import get_logger
from ...core.types import ServiceResult, StorageKey
from ...models.descriptor import (
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
)
from ...storage import StorageBackend
from ..rendering.service import ScriptRenderer
from ..validation.service import ValidationService

logger = get_logger(__name__)

# Rules checked before anything is written; they cover the caller's input
INPUT_RULES = frozenset({"application-id", "version-name"})

TEMPLATE_COMPILE_SDK = 35
TEMPLATE_MIN_SDK = 21
TEMPLATE_TARGET_SDK = 34
TEMPLATE_NDK_VERSION = "27.0.12077973"

TEMPLATE_EXCLUDES = [
    "/META-INF/{AL2.0,LGPL2.1}",
    "META-INF/DEPENDENCIES",
    "META-INF/LICENSE",
    "META-INF/LICENSE.txt",
    "META-INF/NOTICE",
    "META-INF/NOTICE.txt",
]


def flutter_app_descriptor(
    application_id: str,
    version_name: str = "1.0",
    version_code: int = 1,
    min_sdk: int = TEMPLATE_MIN_SDK,
    target_sdk: int = TEMPLATE_TARGET_SDK,
    compile_sdk: int = TEMPLATE_COMPILE_SDK,
    release_signing_config: str | None = "debug",
) -> BuildDescriptor:
    """Build the framework application module template.

    Java 17 with core library desugaring, multidex, and a release variant
    that is minified and resource-shrunk. The release variant is signed with
    the debug identity until a real signing config is declared.

    Args:
        application_id: Reverse-domain id, also used as namespace.
        version_name: Human-readable version.
        version_code: Numeric version code.
        min_sdk: Minimum platform level.
        target_sdk: Target platform level.
        compile_sdk: Compile platform level.
        release_signing_config: Signing identity for the release variant.

    Returns:
        A new descriptor.
    """
    return BuildDescriptor(
        plugins=[
            GradlePlugin(plugin_id="com.android.application"),
            GradlePlugin(plugin_id="kotlin-android"),
            GradlePlugin(plugin_id="dev.flutter.flutter-gradle-plugin"),
        ],
        namespace=application_id,
        compile_sdk=compile_sdk,
        ndk_version=TEMPLATE_NDK_VERSION,
        compile_options=CompileOptions(
            source_compatibility=JavaVersion.VERSION_17,
            target_compatibility=JavaVersion.VERSION_17,
            core_library_desugaring_enabled=True,
        ),
        jvm_target=JavaVersion.VERSION_17.value,
        toolchain_version=JavaVersion.VERSION_17.major,
        default_config=DefaultConfig(
            application_id=application_id,
            min_sdk=min_sdk,
            target_sdk=target_sdk,
            version_code=version_code,
            version_name=version_name,
            multidex_enabled=True,
        ),
        build_types=[
            BuildVariant(
                name="release",
                minify_enabled=True,
                shrink_resources=True,
                proguard_files=[
                    ProguardFile(path="proguard-android-optimize.txt", is_default=True),
                    ProguardFile(path="proguard-rules.pro"),
                ],
                signing_config=release_signing_config,
            ),
        ],
        packaging=PackagingOptions(resource_excludes=list(TEMPLATE_EXCLUDES)),
        flutter=FlutterConfig(source="../.."),
        dependencies=[
            Dependency(
                group="com.android.tools",
                artifact="desugar_jdk_libs",
                version="2.0.4",
                stage=DependencyStage.CORE_LIBRARY_DESUGARING,
            ),
            Dependency(group="androidx.multidex", artifact="multidex", version="2.0.1"),
        ],
    )


class ScaffoldInput(BaseModel):
    """Input for the scaffold service."""

    application_id: str = Field(description="Reverse-domain application identifier")
    version_name: str = Field(default="1.0")
    version_code: int = Field(default=1, ge=1)
    module_dir: str = Field(default="app", description="Module directory, relative to storage root")
    overwrite: bool = Field(default=False, description="Replace an existing build script")


class ScaffoldOutput(BaseModel):
    """Output from the scaffold service."""

    descriptor: BuildDescriptor
    script_key: StorageKey
    rules_key: StorageKey | None = Field(default=None, description="Created rule file, if any")


class ScaffoldService:
    """Service for writing template build scripts into a module directory."""

    def __init__(self, storage: StorageBackend, renderer: ScriptRenderer | None = None) -> None:
        """Initialize the scaffold service."""
        self.storage = storage
        self.renderer = renderer or ScriptRenderer()

    async def scaffold(self, input_data: ScaffoldInput) -> ServiceResult[ScaffoldOutput]:
        """Write ``build.gradle.kts`` and an empty rule file for a new module.

        An existing rule file is left untouched. An existing build script is
        only replaced when ``overwrite`` is set. Nothing is written when the
        application id or version name is rejected by validation.

        Args:
            input_data: Scaffold input.

        Returns:
            ServiceResult with the template descriptor and written keys.
        """
        module_dir = input_data.module_dir.strip("/")
        script_key = f"{module_dir}/build.gradle.kts" if module_dir else "build.gradle.kts"
        rules_key = f"{module_dir}/proguard-rules.pro" if module_dir else "proguard-rules.pro"

        descriptor = flutter_app_descriptor(
            input_data.application_id,
            version_name=input_data.version_name,
            version_code=input_data.version_code,
        )
        rejected = [
            issue for issue in ValidationService().validate(descriptor).errors if issue.rule_id in INPUT_RULES
        ]
        if rejected:
            logger.error("scaffold_rejected", application_id=input_data.application_id, errors=len(rejected))
            return ServiceResult.fail(
                "; ".join(issue.message for issue in rejected),
                issues=[str(issue) for issue in rejected],
            )

        try:
            if not input_data.overwrite and await self.storage.exists(script_key):
                return ServiceResult.fail(f"Build script already exists: {script_key}")

            await self.storage.store_text(script_key, self.renderer.render(descriptor))

            written_rules: str | None = None
            if not await self.storage.exists(rules_key):
                await self.storage.store_text(rules_key, "")
                written_rules = rules_key
        except DroidSpecError as e:
            logger.error("scaffold_failed", module_dir=module_dir, error=str(e))
            return ServiceResult.fail(str(e), module_dir=module_dir)

        logger.info("module_scaffolded", application_id=input_data.application_id, key=script_key)
        return ServiceResult.ok(
            ScaffoldOutput(descriptor=descriptor, script_key=script_key, rules_key=written_rules)
        )
