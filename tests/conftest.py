"""Test configuration for droidspec."""

import logging

import pytest
import structlog
from pathlib import Path
import tempfile

ORIGINAL_SCRIPT = '''plugins {
    id("com.android.application")
    id("kotlin-android")
    id("dev.flutter.flutter-gradle-plugin")
}

android {
    namespace = "com.example.indayreminder"
    compileSdk = 35
    ndkVersion = "27.0.12077973"

    compileOptions {
        sourceCompatibility = JavaVersion.VERSION_17
        targetCompatibility = JavaVersion.VERSION_17
        isCoreLibraryDesugaringEnabled = true
    }

    kotlinOptions {
        jvmTarget = "17"
    }

    java {
        toolchain {
            languageVersion.set(JavaLanguageVersion.of(17))
        }
    }

    defaultConfig {
        applicationId = "com.example.indayreminder"
        minSdk = 21
        targetSdk = 34
        versionCode = 1
        versionName = "1.0"
        multiDexEnabled = true
    }

    buildTypes {
        release {
            isMinifyEnabled = true        // Corrected syntax
            isShrinkResources = true      // Corrected syntax
            proguardFiles(
                getDefaultProguardFile("proguard-android-optimize.txt"),
                "proguard-rules.pro"
            )
            signingConfig = signingConfigs.getByName("debug")
        }
    }

    packaging {
        resources {
            excludes += "/META-INF/{AL2.0,LGPL2.1}"
            excludes += "META-INF/DEPENDENCIES"
            excludes += "META-INF/LICENSE"
            excludes += "META-INF/LICENSE.txt"
            excludes += "META-INF/NOTICE"
            excludes += "META-INF/NOTICE.txt"
        }
    }
}

flutter {
    source = "../.."
}

dependencies {
    coreLibraryDesugaring("com.android.tools:desugar_jdk_libs:2.0.4")
    implementation("androidx.multidex:multidex:2.0.1")
}'''


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def original_script():
    """Framework application build script as generated by the framework tooling.

    Returns:
        str: Kotlin DSL text of app/build.gradle.kts.
    """
    return ORIGINAL_SCRIPT


@pytest.fixture
def script_file(temp_dir, original_script):
    """Write the framework build script into a module directory.

    Returns:
        Path: Path to app/build.gradle.kts inside the temporary directory.
    """
    path = temp_dir / "app" / "build.gradle.kts"
    path.parent.mkdir(parents=True)
    path.write_text(original_script, encoding="utf-8")
    return path


@pytest.fixture
def template_descriptor():
    """Create the framework template descriptor for the sample application.

    Returns:
        BuildDescriptor: Template descriptor with id com.example.indayreminder.
    """
    from droidspec.services.scaffold import flutter_app_descriptor
    return flutter_app_descriptor("com.example.indayreminder")


@pytest.fixture
def storage(temp_dir):
    """Create a storage backend for testing.

    Returns:
        LocalStorageBackend: A local storage backend rooted at the temporary directory.
    """
    from droidspec.storage import LocalStorageBackend
    return LocalStorageBackend(temp_dir)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo logging setup so handlers never outlive a test's output streams."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    package_logger = logging.getLogger("droidspec")
    package_logger.handlers.clear()
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True
