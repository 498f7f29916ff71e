"""Unit tests for the command-line interface."""

import json

import pytest
import typer
from typer.testing import CliRunner

from droidspec import __version__
from droidspec.cli import app, parse_properties
from droidspec.core.config import get_config
from droidspec.models.descriptor import BuildDescriptor
from droidspec.services.rendering import render_build_script

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_config(monkeypatch):
    """Keep informational logs out of command output."""
    monkeypatch.setenv("DROIDSPEC_LOG_LEVEL", "WARNING")
    get_config.cache_clear()
    yield
    get_config.cache_clear()


class TestParseProperties:
    """Tests for ``name=value`` options."""

    def test_value_types(self):
        """Test integers and booleans are converted."""
        assert parse_properties(["flutter.minSdkVersion=21", "debug=true", "name=1.0", "offset=-3"]) == {
            "flutter.minSdkVersion": 21,
            "debug": True,
            "name": "1.0",
            "offset": -3,
        }

    def test_empty(self):
        """Test no options gives no properties."""
        assert parse_properties(None) == {}

    @pytest.mark.parametrize("entry", ["flutter.minSdkVersion", "=21"])
    def test_malformed(self, entry):
        """Test entries without a name or value separator."""
        with pytest.raises(typer.BadParameter):
            parse_properties([entry])


class TestCommands:
    """Tests for CLI commands."""

    def test_version(self):
        """Test --version prints the package version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"droidspec v{__version__}" in result.stdout

    def test_validate(self, script_file):
        """Test validating the framework script."""
        result = runner.invoke(app, ["validate", str(script_file)])

        assert result.exit_code == 0
        assert "build.gradle.kts is valid" in result.stdout

    def test_validate_strict(self, script_file):
        """Test strict validation fails on the debug-signed release."""
        result = runner.invoke(app, ["validate", str(script_file), "--strict"])

        assert result.exit_code == 1
        assert "build.gradle.kts is invalid" in result.stdout

    def test_validate_json(self, script_file):
        """Test the JSON report."""
        result = runner.invoke(app, ["validate", str(script_file), "--json"])

        assert result.exit_code == 0
        report = json.loads(result.stdout)
        assert report["valid"] is True
        assert report["application_id"] == "com.example.indayreminder"
        assert [i["rule_id"] for i in report["issues"]] == ["release-debug-signing"]
        assert report["issues"][0]["severity"] == "warning"

    def test_validate_properties(self, temp_dir, original_script):
        """Test -D supplies values for script references."""
        path = temp_dir / "build.gradle.kts"
        path.write_text(original_script.replace("minSdk = 21", "minSdk = flutter.minSdkVersion"), encoding="utf-8")

        assert runner.invoke(app, ["validate", str(path)]).exit_code == 1

        result = runner.invoke(app, ["validate", str(path), "-D", "flutter.minSdkVersion=21"])
        assert result.exit_code == 0

    def test_validate_missing_file(self, temp_dir):
        """Test a missing script is a usage error."""
        result = runner.invoke(app, ["validate", str(temp_dir / "missing.gradle.kts")])
        assert result.exit_code == 2

    def test_validate_syntax_error(self, temp_dir):
        """Test malformed scripts exit with an error."""
        path = temp_dir / "build.gradle.kts"
        path.write_text("android {\n", encoding="utf-8")

        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Syntax" in result.stdout

    def test_show(self, script_file):
        """Test showing descriptor fields."""
        result = runner.invoke(app, ["show", str(script_file)])

        assert result.exit_code == 0
        assert "com.example.indayreminder" in result.stdout
        assert "21 / 34 / 35" in result.stdout
        assert "desugar_jdk_libs" in result.stdout

    def test_render_to_stdout(self, script_file, template_descriptor):
        """Test rendering the canonical script to stdout."""
        result = runner.invoke(app, ["render", str(script_file)])

        assert result.exit_code == 0
        assert result.stdout == render_build_script(template_descriptor)

    def test_render_to_file(self, script_file, temp_dir, template_descriptor):
        """Test rendering to a Kotlin DSL file."""
        output = temp_dir / "out" / "build.gradle.kts"
        result = runner.invoke(app, ["render", str(script_file), "--output", str(output)])

        assert result.exit_code == 0
        assert output.read_text(encoding="utf-8") == render_build_script(template_descriptor)

    def test_render_rejects_json_output(self, script_file, temp_dir):
        """Test render refuses JSON destinations."""
        result = runner.invoke(app, ["render", str(script_file), "-o", str(temp_dir / "app.json")])

        assert result.exit_code == 1
        assert not (temp_dir / "app.json").exists()

    def test_export_and_reload(self, script_file, temp_dir, template_descriptor):
        """Test exporting a JSON snapshot and validating it."""
        result = runner.invoke(app, ["export", str(script_file)])
        assert result.exit_code == 0
        assert BuildDescriptor.model_validate_json(result.stdout) == template_descriptor

        snapshot = temp_dir / "app.json"
        result = runner.invoke(app, ["export", str(script_file), "-o", str(snapshot)])
        assert result.exit_code == 0
        assert BuildDescriptor.model_validate_json(snapshot.read_text(encoding="utf-8")) == template_descriptor

        result = runner.invoke(app, ["validate", str(snapshot)])
        assert result.exit_code == 0

    def test_init(self, temp_dir):
        """Test creating a module from the template."""
        result = runner.invoke(app, ["init", "com.example.todo", "--output", str(temp_dir), "--version-name", "0.1"])

        assert result.exit_code == 0
        script = (temp_dir / "app" / "build.gradle.kts").read_text(encoding="utf-8")
        assert 'applicationId = "com.example.todo"' in script
        assert 'versionName = "0.1"' in script
        assert (temp_dir / "app" / "proguard-rules.pro").exists()
        assert "release-debug-signing" in result.stdout

    def test_init_uses_configured_indent(self, temp_dir, monkeypatch):
        """Test init renders with the configured indentation."""
        monkeypatch.setenv("DROIDSPEC_INDENT", "2")
        get_config.cache_clear()

        result = runner.invoke(app, ["init", "com.example.todo", "-o", str(temp_dir)])

        assert result.exit_code == 0
        script = (temp_dir / "app" / "build.gradle.kts").read_text(encoding="utf-8")
        assert "\n  compileSdk = 35\n" in script

    def test_init_invalid_application_id(self, temp_dir):
        """Test init exits non-zero and writes nothing for a malformed id."""
        result = runner.invoke(app, ["init", "todo", "-o", str(temp_dir)])

        assert result.exit_code == 1
        assert "reverse-domain" in result.stdout
        assert not (temp_dir / "app").exists()

    def test_init_existing(self, temp_dir):
        """Test init does not replace an existing module without --overwrite."""
        assert runner.invoke(app, ["init", "com.example.todo", "-o", str(temp_dir)]).exit_code == 0

        result = runner.invoke(app, ["init", "com.example.other", "-o", str(temp_dir)])
        assert result.exit_code == 1
        assert "already exists" in result.stdout

        result = runner.invoke(app, ["init", "com.example.other", "-o", str(temp_dir), "--overwrite"])
        assert result.exit_code == 0
        assert "com.example.other" in (temp_dir / "app" / "build.gradle.kts").read_text(encoding="utf-8")

    def test_config(self):
        """Test showing the effective configuration."""
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "WARNING" in result.stdout
        assert "DROIDSPEC_LOG_LEVEL" in result.stdout
