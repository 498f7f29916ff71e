"""
droidspec CLI.

Command-line interface for parsing, validating, rendering and scaffolding
Android application build descriptors.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .core.config import get_config
from .core.logging import bind_context, clear_context, setup_logging
from .core.types import DescriptorFormat
from .models.descriptor import BuildDescriptor
from .services.parsing import ParseInput, ParsingService
from .services.rendering import RenderInput, RenderingService, ScriptRenderer
from .services.scaffold import ScaffoldInput, ScaffoldService
from .services.validation import Severity, ValidationService
from .storage import LocalStorageBackend

app = typer.Typer(
    name="droidspec",
    help="Parse, validate and render Android application build descriptors",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"droidspec v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """droidspec: typed Android build descriptors."""
    clear_context()


def parse_properties(values: list[str] | None) -> dict[str, Any]:
    """Parse ``name=value`` options into reference values.

    Integers and booleans are converted, everything else stays a string.

    Raises:
        typer.BadParameter: If an entry has no ``=``.
    """
    properties: dict[str, Any] = {}
    for entry in values or []:
        name, sep, raw = entry.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"Expected name=value, got {entry!r}")
        if raw.lstrip("-").isdigit():
            properties[name] = int(raw)
        elif raw in ("true", "false"):
            properties[name] = raw == "true"
        else:
            properties[name] = raw
    return properties


def _load_descriptor(path: Path, strict: bool = False, properties: dict[str, Any] | None = None) -> BuildDescriptor:
    """Load a descriptor from a script or JSON snapshot, exiting on failure."""
    bind_context(source=str(path))
    service = ParsingService(LocalStorageBackend(path.parent))
    result = asyncio.run(
        service.parse(ParseInput(key=path.name, strict=strict, properties=properties or {}))
    )
    if not result.success or result.data is None:
        console.print(f"[red]Failed to load {path}: {escape(result.error or '')}[/red]")
        raise typer.Exit(1)
    for warning in result.warnings:
        console.print(f"[yellow]warning:[/yellow] {escape(warning)}")
    return result.data.descriptor


def _write_descriptor(descriptor: BuildDescriptor, output: Path) -> None:
    """Write a descriptor to a file, format by suffix, exiting on failure."""
    render = get_config().render
    service = RenderingService(
        LocalStorageBackend(output.parent),
        indent=render.indent,
        trailing_newline=render.trailing_newline,
    )
    result = asyncio.run(service.render(RenderInput(descriptor=descriptor, key=output.name)))
    if not result.success:
        console.print(f"[red]Failed to write {output}: {escape(result.error or '')}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Wrote {output}")


script_argument = typer.Argument(
    ...,
    help="Path to a build.gradle.kts script or a JSON descriptor",
    exists=True,
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
)

property_option = typer.Option(
    None,
    "--property",
    "-D",
    help="Value for a script reference, e.g. flutter.minSdkVersion=21",
)


@app.command()
def validate(
    script: Path = script_argument,
    strict: bool = typer.Option(False, "--strict", help="Treat warnings as errors"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    properties: Optional[List[str]] = property_option,
) -> None:
    """Validate a build descriptor against the build invariants."""
    config = get_config()
    setup_logging(config)

    validation_config = config.validation.model_copy(update={"strict": strict or config.validation.strict})
    descriptor = _load_descriptor(script, properties=parse_properties(properties))
    report = ValidationService(validation_config).validate(descriptor)

    if as_json:
        typer.echo(json.dumps({**report.model_dump(mode="json"), "valid": report.is_valid}, indent=2))
    else:
        if report.issues:
            table = Table(title=f"Validation: {descriptor.application_id}")
            table.add_column("Severity")
            table.add_column("Rule", style="cyan")
            table.add_column("Location")
            table.add_column("Message")
            for issue in report.issues:
                color = "red" if issue.severity == Severity.ERROR else "yellow"
                table.add_row(f"[{color}]{issue.severity.value}[/{color}]", issue.rule_id, issue.path, issue.message)
            console.print(table)

        if report.is_valid:
            console.print(f"[bold green]✓ {script.name} is valid[/bold green]")
        else:
            console.print(
                f"[bold red]✗ {script.name} is invalid[/bold red] "
                f"({len(report.errors)} error(s), {len(report.warnings)} warning(s))"
            )

    if not report.is_valid:
        raise typer.Exit(1)


@app.command()
def show(
    script: Path = script_argument,
    properties: Optional[List[str]] = property_option,
) -> None:
    """Show the fields of a build descriptor."""
    setup_logging(get_config())
    descriptor = _load_descriptor(script, properties=parse_properties(properties))
    config = descriptor.default_config

    table = Table(title="Build Descriptor")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Application ID", config.application_id)
    table.add_row("Namespace", descriptor.namespace)
    table.add_row("Version", f"{config.version_name} ({config.version_code})")
    table.add_row("Min / Target / Compile SDK", f"{config.min_sdk} / {config.target_sdk} / {descriptor.compile_sdk}")
    table.add_row("NDK", descriptor.ndk_version or "-")
    table.add_row(
        "Java",
        f"{descriptor.compile_options.source_compatibility.value} → "
        f"{descriptor.compile_options.target_compatibility.value}",
    )
    table.add_row("Desugaring", str(descriptor.compile_options.core_library_desugaring_enabled))
    table.add_row("Multidex", str(config.multidex_enabled))
    table.add_row("Plugins", ", ".join(p.plugin_id for p in descriptor.plugins) or "-")
    table.add_row("Exclusions", str(len(descriptor.packaging.resource_excludes)))
    console.print(table)

    if descriptor.build_types:
        variants = Table(title="Build Variants")
        variants.add_column("Name", style="cyan")
        variants.add_column("Minify")
        variants.add_column("Shrink")
        variants.add_column("Rule Files")
        variants.add_column("Signing")
        for variant in descriptor.build_types:
            variants.add_row(
                variant.name,
                str(variant.minify_enabled),
                str(variant.shrink_resources),
                ", ".join(f.path for f in variant.proguard_files) or "-",
                variant.signing_config or "-",
            )
        console.print(variants)

    if descriptor.dependencies:
        deps = Table(title="Dependencies")
        deps.add_column("Stage", style="cyan")
        deps.add_column("Notation")
        for dependency in descriptor.dependencies:
            deps.add_row(dependency.stage.value, dependency.notation)
        console.print(deps)


@app.command()
def render(
    source: Path = script_argument,
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Destination .gradle.kts file (prints to stdout when omitted)",
    ),
    properties: Optional[List[str]] = property_option,
) -> None:
    """Render a descriptor as a canonical Kotlin DSL build script."""
    config = get_config()
    setup_logging(config)
    descriptor = _load_descriptor(source, properties=parse_properties(properties))

    if output is None:
        renderer = ScriptRenderer(indent=config.render.indent, trailing_newline=config.render.trailing_newline)
        typer.echo(renderer.render(descriptor), nl=False)
        return
    if DescriptorFormat.from_key(output.name) != DescriptorFormat.KOTLIN_DSL:
        console.print("[red]Output must be a Kotlin DSL script; use 'export' for JSON[/red]")
        raise typer.Exit(1)
    _write_descriptor(descriptor, output)


@app.command()
def export(
    script: Path = script_argument,
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Destination .json file (prints to stdout when omitted)",
    ),
    properties: Optional[List[str]] = property_option,
) -> None:
    """Export a build script as a JSON descriptor."""
    setup_logging(get_config())
    descriptor = _load_descriptor(script, properties=parse_properties(properties))

    if output is None:
        typer.echo(descriptor.model_dump_json(indent=2))
        return
    if DescriptorFormat.from_key(output.name) != DescriptorFormat.JSON:
        console.print("[red]Output must be a .json file[/red]")
        raise typer.Exit(1)
    _write_descriptor(descriptor, output)


@app.command()
def init(
    application_id: str = typer.Argument(..., help="Application ID, e.g. com.example.myapp"),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Android project directory (defaults to the configured storage path)",
    ),
    module: str = typer.Option("app", "--module", "-m", help="Module directory inside the project"),
    version_name: str = typer.Option("1.0", "--version-name", help="Initial version name"),
    version_code: int = typer.Option(1, "--version-code", help="Initial version code"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing build script"),
) -> None:
    """Create a module build script from the framework application template."""
    cfg = get_config()
    setup_logging(cfg)
    output_dir = output_dir or cfg.storage.base_path

    console.print(Panel.fit(
        f"[bold blue]droidspec init[/bold blue]\n{application_id} → {output_dir / module}",
        border_style="blue",
    ))

    service = ScaffoldService(
        LocalStorageBackend(output_dir),
        renderer=ScriptRenderer(indent=cfg.render.indent, trailing_newline=cfg.render.trailing_newline),
    )
    result = asyncio.run(service.scaffold(ScaffoldInput(
        application_id=application_id,
        version_name=version_name,
        version_code=version_code,
        module_dir=module,
        overwrite=overwrite,
    )))

    if not result.success or result.data is None:
        console.print(f"[red]✗ {escape(result.error or '')}[/red]")
        for issue in result.metadata.get("issues", []):
            console.print(f"  {escape(issue)}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Wrote {output_dir / result.data.script_key}")
    if result.data.rules_key:
        console.print(f"[green]✓[/green] Wrote {output_dir / result.data.rules_key}")

    report = ValidationService(cfg.validation).validate(result.data.descriptor)
    for issue in report.issues:
        console.print(f"[yellow]note:[/yellow] {escape(str(issue))}")


@app.command()
def config() -> None:
    """Show the effective configuration."""
    cfg = get_config()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", cfg.log_level)
    table.add_row("Log Format", cfg.log_format)
    table.add_row("Strict Validation", str(cfg.validation.strict))
    table.add_row("Max Known SDK", str(cfg.validation.max_known_sdk))
    table.add_row("Debug-Signed Release", "warning" if cfg.validation.allow_debug_release_signing else "error")
    table.add_row("Implicit Signing Configs", ", ".join(cfg.validation.implicit_signing_configs))
    table.add_row("Runtime-Required Paths", str(len(cfg.validation.runtime_required_paths)))
    table.add_row("Indent", str(cfg.render.indent))
    table.add_row("Storage Path", str(cfg.storage.base_path))

    console.print(table)

    console.print("\n[dim]Configure via environment variables:[/dim]")
    console.print("  DROIDSPEC_LOG_LEVEL, DROIDSPEC_LOG_FORMAT, DROIDSPEC_STRICT, DROIDSPEC_MAX_KNOWN_SDK")
    console.print("  DROIDSPEC_ALLOW_DEBUG_RELEASE_SIGNING, DROIDSPEC_INDENT, DROIDSPEC_BASE_PATH")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
