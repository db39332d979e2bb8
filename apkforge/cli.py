"""
apkforge CLI.

Command-line interface for inspecting the variants and build tasks of a
project and running builds.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .core.config import get_config
from .core.exceptions import ApkForgeError
from .core.logging import setup_logging
from .models.project import AndroidProject

app = typer.Typer(
    name="apkforge",
    help="Android build variant resolution and build-graph construction",
    add_completion=False,
)

console = Console()

PROJECT_ARGUMENT = typer.Argument(
    ...,
    help="JSON description of the project",
    exists=True,
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"apkforge v{__version__}")
        raise typer.Exit()


def _fail(error: ApkForgeError) -> None:
    console.print(f"[bold red]✗ {error}[/bold red]")
    raise typer.Exit(1)


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
    """apkforge: variants, flavors and build tasks for Android projects."""


@app.command()
def variants(project_file: Path = PROJECT_ARGUMENT) -> None:
    """List the variants of a project."""
    from .orchestration import VariantManager

    setup_logging(get_config())
    try:
        project = AndroidProject.from_json_file(project_file)
        manager = VariantManager(project)
        table = Table(title=f"Variants of {project.name}")
        table.add_column("Variant", style="cyan")
        table.add_column("Type")
        table.add_column("Package")
        table.add_column("Signed")
        table.add_column("Directory", style="dim")

        for variant in manager.variants:
            signed = "[green]yes[/green]" if variant.is_signed else "[yellow]no[/yellow]"
            table.add_row(
                variant.name,
                variant.type.value,
                variant.config.package_name,
                signed,
                variant.dir_name,
            )
    except ApkForgeError as e:
        _fail(e)
        return

    console.print(table)


@app.command()
def tasks(
    project_file: Path = PROJECT_ARGUMENT,
    target: Optional[list[str]] = typer.Option(
        None,
        "--target",
        "-t",
        help="Only list the tasks needed by this task (repeatable)",
    ),
) -> None:
    """List build tasks in execution order."""
    from .orchestration import create_task_graph

    setup_logging(get_config())
    try:
        project = AndroidProject.from_json_file(project_file)
        graph = create_task_graph(project)
        ordered = graph.topological_order(target or None)
    except ApkForgeError as e:
        _fail(e)
        return

    table = Table(title=f"Tasks of {project.name}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Task", style="cyan")
    table.add_column("Depends on", style="dim")
    table.add_column("Description")

    for index, task in enumerate(ordered, start=1):
        table.add_row(str(index), task.name, ", ".join(task.depends_on), task.description)

    console.print(table)


@app.command()
def dependencies(project_file: Path = PROJECT_ARGUMENT) -> None:
    """Show the library dependencies of every variant."""
    from .orchestration import VariantManager, dependency_report

    setup_logging(get_config())
    try:
        project = AndroidProject.from_json_file(project_file)
        manager = VariantManager(project)
        for variant in manager.variants:
            lines = dependency_report(variant)
            console.print(f"[bold]{lines[0]}[/bold]")
            for line in lines[1:]:
                console.print(f"  {line}")
            console.print()
    except ApkForgeError as e:
        _fail(e)


@app.command()
def build(
    project_file: Path = PROJECT_ARGUMENT,
    target: Optional[list[str]] = typer.Option(
        None,
        "--target",
        "-t",
        help="Task to run (repeatable), assemble by default",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose logging and verbose tool output",
    ),
) -> None:
    """Run a build."""
    from .orchestration import BuildPipeline

    config = get_config()
    if verbose:
        config.log_level = "DEBUG"
        config.build.verbose_exec = True

    pipeline = BuildPipeline()
    console.print(Panel.fit(
        f"[bold blue]apkforge[/bold blue]\n{project_file.name} → {', '.join(target or ['assemble'])}",
        border_style="blue",
    ))

    try:
        run = pipeline.run(project_file, target or None)
    except ApkForgeError as e:
        _fail(e)
        return

    table = Table(title="Build Results")
    table.add_column("Task", style="cyan")
    table.add_column("Status")
    table.add_column("Duration", justify="right")

    for result in run.tasks:
        table.add_row(result.task_name, result.status.value, f"{result.duration_seconds:.2f}s")

    console.print(table)
    console.print(f"\n[bold green]✓ Build {run.run_id} completed[/bold green]")


@app.command()
def config() -> None:
    """Show the current configuration."""
    cfg = get_config()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", cfg.log_level)
    table.add_row("Android SDK", str(cfg.tools.android_sdk_root or "-"))
    table.add_row("Android NDK", str(cfg.tools.android_ndk_root or "-"))
    table.add_row("Build Tools", str(cfg.tools.build_tools_dir or "-"))
    table.add_row("Signer", cfg.tools.signer_path)
    table.add_row("Build Directory", str(cfg.build.build_dir))
    table.add_row("Archives Base Name", cfg.build.archives_base_name or "(project name)")
    table.add_row("Verbose Tools", str(cfg.build.verbose_exec))
    table.add_row("Debug Keystore", str(cfg.signing.debug_keystore))
    table.add_row("aapt No Compress", ", ".join(cfg.aapt.no_compress) or "-")
    table.add_row("dx Core Library", str(cfg.dex.core_library))

    console.print(table)

    console.print("\n[dim]Configure via environment variables:[/dim]")
    console.print("  APKFORGE_LOG_LEVEL, APKFORGE_BUILD_DIR, APKFORGE_BUILD_TOOLS, APKFORGE_VERBOSE_EXEC")
    console.print("  ANDROID_HOME, ANDROID_SDK_ROOT, ANDROID_NDK_ROOT")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
