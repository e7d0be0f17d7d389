"""CLI for addon-bundle."""

import os
from pathlib import Path
from typing import List, Optional, Sequence

import typer
from rich.console import Console
from rich.table import Table

from .catalog import AddonCatalog, load_catalogs, menu_entries, select_catalogs
from .config import BuilderSettings, apply_overrides, load_settings
from .constants import ENV_CONFIG, ENV_SELECTION, TOOL_VERSION
from .errors import ConfigError, ToolMissingError, WorkspaceLockedError
from .logs import configure_logging
from .models import RunSummary
from .orchestrator import run_build
from .verify import verify_bundle


app = typer.Typer(help="""\
Package container images and Helm charts into addon bundles for airgapped
Kubernetes clusters. Bundles use the same images/, charts/, manifests/
layout as the base airgap bundle.""")

console = Console()


def _load_settings_or_exit(config: Optional[Path]) -> BuilderSettings:
    config_path = config
    if config_path is None and os.environ.get(ENV_CONFIG):
        config_path = Path(os.environ[ENV_CONFIG])
    try:
        return load_settings(config_path)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


def _load_catalogs_or_exit(path: Optional[Path]) -> List[AddonCatalog]:
    try:
        return load_catalogs(path)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


def _prompt_selection(catalogs: Sequence[AddonCatalog]) -> str:
    """Show the numbered menu and read a choice."""
    console.print("[bold]=== Addon Bundle Creator ===[/bold]")
    console.print()
    console.print("Creates bundles with images + charts/manifests together")
    console.print()
    for i, catalog in enumerate(catalogs, start=1):
        console.print(f"{i}. {catalog.title} - {catalog.description}")
    keys = menu_entries(catalogs)
    console.print(f"{keys[-1]}. All bundles")
    console.print()
    return typer.prompt(f"Choice ({keys[0]}-{keys[-1]})")


def display_summary(summary: RunSummary) -> None:
    """Print the end-of-run summary."""
    console.print()
    console.print("[bold]=== Summary ===[/bold]")

    table = Table(title=f"Bundle version {summary.bundle_version}")
    table.add_column("Addon", style="cyan")
    table.add_column("Images")
    table.add_column("Chart")
    table.add_column("Archive")

    for report in summary.reports:
        if report.total == 0:
            images = "[dim]-[/dim]"
        elif report.failed:
            images = f"[yellow]{report.success_count}/{report.total}[/yellow]"
        else:
            images = f"[green]{report.success_count}/{report.total}[/green]"

        if report.chart is None:
            chart = "[dim]-[/dim]"
        elif report.chart_included:
            chart = "[green]✓[/green]"
        else:
            chart = f"[yellow]skipped[/yellow] [dim]({report.chart.reason})[/dim]"

        if report.archive is not None:
            archive = report.archive.name
        else:
            archive = f"[red]✗ {report.error or 'not created'}[/red]"

        table.add_row(report.addon, images, chart, archive)
    console.print(table)

    for report in summary.reports:
        for failed in report.failed:
            console.print(f"  [red]•[/red] {report.addon}: {failed.source_ref} [dim]({failed.reason})[/dim]")

    console.print(f"Versioned archives created: {len(summary.archives)}")
    console.print(f"Latest archives created: {len(summary.latest_archives)}")
    if summary.leftover_staging:
        console.print(f"[yellow]Incomplete staging directories ({len(summary.leftover_staging)}):[/yellow]")
        for path in summary.leftover_staging:
            console.print(f"  {path}")
    if summary.instructions:
        console.print(f"\nSee {summary.instructions.name} for usage instructions")


@app.command()
def build(
    selection: Optional[str] = typer.Argument(
        None, help="Menu number or addon name (velero, local-path, openebs, all)"
    ),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Where bundles are written"),
    bundle_version: Optional[str] = typer.Option(None, "--version", help="Bundle version (default: BUNDLE_VERSION or YYYY.MM.0)"),
    catalog: Optional[Path] = typer.Option(None, "--catalog", help="Catalog YAML replacing the built-in catalogs"),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings YAML file"),
    no_latest: bool = typer.Option(False, "--no-latest", help="Do not write the -latest copy"),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0.1, help="Timeout in seconds for each external command"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Build addon bundles.

    The selection comes from the argument, then ADDON_BUNDLE_SELECTION,
    then an interactive menu.

    Examples:
        # Interactive menu
        addon-bundle build

        # Build everything with a fixed version
        BUNDLE_VERSION=2025.01.0 addon-bundle build all
    """
    configure_logging(verbose)

    settings = _load_settings_or_exit(config)
    overrides = {}
    if output_dir is not None:
        overrides["output_dir"] = output_dir
    if bundle_version is not None:
        overrides["bundle_version"] = bundle_version
    if catalog is not None:
        overrides["catalog_path"] = catalog
    if no_latest:
        overrides["create_latest"] = False
    if timeout is not None:
        overrides["command_timeout"] = timeout
    try:
        settings = apply_overrides(settings, overrides)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)

    catalogs = _load_catalogs_or_exit(settings.catalog_path)

    choice = selection or os.environ.get(ENV_SELECTION) or _prompt_selection(catalogs)
    try:
        selected = select_catalogs(catalogs, choice)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)

    try:
        summary = run_build(selected, settings, all_catalogs=catalogs)
    except (ToolMissingError, ConfigError, WorkspaceLockedError) as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)

    display_summary(summary)


@app.command(name="list")
def list_addons(
    catalog: Optional[Path] = typer.Option(None, "--catalog", help="Catalog YAML replacing the built-in catalogs"),
    images: bool = typer.Option(False, "--images", "-i", help="List every image reference"),
):
    """Show the addons that can be built."""
    catalogs = _load_catalogs_or_exit(catalog)

    table = Table(title=f"Addons ({len(catalogs)})")
    table.add_column("#", justify="right")
    table.add_column("Addon", style="cyan")
    table.add_column("Images", justify="right")
    table.add_column("Chart")
    table.add_column("Manifest")
    for i, c in enumerate(catalogs, start=1):
        chart = f"{c.chart.reference} {c.chart.version}" if c.chart else "[dim]-[/dim]"
        manifest = f"{c.manifest.name}.yaml" if c.manifest else "[dim]-[/dim]"
        table.add_row(str(i), c.name, str(len(c.images)), chart, manifest)
    console.print(table)

    if images:
        for c in catalogs:
            console.print(f"\n[bold]{c.name}[/bold]")
            for image in c.images:
                console.print(f"  {image.artifact_name}  [dim]{image.source_ref}[/dim]")


@app.command()
def verify(
    archives: List[Path] = typer.Argument(..., help="Bundle archives (.tar.gz) to check"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every artifact"),
):
    """Check that bundle archives are complete and their OCI layouts intact."""
    configure_logging(verbose)

    all_ok = True
    for archive in archives:
        report = verify_bundle(archive)
        all_ok = all_ok and report.ok

        if report.ok:
            version = report.version.bundle_version if report.version else "?"
            console.print(
                f"[green]✓[/green] {archive.name}: version {version}, "
                f"{report.count('images')} images, {report.count('charts')} charts, "
                f"{len(report.manifests)} manifests"
            )
        else:
            console.print(f"[red]✗[/red] {archive.name}")
            for problem in report.problems:
                console.print(f"  [red]•[/red] {problem}")

        for artifact in report.artifacts:
            if not artifact.ok:
                for problem in artifact.problems:
                    console.print(f"  [red]•[/red] {artifact.path}: {problem}")
            elif verbose:
                console.print(f"  [dim]✓ {artifact.path}[/dim]")

    if not all_ok:
        raise typer.Exit(1)


@app.command()
def version():
    """Show the addon-bundle version."""
    console.print(f"addon-bundle {TOOL_VERSION}")


def main():
    app()
