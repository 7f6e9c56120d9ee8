"""Manifest subcommands.

- ``generate-manifest``: discover plugins and write ``plugins/manifest.json``.
- ``build-manifest``: build ``manifest.json``/``integrity.json`` for a built bundle.
- ``check-sizes``: apply the bundle size table to a built bundle.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from prismdeploy.cli import common
from prismdeploy.cli.render import DeployRenderer
from prismdeploy.core.errors import PrismDeployError
from prismdeploy.core.manifest_builder import (
    GENERATED_FILES,
    ManifestBuilder,
    check_sizes,
    write_manifest,
)
from prismdeploy.core.plugin_manifest import PluginManifestGenerator
from prismdeploy.core.scanner import scan_files

console = Console()

SIZE_CHECKED_SUFFIXES = (".js", ".mjs", ".wasm")


def generate_manifest_cmd(
    plugin_dirs: list[Path] = typer.Option(
        [Path("packages/plugins")],
        "--plugin-dir",
        "-d",
        help="Plugin directory to scan (repeatable).",
    ),
    output: Path = typer.Option(
        Path("cdn/dist/plugins/manifest.json"), "--output", "-o", help="Output manifest file."
    ),
    base_url: str = typer.Option("", "--base-url", "-b", help="Base URL for plugins."),
    include_dev: bool = typer.Option(
        False, "--include-dev", help="Include development, test and example plugins."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """Generate the plugin manifest."""
    settings = common.load_settings()
    common.setup_logging(settings, verbose)

    console.print("[bold cyan]Generating plugin manifest...[/bold cyan]")
    generator = PluginManifestGenerator(plugin_dirs, base_url, include_dev=include_dev)
    try:
        manifest = generator.generate()
        path, compact = generator.write(manifest, output)
    except (PrismDeployError, OSError) as exc:
        console.print(f"[bold red]Plugin manifest generation failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    DeployRenderer(console=console).print_plugin_manifest(manifest)
    console.print(f"[green]Written:[/green] {path} and {compact}")


def build_manifest_cmd(
    assets_dir: Path = typer.Option(
        Path("cdn/dist"), "--assets-dir", "-a", help="Built assets directory."
    ),
    target: str = typer.Option(
        None, "--target", "-t", help="Deployment target [default: CDN_TARGET or github-pages]."
    ),
    base_url: str = typer.Option(None, "--base-url", help="Base URL for the _headers rules."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """Build manifest.json, integrity.json and host side files for a bundle."""
    settings = common.load_settings()
    common.setup_logging(settings, verbose)

    try:
        files = {
            f.path: f.content
            for f in scan_files(assets_dir)
            if f.path not in GENERATED_FILES
        }
        builder = ManifestBuilder(
            settings,
            target=target or settings.cdn_target or "github-pages",
            base_url=base_url or settings.cdn_base_url,
        )
        output = builder.build(files)
        written = write_manifest(output, assets_dir)
    except (PrismDeployError, OSError) as exc:
        console.print(f"[bold red]Manifest build failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    DeployRenderer(console=console).print_manifest(
        output.manifest, [str(issue) for issue in output.size_issues]
    )
    for path in written:
        console.print(f"  [dim]{path}[/dim]")


def check_sizes_cmd(
    assets_dir: Path = typer.Option(
        Path("cdn/dist"), "--assets-dir", "-a", help="Built assets directory."
    ),
    fail: bool = typer.Option(
        True, "--fail/--no-fail", help="Exit 1 when any limit is exceeded."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """Check bundle sizes against the per-file and total limits."""
    settings = common.load_settings()
    common.setup_logging(settings, verbose)

    try:
        files = [
            (f.path, f.size)
            for f in scan_files(assets_dir)
            if f.path.endswith(SIZE_CHECKED_SUFFIXES)
        ]
    except PrismDeployError as exc:
        console.print(f"[bold red]Size check failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    issues = [str(issue) for issue in check_sizes(files)]
    DeployRenderer(console=console).print_sizes(files, issues)
    if issues and fail:
        raise typer.Exit(code=1)
