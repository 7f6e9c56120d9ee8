"""``prismdeploy build``: run the external CDN build with the CDN_* knobs set.

The build itself belongs to the JavaScript toolchain; this command only
exports the environment it reads and optionally size-checks the output.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

import typer
from rich.console import Console

from prismdeploy.cli import common
from prismdeploy.cli.commands.manifest import SIZE_CHECKED_SUFFIXES
from prismdeploy.cli.render import DeployRenderer
from prismdeploy.core.errors import PrismDeployError
from prismdeploy.core.manifest_builder import check_sizes
from prismdeploy.core.scanner import scan_files

logger = logging.getLogger(__name__)

console = Console()

COMPRESSION_CHOICES = ("gzip", "brotli", "both")
VERSIONING_CHOICES = ("hash", "timestamp", "semver")


def build_environment(
    target: str, compression: str, versioning: str, wasm_optimization: bool
) -> dict[str, str]:
    """Copy of ``os.environ`` with the CDN build variables applied."""
    env = dict(os.environ)
    env.update(
        {
            "CDN_TARGET": target,
            "CDN_COMPRESSION": compression,
            "CDN_VERSIONING": versioning,
            "CDN_WASM_OPTIMIZATION": "true" if wasm_optimization else "false",
        }
    )
    return env


def build_cmd(
    target: str = typer.Option("github-pages", "--target", "-t", help="CDN target."),
    compression: str = typer.Option(
        "both", "--compression", help="Compression type (gzip, brotli, both)."
    ),
    versioning: str = typer.Option(
        "hash", "--versioning", help="Asset versioning (hash, timestamp, semver)."
    ),
    wasm_optimization: bool = typer.Option(
        True, "--wasm-optimization/--no-wasm-optimization", help="Optimize WASM output."
    ),
    script: str = typer.Option("build:cdn", "--script", help="npm script to run."),
    check: bool = typer.Option(
        False, "--check-sizes", help="Check bundle sizes after a successful build."
    ),
    assets_dir: Path = typer.Option(
        Path("cdn/dist"), "--assets-dir", "-a", help="Build output directory."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """Build CDN assets via the project's npm build script."""
    settings = common.load_settings()
    common.setup_logging(settings, verbose)

    if compression not in COMPRESSION_CHOICES:
        console.print(f"[bold red]Unknown compression:[/bold red] {compression}")
        raise typer.Exit(code=1)
    if versioning not in VERSIONING_CHOICES:
        console.print(f"[bold red]Unknown versioning:[/bold red] {versioning}")
        raise typer.Exit(code=1)

    console.print(f"[bold cyan]Building CDN assets for {target}...[/bold cyan]")
    command = ["npm", "run", script]
    logger.debug("Running %s", " ".join(command))
    try:
        completed = subprocess.run(
            command,
            env=build_environment(target, compression, versioning, wasm_optimization),
            check=False,
        )
    except OSError as exc:
        console.print(f"[bold red]Could not start build:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if completed.returncode != 0:
        console.print(f"[bold red]Build failed with code {completed.returncode}[/bold red]")
        raise typer.Exit(code=completed.returncode)
    console.print("[bold green]CDN build completed![/bold green]")

    if check:
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
        if issues:
            raise typer.Exit(code=1)
