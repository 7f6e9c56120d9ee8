"""``prismdeploy test-connection``: cheap reachability and auth probe."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from prismdeploy.cli import common
from prismdeploy.core.orchestrator import DeployOptions

console = Console()


def test_connection_cmd(
    target: str = typer.Option(None, "--target", "-t", help="Deployment target."),
    repository: str = typer.Option(
        None, "--repository", "-r", help="GitHub repository (owner/repo)."
    ),
    config_file: Path = typer.Option(
        None, "--config", "-c", help="JSON deployment configuration file."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """Test the connection to the deployment provider."""
    settings = common.load_settings()
    common.setup_logging(settings, verbose)

    options = DeployOptions(target=target, repository=repository, config_file=config_file)
    orchestrator = common.build_orchestrator(settings)
    console.print(f"[bold cyan]Testing connection to {target or 'configured target'}...[/bold cyan]")
    ok = common.run_async(
        orchestrator.test_connection(options),
        console=console,
        verbose=verbose,
        action="Connection failed",
    )
    if not ok:
        console.print("[bold red]Connection failed.[/bold red]")
        raise typer.Exit(code=1)
    console.print("[bold green]Connection successful![/bold green]")
