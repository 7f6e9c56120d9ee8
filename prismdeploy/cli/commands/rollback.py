"""``prismdeploy rollback DEPLOYMENT_ID``: restore the state before a deployment."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from prismdeploy.cli import common
from prismdeploy.cli.render import DeployRenderer
from prismdeploy.core.orchestrator import DeployOptions

console = Console()


def rollback_cmd(
    deployment_id: str = typer.Argument(..., help="Deployment to roll back from."),
    target: str = typer.Option(None, "--target", "-t", help="Deployment target."),
    repository: str = typer.Option(
        None, "--repository", "-r", help="GitHub repository (owner/repo)."
    ),
    branch: str = typer.Option(None, "--branch", "-b", help="Published branch."),
    config_file: Path = typer.Option(
        None, "--config", "-c", help="JSON deployment configuration file."
    ),
    preserve_assets: bool = typer.Option(
        False, "--preserve-assets", help="Ask the provider to keep current assets."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """Roll back to the deployment published before DEPLOYMENT_ID."""
    settings = common.load_settings()
    common.setup_logging(settings, verbose)

    options = DeployOptions(
        target=target, repository=repository, branch=branch, config_file=config_file
    )
    orchestrator = common.build_orchestrator(settings)
    result = common.run_async(
        orchestrator.rollback(deployment_id, options, preserve_assets=preserve_assets),
        console=console,
        verbose=verbose,
        action="Rollback failed",
    )

    renderer = DeployRenderer(console=console)
    renderer.print_logs(result)
    if not result.success:
        console.print(f"[bold red]Rollback failed:[/bold red] {result.error}")
        raise typer.Exit(code=1)
    console.print(
        Panel(
            f"[bold]Rolled back from:[/bold] {deployment_id}\n[bold]URL:[/bold] {result.url}",
            title="[bold green]Rollback successful[/bold green]",
            border_style="green",
        )
    )
