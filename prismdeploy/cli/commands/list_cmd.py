"""``prismdeploy list``: show recent deployments from the provider's history."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from prismdeploy.cli import common
from prismdeploy.cli.render import DeployRenderer
from prismdeploy.core.orchestrator import DeployOptions

console = Console()


def list_cmd(
    target: str = typer.Option(None, "--target", "-t", help="Deployment target."),
    repository: str = typer.Option(
        None, "--repository", "-r", help="GitHub repository (owner/repo)."
    ),
    branch: str = typer.Option(None, "--branch", "-b", help="Published branch."),
    config_file: Path = typer.Option(
        None, "--config", "-c", help="JSON deployment configuration file."
    ),
    limit: int = typer.Option(10, "--limit", "-l", min=1, help="Number of deployments to show."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """List recent deployments, newest first."""
    settings = common.load_settings()
    common.setup_logging(settings, verbose)

    options = DeployOptions(
        target=target, repository=repository, branch=branch, config_file=config_file
    )
    orchestrator = common.build_orchestrator(settings)
    deployments = common.run_async(
        orchestrator.list_deployments(options, limit=limit),
        console=console,
        verbose=verbose,
    )
    DeployRenderer(console=console).print_deployments(deployments)
