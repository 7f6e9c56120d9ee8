"""``prismdeploy status URL``: quick health probe of a deployment."""

from __future__ import annotations

import typer
from rich.console import Console

from prismdeploy.cli import common
from prismdeploy.cli.render import DeployRenderer

console = Console()


def status_cmd(
    url: str = typer.Argument(..., help="Deployment URL to probe."),
    timeout: float = typer.Option(10.0, "--timeout", help="Request timeout in seconds."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """Check CDN status and health; exits 1 when the URL is not reachable."""
    settings = common.load_settings()
    common.setup_logging(settings, verbose)

    orchestrator = common.build_orchestrator(settings)
    report = common.run_async(
        orchestrator.status(url, timeout=timeout),
        console=console,
        verbose=verbose,
        action="Status check failed",
    )
    DeployRenderer(console=console).print_status(report)
    if not report.reachable:
        raise typer.Exit(code=1)
