"""``prismdeploy validate URL``: run the validation battery against a live deployment."""

from __future__ import annotations

import typer
from rich.console import Console

from prismdeploy.cli import common
from prismdeploy.cli.render import DeployRenderer

console = Console()


def validate_cmd(
    url: str = typer.Argument(..., help="Base URL of the deployment to validate."),
    strict: bool = typer.Option(
        False, "--strict", help="Any non-passed check fails the validation."
    ),
    timeout: float = typer.Option(
        None, "--timeout", help="Per-request timeout in seconds."
    ),
    skip_slow: bool = typer.Option(
        False, "--skip-slow", help="Skip slow performance checks."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output."),
) -> None:
    """Validate a CDN deployment; exits 1 when validation fails."""
    settings = common.load_settings()
    common.setup_logging(settings, verbose)

    console.print(f"[bold cyan]Validating CDN deployment:[/bold cyan] {url}")
    orchestrator = common.build_orchestrator(settings)
    result = common.run_async(
        orchestrator.validate(url, strict=strict, timeout=timeout, skip_slow=skip_slow),
        console=console,
        verbose=verbose,
        action="Validation failed",
    )
    DeployRenderer(console=console).print_validation(result)
    if not result.success:
        raise typer.Exit(code=1)
