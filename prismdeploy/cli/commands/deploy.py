"""``prismdeploy deploy``: scan, build the manifest, publish and validate.

Exit code follows the provider result.  Post-deploy validation problems
are printed but do not change the exit code.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from prismdeploy.cli import common
from prismdeploy.cli.render import DeployRenderer
from prismdeploy.core.orchestrator import DeployOptions

console = Console()


def deploy_cmd(
    target: str = typer.Option(
        None,
        "--target",
        "-t",
        help="Deployment target (github-pages, cloudflare-pages, netlify, vercel).",
    ),
    environment: str = typer.Option(
        None,
        "--environment",
        "-e",
        help="Environment (development, staging, production).",
    ),
    repository: str = typer.Option(
        None, "--repository", "-r", help="GitHub repository (owner/repo)."
    ),
    branch: str = typer.Option(None, "--branch", "-b", help="Git branch to publish to."),
    custom_domain: str = typer.Option(
        None, "--custom-domain", "-d", help="Custom domain name (written to CNAME)."
    ),
    assets_dir: Path = typer.Option(
        None, "--assets-dir", "-a", help="Built assets directory [default: cdn/dist]."
    ),
    config_file: Path = typer.Option(
        None, "--config", "-c", help="JSON deployment configuration file."
    ),
    base_url: str = typer.Option(None, "--base-url", help="Base URL for assets."),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Preview the deployment without publishing."
    ),
    no_validate: bool = typer.Option(
        False, "--no-validate", help="Skip post-deploy validation."
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Treat validation warnings as failures."
    ),
    timeout: float = typer.Option(
        None, "--timeout", help="Validation request timeout in seconds."
    ),
    skip_slow: bool = typer.Option(
        False, "--skip-slow", help="Skip slow performance checks."
    ),
    report_dir: Path = typer.Option(
        None, "--report-dir", help="Write a JSON run report into this directory."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
) -> None:
    """Deploy a built CDN bundle."""
    settings = common.load_settings()
    common.setup_logging(settings, verbose)

    options = DeployOptions(
        target=target,
        environment=environment,
        repository=repository,
        branch=branch,
        custom_domain=custom_domain,
        base_url=base_url,
        assets_dir=assets_dir,
        config_file=config_file,
        dry_run=dry_run,
        validate_after=not no_validate,
        strict=strict,
        timeout=timeout,
        skip_slow=skip_slow,
        report_dir=report_dir,
    )

    if dry_run:
        console.print("[bold cyan]Dry run: nothing will be published.[/bold cyan]")
    orchestrator = common.build_orchestrator(settings)
    outcome = common.run_async(
        orchestrator.deploy(options),
        console=console,
        verbose=verbose,
        action="Deployment failed",
    )
    DeployRenderer(console=console).print_outcome(outcome)
