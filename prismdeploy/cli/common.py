"""Helpers shared by the CLI commands.

Commands look these up through the module (``common.build_orchestrator``)
so tests can substitute a stubbed orchestrator.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

import httpx
import typer
from rich.console import Console
from rich.logging import RichHandler

from prismdeploy.config import DeploySettings
from prismdeploy.core.errors import DeploymentFailed, PrismDeployError
from prismdeploy.core.orchestrator import DeploymentOrchestrator

T = TypeVar("T")


def load_settings() -> DeploySettings:
    return DeploySettings()


def setup_logging(settings: DeploySettings, verbose: bool = False) -> None:
    """Route the ``prismdeploy`` loggers through a RichHandler.

    ``--verbose`` forces DEBUG; otherwise ``PRISMDEPLOY_LOG_LEVEL`` applies.
    """
    level = logging.DEBUG if verbose else settings.log_level.upper()
    root = logging.getLogger("prismdeploy")
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    root.addHandler(
        RichHandler(show_path=verbose, rich_tracebacks=True, markup=False)
    )
    root.setLevel(level)


def build_orchestrator(settings: DeploySettings) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(settings)


def run_async(
    coro: Coroutine[Any, Any, T],
    *,
    console: Console,
    verbose: bool = False,
    action: str = "Error",
) -> T:
    """Run *coro* to completion, turning pipeline errors into exit code 1.

    Deploy logs carried by ``DeploymentFailed`` are printed before the
    message; ``verbose`` adds the traceback.
    """
    try:
        return asyncio.run(coro)
    except (PrismDeployError, httpx.HTTPError) as exc:
        if isinstance(exc, DeploymentFailed) and exc.result.logs:
            console.print("\n[bold]Logs:[/bold]")
            for line in exc.result.logs:
                console.print(f"  [dim]{line}[/dim]")
        console.print(f"\n[bold red]{action}:[/bold red] {exc}")
        if verbose:
            console.print_exception()
        raise typer.Exit(code=1) from exc
