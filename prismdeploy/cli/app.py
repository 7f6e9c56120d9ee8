"""Main Typer application: imports and registers all CLI commands.

Entry point: ``prismdeploy`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from prismdeploy.cli.commands.build import build_cmd
from prismdeploy.cli.commands.connection import test_connection_cmd
from prismdeploy.cli.commands.deploy import deploy_cmd
from prismdeploy.cli.commands.list_cmd import list_cmd
from prismdeploy.cli.commands.manifest import (
    build_manifest_cmd,
    check_sizes_cmd,
    generate_manifest_cmd,
)
from prismdeploy.cli.commands.rollback import rollback_cmd
from prismdeploy.cli.commands.status import status_cmd
from prismdeploy.cli.commands.validate import validate_cmd

app = typer.Typer(
    name="prismdeploy",
    help="prismdeploy: CDN deployment and validation for WebAssembly analytics bundles.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="deploy", help="Deploy built assets to the CDN.")(deploy_cmd)
app.command(name="validate", help="Validate a live CDN deployment.")(validate_cmd)
app.command(name="rollback", help="Roll back to the previous deployment.")(rollback_cmd)
app.command(name="list", help="List recent deployments.")(list_cmd)
app.command(name="test-connection", help="Test the deployment provider connection.")(
    test_connection_cmd
)
app.command(name="generate-manifest", help="Generate the plugin manifest.")(
    generate_manifest_cmd
)
app.command(name="build-manifest", help="Build the asset manifest for a bundle.")(
    build_manifest_cmd
)
app.command(name="check-sizes", help="Check bundle sizes against limits.")(check_sizes_cmd)
app.command(name="build", help="Build CDN assets with the npm build script.")(build_cmd)
app.command(name="status", help="Check CDN status and health.")(status_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
