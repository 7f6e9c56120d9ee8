"""prismdeploy CLI: Typer-based command-line interface.

Provides the ``prismdeploy`` command with subcommands for deploying a
built CDN bundle, validating a live deployment, rolling back, listing
history, and generating or checking manifests.

All output uses Rich for formatted terminal display.
"""
