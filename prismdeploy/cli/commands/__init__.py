"""Subcommand implementations registered by ``prismdeploy.cli.app``."""
