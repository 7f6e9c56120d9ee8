"""Unit tests for the CLI: Typer command registration and basic behavior.

Commands run through ``typer.testing.CliRunner`` with settings and the
orchestrator substituted, so no git process or network access happens.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from prismdeploy.cli import common
from prismdeploy.cli.app import app
from prismdeploy.cli.commands import build as build_module
from prismdeploy.core.orchestrator import DeploymentOrchestrator
from prismdeploy.providers.git import GitResult

runner = CliRunner(env={"COLUMNS": "200"})

COMMANDS = (
    "deploy",
    "validate",
    "rollback",
    "list",
    "test-connection",
    "generate-manifest",
    "build-manifest",
    "check-sizes",
    "build",
    "status",
)


@pytest.fixture
def cli(monkeypatch, settings, fake_git, no_sleep, make_transport):
    """Patch the CLI to use test settings and a fake-backed orchestrator.

    Returns a function that swaps in another git fake or transport.
    """
    monkeypatch.setattr(common, "load_settings", lambda: settings)
    monkeypatch.setattr(common, "setup_logging", lambda settings, verbose=False: None)

    def install(git=fake_git, transport=None):
        transport = transport or make_transport(files={".nojekyll": b""})
        orchestrator = DeploymentOrchestrator(
            settings,
            provider_kwargs={"git": git, "sleep": no_sleep, "transport": transport},
            transport=transport,
            sleep=no_sleep,
        )
        monkeypatch.setattr(common, "build_orchestrator", lambda settings: orchestrator)
        return orchestrator

    install()
    return install


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    """The CLI must register all expected commands and show help."""

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        # Typer's no_args_is_help may exit with 0 or 2 depending on version
        assert result.exit_code in (0, 2)
        assert "Usage" in result.output

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in COMMANDS:
            assert command in result.output

    @pytest.mark.parametrize("command", COMMANDS)
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# Test: deploy
# ---------------------------------------------------------------------------


class TestDeployCommand:
    def test_dry_run(self, cli, fake_git, assets_dir: Path):
        result = runner.invoke(
            app, ["deploy", "--dry-run", "-r", "acme/cdn", "-a", str(assets_dir)]
        )
        assert result.exit_code == 0, result.output
        assert "Dry run" in result.output
        assert "dry-run" in result.output
        assert fake_git.calls == []

    def test_deploy_and_validate(self, cli, fake_git, assets_dir: Path):
        result = runner.invoke(
            app,
            [
                "deploy",
                "-r", "acme/cdn",
                "-a", str(assets_dir),
                "--custom-domain", "cdn.example.com",
                "--skip-slow",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Deployment successful" in result.output
        assert "Validation passed" in result.output
        assert "push" in fake_git.commands()

    def test_missing_repository(self, cli, assets_dir: Path):
        result = runner.invoke(app, ["deploy", "-a", str(assets_dir)])
        assert result.exit_code == 1
        assert "Deployment failed" in result.output
        assert "repository" in result.output

    def test_push_failure_prints_logs(self, cli, make_git, assets_dir: Path):
        cli(git=make_git(push=[GitResult(returncode=1, stderr="denied")]))
        result = runner.invoke(app, ["deploy", "-r", "acme/cdn", "-a", str(assets_dir)])
        assert result.exit_code == 1
        assert "Logs:" in result.output
        assert "Cleaned up temporary files" in result.output

    def test_report_dir(self, cli, assets_dir: Path, tmp_path: Path):
        reports = tmp_path / "reports"
        result = runner.invoke(
            app,
            [
                "deploy", "--dry-run", "-r", "acme/cdn",
                "-a", str(assets_dir), "--report-dir", str(reports),
            ],
        )
        assert result.exit_code == 0, result.output
        assert len(list(reports.glob("deploy-dry-run-*.json"))) == 1


# ---------------------------------------------------------------------------
# Test: validate / status
# ---------------------------------------------------------------------------


class TestValidateCommand:
    def test_passes(self, cli):
        result = runner.invoke(app, ["validate", "https://cdn.example.com", "--skip-slow"])
        assert result.exit_code == 0, result.output
        assert "Validation passed" in result.output

    def test_strict_fails(self, cli):
        result = runner.invoke(app, ["validate", "https://cdn.example.com", "--strict"])
        assert result.exit_code == 1
        assert "Validation failed" in result.output


class TestStatusCommand:
    def test_reachable(self, cli):
        result = runner.invoke(app, ["status", "https://cdn.example.com"])
        assert result.exit_code == 0, result.output
        assert "abcd1234" in result.output

    def test_unreachable(self, cli, make_transport):
        cli(transport=make_transport(errors={"": httpx.ConnectError("refused")}))
        result = runner.invoke(app, ["status", "https://cdn.example.com"])
        assert result.exit_code == 1
        assert "Unreachable" in result.output


# ---------------------------------------------------------------------------
# Test: history commands
# ---------------------------------------------------------------------------


@pytest.fixture
def history_git(make_git, git_log):
    return make_git(
        log=[
            git_log(
                ("c2", "2024-03-02T00:00:00+00:00", "Deploy deploy_2_bbbbbb"),
                ("c1", "2024-03-01T00:00:00+00:00", "Deploy deploy_1_aaaaaa"),
            )
        ]
    )


class TestHistoryCommands:
    def test_list(self, cli, history_git):
        cli(git=history_git)
        result = runner.invoke(app, ["list", "-r", "acme/cdn"])
        assert result.exit_code == 0, result.output
        assert "deploy_2_bbbbbb" in result.output
        assert "deploy_1_aaaaaa" in result.output

    def test_list_empty(self, cli, make_git):
        cli(git=make_git(clone=[GitResult(returncode=128, stderr="no branch")]))
        result = runner.invoke(app, ["list", "-r", "acme/cdn"])
        assert result.exit_code == 0
        assert "No deployments found." in result.output

    def test_rollback(self, cli, history_git):
        cli(git=history_git)
        result = runner.invoke(app, ["rollback", "deploy_2_bbbbbb", "-r", "acme/cdn"])
        assert result.exit_code == 0, result.output
        assert "Rollback successful" in result.output
        assert history_git.args_for("push") == [
            ["push", "--force", "origin", "c1:refs/heads/gh-pages"]
        ]

    def test_rollback_without_predecessor(self, cli, history_git):
        cli(git=history_git)
        result = runner.invoke(app, ["rollback", "deploy_1_aaaaaa", "-r", "acme/cdn"])
        assert result.exit_code == 1
        assert "Rollback failed" in result.output

    def test_connection(self, cli):
        result = runner.invoke(app, ["test-connection", "-r", "acme/cdn"])
        assert result.exit_code == 0
        assert "Connection successful!" in result.output

    def test_connection_refused(self, cli, make_git):
        cli(git=make_git(**{"ls-remote": [GitResult(returncode=128)]}))
        result = runner.invoke(app, ["test-connection", "-r", "acme/cdn"])
        assert result.exit_code == 1
        assert "Connection failed." in result.output


# ---------------------------------------------------------------------------
# Test: manifest and size commands
# ---------------------------------------------------------------------------


class TestManifestCommands:
    def test_build_manifest(self, cli, assets_dir: Path):
        result = runner.invoke(app, ["build-manifest", "-a", str(assets_dir)])
        assert result.exit_code == 0, result.output
        manifest = json.loads((assets_dir / "manifest.json").read_text())
        assert manifest["assets"]["core"]["filename"] == "core.min.js"
        assert (assets_dir / "integrity.json").exists()

    def test_build_manifest_twice_ignores_generated_files(self, cli, assets_dir: Path):
        runner.invoke(app, ["build-manifest", "-a", str(assets_dir)])
        result = runner.invoke(app, ["build-manifest", "-a", str(assets_dir)])
        assert result.exit_code == 0, result.output
        integrity = json.loads((assets_dir / "integrity.json").read_text())
        assert "manifest.json" not in integrity

    def test_build_manifest_missing_dir(self, cli, tmp_path: Path):
        result = runner.invoke(app, ["build-manifest", "-a", str(tmp_path / "nope")])
        assert result.exit_code == 1
        assert "Manifest build failed" in result.output

    def test_generate_manifest(self, cli, tmp_path: Path):
        plugin_dir = tmp_path / "plugins" / "chart"
        plugin_dir.mkdir(parents=True)
        (plugin_dir / "package.json").write_text(
            json.dumps(
                {
                    "name": "chart-plugin",
                    "version": "2.0.0",
                    "main": "index.js",
                    "keywords": ["dataprism-plugin"],
                }
            )
        )
        (plugin_dir / "index.js").write_text("export default class Chart {}\n")
        output = tmp_path / "out" / "manifest.json"

        result = runner.invoke(
            app,
            [
                "generate-manifest",
                "-d", str(tmp_path / "plugins"),
                "-o", str(output),
                "-b", "https://cdn.example.com/plugins",
            ],
        )
        assert result.exit_code == 0, result.output
        manifest = json.loads(output.read_text())
        assert [p["name"] for p in manifest["plugins"]] == ["chart-plugin"]

    def test_check_sizes_ok(self, cli, assets_dir: Path):
        result = runner.invoke(app, ["check-sizes", "-a", str(assets_dir)])
        assert result.exit_code == 0
        assert "All bundles are within size limits." in result.output

    def test_check_sizes_over_limit(self, cli, assets_dir: Path):
        (assets_dir / "core.min.js").write_bytes(b"x" * (3 * 1024 * 1024))
        result = runner.invoke(app, ["check-sizes", "-a", str(assets_dir)])
        assert result.exit_code == 1
        assert "Size limit exceeded" in result.output

        result = runner.invoke(app, ["check-sizes", "-a", str(assets_dir), "--no-fail"])
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# Test: build
# ---------------------------------------------------------------------------


class TestBuildCommand:
    def test_build_environment(self, monkeypatch):
        monkeypatch.setenv("PATH_MARKER", "kept")
        env = build_module.build_environment("netlify", "gzip", "semver", False)
        assert env["CDN_TARGET"] == "netlify"
        assert env["CDN_COMPRESSION"] == "gzip"
        assert env["CDN_VERSIONING"] == "semver"
        assert env["CDN_WASM_OPTIMIZATION"] == "false"
        assert env["PATH_MARKER"] == "kept"

    def test_runs_npm_script(self, cli, monkeypatch):
        calls = []

        def fake_run(command, env, check):
            calls.append((command, env["CDN_TARGET"]))
            return subprocess.CompletedProcess(command, 0)

        monkeypatch.setattr(build_module.subprocess, "run", fake_run)
        result = runner.invoke(app, ["build", "-t", "vercel"])
        assert result.exit_code == 0, result.output
        assert calls == [(["npm", "run", "build:cdn"], "vercel")]

    def test_build_failure_exit_code(self, cli, monkeypatch):
        monkeypatch.setattr(
            build_module.subprocess,
            "run",
            lambda command, env, check: subprocess.CompletedProcess(command, 3),
        )
        result = runner.invoke(app, ["build"])
        assert result.exit_code == 3

    def test_rejects_unknown_compression(self, cli):
        result = runner.invoke(app, ["build", "--compression", "zip"])
        assert result.exit_code == 1
        assert "Unknown compression" in result.output
