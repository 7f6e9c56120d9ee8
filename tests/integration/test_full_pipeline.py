"""End-to-end integration tests: build output -> manifest -> publish -> validate.

The git runner below keeps the pushed tree in memory and an
``httpx.MockTransport`` serves it back the way GitHub Pages would,
applying the published ``_headers`` rules.  Validation therefore runs
against exactly what the deploy produced.
"""

from __future__ import annotations

import asyncio
import fnmatch
import json
from pathlib import Path

import httpx
import pytest

from prismdeploy.core.hasher import sri
from prismdeploy.core.orchestrator import DeploymentOrchestrator, DeployOptions
from prismdeploy.core.plugin_manifest import PluginManifestGenerator
from prismdeploy.models import CheckStatus, DeployPhase
from prismdeploy.providers.git import GitResult


class PublishingGit:
    """GitRunner whose ``push`` publishes the staged tree."""

    def __init__(self) -> None:
        self.commands: list[str] = []
        self.published: dict[str, bytes] = {}
        self._staged: dict[str, bytes] = {}

    async def __call__(self, args, *, cwd=None, timeout=120.0) -> GitResult:
        self.commands.append(args[0])
        if args[0] == "add":
            self._staged = {
                p.relative_to(cwd).as_posix(): p.read_bytes()
                for p in cwd.rglob("*")
                if p.is_file()
            }
        elif args[0] == "push":
            self.published = dict(self._staged)
        return GitResult(returncode=0)


def _header_rules(text: str) -> list[tuple[str, dict[str, str]]]:
    rules: list[tuple[str, dict[str, str]]] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        if line.startswith(" "):
            name, _, value = line.strip().partition(":")
            rules[-1][1][name.strip()] = value.strip()
        else:
            rules.append((line.strip(), {}))
    return rules


def pages_transport(git: PublishingGit) -> httpx.MockTransport:
    """Serve ``git.published``; the README stands in for the index page."""

    def handler(request: httpx.Request) -> httpx.Response:
        site = git.published
        path = request.url.path.strip("/") or "README.md"
        headers: dict[str, str] = {}
        for pattern, values in _header_rules(site.get("_headers", b"").decode()):
            if pattern == "/*" or fnmatch.fnmatch(path.rsplit("/", 1)[-1], pattern):
                headers.update(values)
        if request.method == "OPTIONS":
            return httpx.Response(204, headers=headers)
        if path not in site:
            return httpx.Response(404)
        body = b"" if request.method == "HEAD" else site[path]
        return httpx.Response(200, headers=headers, content=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def plugin_tree(tmp_path: Path) -> Path:
    package = tmp_path / "packages" / "plugins" / "chart"
    package.mkdir(parents=True)
    (package / "package.json").write_text(
        json.dumps(
            {
                "name": "chart-plugin",
                "version": "2.1.0",
                "main": "index.js",
                "keywords": ["dataprism-plugin", "chart"],
            }
        )
    )
    (package / "index.js").write_text("export default class ChartPlugin {}\n")
    return tmp_path / "packages" / "plugins"


class TestFullPipeline:
    """Deploy a built bundle and validate what was published."""

    @pytest.fixture
    def git(self) -> PublishingGit:
        return PublishingGit()

    @pytest.fixture
    def orchestrator(self, settings, git, no_sleep) -> DeploymentOrchestrator:
        transport = pages_transport(git)
        return DeploymentOrchestrator(
            settings,
            provider_kwargs={"git": git, "sleep": no_sleep, "transport": transport},
            transport=transport,
            sleep=no_sleep,
        )

    @pytest.fixture
    def options(self, assets_dir: Path, tmp_path: Path) -> DeployOptions:
        return DeployOptions(
            repository="acme/cdn",
            custom_domain="cdn.example.com",
            assets_dir=assets_dir,
            report_dir=tmp_path / "reports",
        )

    def test_deploy_publishes_and_validates(self, orchestrator, git, options):
        outcome = asyncio.run(orchestrator.deploy(options))

        assert outcome.result.success is True
        assert outcome.result.url == "https://cdn.example.com"
        assert outcome.phases == [
            DeployPhase.CONFIGURING,
            DeployPhase.CONNECTING,
            DeployPhase.DEPLOYING,
            DeployPhase.VALIDATING,
            DeployPhase.DONE,
        ]
        assert git.published["CNAME"] == b"cdn.example.com"

        validation = outcome.validation
        assert validation.success is True
        for name in (
            "connectivity-main-url",
            "asset-integrity",
            "asset-integrity-hashes",
            "asset-integrity-verify",
            "wasm-loading",
            "wasm-streaming-headers",
            "github-pages-config",
        ):
            assert validation.check(name).status == CheckStatus.PASSED, name
        assert validation.security_check("security-header-x-frame-options").status == (
            CheckStatus.PASSED
        )

    def test_published_manifest_matches_content(self, orchestrator, git, options):
        asyncio.run(orchestrator.deploy(options))

        manifest = json.loads(git.published["manifest.json"])
        integrity = json.loads(git.published["integrity.json"])
        assert manifest["integrity"] == integrity
        for filename, digest in integrity.items():
            assert sri(git.published[filename]) == digest
        assert manifest["metadata"]["target"] == "github-pages"

    def test_report_records_run(self, orchestrator, options):
        outcome = asyncio.run(orchestrator.deploy(options))

        document = json.loads(outcome.report_path.read_text())
        assert document["deployment_id"] == outcome.result.deployment_id
        assert document["success"] is True
        assert document["phases"] == [
            "configuring", "connecting", "deploying", "validating", "done",
        ]
        assert document["validation"]["success"] is True

    def test_plugin_manifest_is_published(
        self, orchestrator, git, options, assets_dir: Path, plugin_tree: Path
    ):
        generator = PluginManifestGenerator(
            [plugin_tree], "https://cdn.example.com/plugins", root=plugin_tree.parent.parent
        )
        generator.write(generator.generate(), assets_dir / "plugins" / "manifest.json")

        outcome = asyncio.run(orchestrator.deploy(options))

        assert "plugins/manifest.json" in git.published
        check = outcome.validation.check("plugin-manifest")
        assert check.status == CheckStatus.PASSED
        assert check.details == {"plugins": 1}

    def test_dry_run_publishes_nothing(self, orchestrator, git, options):
        outcome = asyncio.run(
            orchestrator.deploy(options.model_copy(update={"dry_run": True}))
        )
        assert outcome.result.deployment_id == "dry-run"
        assert git.commands == []
        assert git.published == {}
