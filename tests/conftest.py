"""Shared test fixtures for prismdeploy."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import httpx
import pytest

from prismdeploy.config import DeploySettings
from prismdeploy.core.hasher import sri
from prismdeploy.providers.git import GitResult

CORE_JS = b"export const DataPrismEngine = class {};\n"
ORCHESTRATION_JS = b"export const orchestrate = () => 1;\n"
FRAMEWORK_JS = b"export const loadPlugin = () => null;\n"
WASM = b"\x00asm\x01\x00\x00\x00"

SECURE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Cross-Origin-Embedder-Policy": "require-corp",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Access-Control-Allow-Origin": "*",
    "Cache-Control": "public, max-age=31536000",
}


@pytest.fixture
def settings(tmp_path: Path) -> DeploySettings:
    """Settings isolated from the process environment and any .env file."""
    return DeploySettings(
        _env_file=None,
        github_token="test-token",
        cdn_target=None,
        cdn_base_url=None,
        staging_root=tmp_path / "staging",
        retry_attempts=3,
    )


@pytest.fixture
def site_files() -> dict[str, bytes]:
    """Contents of the sample bundle keyed by relative path."""
    return {
        "core.min.js": CORE_JS,
        "orchestration.min.js": ORCHESTRATION_JS,
        "plugin-framework.min.js": FRAMEWORK_JS,
        "assets/dataprism-core.wasm": WASM,
    }


@pytest.fixture
def assets_dir(tmp_path: Path, site_files: dict[str, bytes]) -> Path:
    """The sample bundle written to disk: three JS roles and one WASM binary."""
    root = tmp_path / "dist"
    for name, content in site_files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


@pytest.fixture
def no_sleep() -> Callable[[float], Any]:
    """Backoff sleep that records delays instead of waiting."""

    async def _sleep(delay: float) -> None:
        _sleep.delays.append(delay)

    _sleep.delays = []
    return _sleep


# ---------------------------------------------------------------------------
# Fake git
# ---------------------------------------------------------------------------


class FakeGit:
    """Recording ``GitRunner``.

    ``responses`` maps a git subcommand to results consumed in order; the
    last one repeats.  Unlisted subcommands succeed.  The staged tree is
    captured when ``add`` runs.
    """

    def __init__(self, responses: Mapping[str, list[GitResult]] | None = None) -> None:
        self.responses = {k: list(v) for k, v in (responses or {}).items()}
        self.calls: list[tuple[list[str], Path | None]] = []
        self.staged: list[str] = []

    async def __call__(
        self, args: list[str], *, cwd: Path | None = None, timeout: float = 120.0
    ) -> GitResult:
        self.calls.append((list(args), cwd))
        if args[0] == "add" and cwd is not None:
            self.staged = sorted(
                p.relative_to(cwd).as_posix() for p in cwd.rglob("*") if p.is_file()
            )
        queue = self.responses.get(args[0])
        if not queue:
            return GitResult(returncode=0)
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def commands(self) -> list[str]:
        return [args[0] for args, _ in self.calls]

    def args_for(self, command: str) -> list[list[str]]:
        return [args for args, _ in self.calls if args[0] == command]


@pytest.fixture
def fake_git() -> FakeGit:
    """A ``FakeGit`` on which every command succeeds."""
    return FakeGit()


@pytest.fixture
def make_git() -> Callable[..., FakeGit]:
    """Factory fixture: ``make_git(push=[GitResult(...), ...], log=[...])``."""

    def _factory(**responses: list[GitResult]) -> FakeGit:
        return FakeGit(responses)

    return _factory


@pytest.fixture
def git_log() -> Callable[..., GitResult]:
    """Factory fixture: ``git log`` output for (sha, date, subject), newest first."""

    def _factory(*commits: tuple[str, str, str]) -> GitResult:
        stdout = "".join("\x1f".join(commit) + "\n" for commit in commits)
        return GitResult(returncode=0, stdout=stdout)

    return _factory


# ---------------------------------------------------------------------------
# Fake CDN
# ---------------------------------------------------------------------------


def _publish(files: Mapping[str, bytes], integrity: Mapping[str, str] | None) -> dict[str, bytes]:
    manifest = {
        "version": "1.0.0",
        "buildHash": "abcd1234",
        "assets": {
            "core": {"filename": "core.min.js"},
            "orchestration": {"filename": "orchestration.min.js"},
            "pluginFramework": {"filename": "plugin-framework.min.js"},
            "plugins": [],
            "wasm": [{"filename": "assets/dataprism-core.wasm"}],
        },
        "integrity": dict(integrity)
        if integrity is not None
        else {name: sri(body) for name, body in files.items()},
    }
    site = dict(files)
    site["manifest.json"] = json.dumps(manifest).encode()
    site[""] = b"<html>CDN</html>"
    return site


@pytest.fixture
def make_transport(site_files: dict[str, bytes]) -> Callable[..., httpx.MockTransport]:
    """Factory fixture: a ``MockTransport`` serving the sample bundle.

    Keyword arguments
    -----------------
    files:
        Extra or replacement paths -> bodies (``None`` removes a path).
    headers:
        Response headers for every path (defaults to a secure set).
    errors:
        Paths whose requests raise the given exception.
    integrity:
        Replacement integrity map for the published manifest.
    """

    def _factory(
        *,
        files: Mapping[str, bytes | None] | None = None,
        headers: Mapping[str, str] | None = None,
        errors: Mapping[str, Exception] | None = None,
        integrity: Mapping[str, str] | None = None,
    ) -> httpx.MockTransport:
        site = _publish(site_files, integrity)
        for path, body in (files or {}).items():
            if body is None:
                site.pop(path, None)
            else:
                site[path] = body
        base_headers = dict(SECURE_HEADERS if headers is None else headers)
        failing = dict(errors or {})

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path.strip("/")
            if path in failing:
                raise failing[path]
            if request.method == "OPTIONS":
                return httpx.Response(204, headers=base_headers)
            if path not in site:
                return httpx.Response(404, headers=base_headers)
            response_headers = dict(base_headers)
            if path.endswith(".wasm"):
                response_headers["Content-Type"] = "application/wasm"
            body = b"" if request.method == "HEAD" else site[path]
            return httpx.Response(200, headers=response_headers, content=body)

        return httpx.MockTransport(handler)

    return _factory
