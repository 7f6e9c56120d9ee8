"""Manifest builder: produces ``manifest.json``, ``integrity.json`` and host side files.

The build hash depends only on file names and contents: per-file SHA-384
digests are concatenated in sorted filename order before hashing.  Size
limit violations are collected and logged, never raised, so oversized
builds are flagged without being aborted.
"""

from __future__ import annotations

import json
import logging
import platform
import subprocess
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field

from prismdeploy.config import DeploySettings
from prismdeploy.core.errors import ConfigurationError, IntegrityError, SizeLimitExceeded
from prismdeploy.core.hasher import compute_build_hash, sha384_hex, sri_from_hex
from prismdeploy.core.identifiers import iso_timestamp
from prismdeploy.core.scanner import mime_type_for
from prismdeploy.models.manifest import (
    AssetInfo,
    AssetManifest,
    BuildMetadata,
    CacheConfig,
    ManifestAssets,
    PluginAssetInfo,
    WasmAssetInfo,
)

logger = logging.getLogger(__name__)

MiB = 1024 * 1024
KiB = 1024

# (label, limit in bytes) checked by filename substring; "total" is the whole bundle.
SIZE_LIMITS: dict[str, int] = {
    "core.min.js": 2 * MiB,
    "orchestration.min.js": 800 * KiB,
    "plugin-framework.min.js": 500 * KiB,
    "wasm": int(1.5 * MiB),
    "plugin": 500 * KiB,
    "total": 5 * MiB,
}

NEAR_LIMIT_RATIO = 0.9

ROLES = ("core", "orchestration", "plugin-framework")
SCRIPT_SUFFIXES = (".js", ".mjs")

# Written by the manifest build itself; never part of the asset set.
GENERATED_FILES = frozenset(
    {"manifest.json", "integrity.json", "_headers", ".nojekyll", "_config.yml"}
)

GitReader = Callable[[list[str]], "str | None"]


class ManifestOutput(BaseModel):
    """Everything produced by one manifest build."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    manifest: AssetManifest
    side_files: dict[str, str] = Field(default_factory=dict)
    size_issues: list[SizeLimitExceeded] = Field(default_factory=list)

    def manifest_json(self) -> str:
        return json.dumps(
            self.manifest.model_dump(by_alias=True, mode="json"), indent=2
        )

    def integrity_json(self) -> str:
        return json.dumps(self.manifest.integrity, indent=2)


def read_git(args: list[str]) -> str | None:
    """Run ``git <args>`` in the current directory; None when git is unavailable."""
    try:
        completed = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            check=True,
            timeout=10,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("git %s unavailable: %s", " ".join(args), exc)
        return None
    return completed.stdout.strip() or None


# ---------------------------------------------------------------------------
# Size limits
# ---------------------------------------------------------------------------


def _limits_for(filename: str) -> list[tuple[str, int]]:
    name = PurePosixPath(filename).name
    matched: list[tuple[str, int]] = []
    for pattern, limit in SIZE_LIMITS.items():
        if pattern == "total":
            continue
        if pattern == "wasm":
            if name.endswith(".wasm"):
                matched.append((pattern, limit))
        elif pattern == "plugin":
            if "plugin" in name and "plugin-framework" not in name:
                matched.append((pattern, limit))
        elif pattern in name:
            matched.append((pattern, limit))
    return matched


def check_sizes(
    sizes: Iterable[tuple[str, int]], total: int | None = None
) -> list[SizeLimitExceeded]:
    """Check ``(filename, size)`` pairs against ``SIZE_LIMITS``.

    Violations are logged at WARNING and returned; files above 90% of
    their limit are logged at INFO.  *total* defaults to the sum of sizes.
    """
    issues: list[SizeLimitExceeded] = []
    running_total = 0
    for filename, size in sizes:
        running_total += size
        for _, limit in _limits_for(filename):
            if size > limit:
                issues.append(SizeLimitExceeded(filename, size, limit))
            elif size > limit * NEAR_LIMIT_RATIO:
                logger.info(
                    "%s is at %d%% of its size limit (%d bytes)",
                    filename,
                    round(size / limit * 100),
                    limit,
                )

    bundle_total = running_total if total is None else total
    if bundle_total > SIZE_LIMITS["total"]:
        issues.append(SizeLimitExceeded("total bundle", bundle_total, SIZE_LIMITS["total"]))

    for issue in issues:
        logger.warning("Bundle size issue: %s", issue)
    return issues


def check_manifest_sizes(manifest: AssetManifest) -> list[SizeLimitExceeded]:
    """Apply the size table to an already-built manifest."""
    seen: dict[str, int] = {}
    assets = manifest.assets
    for info in [assets.core, assets.orchestration, assets.plugin_framework, *assets.plugins, *assets.wasm]:
        seen.setdefault(info.filename, info.size)
    return check_sizes(seen.items(), total=manifest.metadata.total_bundle_size)


def verify_integrity(
    manifest: AssetManifest, files: Mapping[str, bytes]
) -> list[IntegrityError]:
    """Compare *manifest* integrity entries against the files on disk.

    Returns one ``IntegrityError`` per referenced file that is missing,
    lacks an entry, or hashes differently.  Nothing is raised here.
    """
    problems: list[IntegrityError] = []
    for filename in sorted(manifest.assets.filenames()):
        expected = manifest.integrity.get(filename)
        if filename not in files:
            problems.append(IntegrityError(f"{filename} is in the manifest but not in the build"))
        elif expected is None:
            problems.append(IntegrityError(f"{filename} has no integrity entry"))
        elif sri_from_hex(sha384_hex(files[filename])) != expected:
            problems.append(IntegrityError(f"{filename} does not match its integrity hash"))
    for problem in problems:
        logger.warning("Manifest integrity: %s", problem)
    return problems


# ---------------------------------------------------------------------------
# Side files
# ---------------------------------------------------------------------------


def headers_file(base_url: str | None = None) -> str:
    """Netlify/Cloudflare-style ``_headers`` with CORS and isolation rules."""
    scope = base_url or "/*"
    return "\n".join(
        [
            scope,
            "  Access-Control-Allow-Origin: *",
            "  Access-Control-Allow-Methods: GET, HEAD, OPTIONS",
            "  Access-Control-Allow-Headers: Content-Type, Authorization",
            "  Cross-Origin-Embedder-Policy: require-corp",
            "  Cross-Origin-Opener-Policy: same-origin",
            "  X-Content-Type-Options: nosniff",
            "  X-Frame-Options: DENY",
            "  X-XSS-Protection: 1; mode=block",
            "",
            "*.wasm",
            "  Content-Type: application/wasm",
            "  Cache-Control: public, max-age=31536000, immutable",
            "",
            "*.js",
            "  Content-Type: application/javascript",
            "  Cache-Control: public, max-age=31536000, immutable",
            "",
            "manifest.json",
            "  Content-Type: application/json",
            "  Cache-Control: public, max-age=3600",
            "",
        ]
    )


JEKYLL_CONFIG = (
    "# GitHub Pages Jekyll Configuration\n"
    'plugins: ["jekyll-gist"]\n'
    'include: ["_*",".nojekyll"]\n'
    'exclude: ["node_modules/","Gemfile*"]\n'
)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class ManifestBuilder:
    """Builds the asset manifest for a set of build outputs.

    Parameters
    ----------
    settings:
        Supplies the optimization flags, compression estimate, WASM
        memory heuristic and package version.
    target:
        Deployment target recorded in the metadata; ``github-pages``
        additionally emits ``.nojekyll`` and ``_config.yml``.
    base_url:
        Scope of the first ``_headers`` rule (``/*`` when unset).
    clock:
        Returns the build time; injectable for reproducible output.
    git_reader:
        Runs a git query; defaults to the working directory's repository.
    """

    def __init__(
        self,
        settings: DeploySettings,
        *,
        target: str = "github-pages",
        base_url: str | None = None,
        clock: Callable[[], datetime] | None = None,
        git_reader: GitReader = read_git,
    ) -> None:
        self._settings = settings
        self._target = target
        self._base_url = base_url
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._git_reader = git_reader

    # ------------------------------------------------------------------
    # Per-asset records
    # ------------------------------------------------------------------

    def _cache_duration(self, filename: str, caching: CacheConfig) -> int:
        if "manifest" in filename:
            return caching.manifests
        if filename.endswith(".wasm"):
            return caching.wasm
        if "plugin" in filename:
            return caching.plugins
        return caching.static_assets

    def _asset_info(self, filename: str, content: bytes, stamp: str) -> AssetInfo:
        size = len(content)
        return AssetInfo(
            filename=filename,
            size=size,
            compressed_size=int(size * self._settings.compression_estimate),
            hash=sha384_hex(content),
            mime_type=mime_type_for(filename),
            cache_duration=self._cache_duration(filename, self._settings.caching),
            last_modified=stamp,
        )

    def _wasm_info(self, info: AssetInfo) -> WasmAssetInfo:
        memory = max(
            info.size * self._settings.wasm_memory_multiplier,
            self._settings.wasm_memory_floor,
        )
        return WasmAssetInfo(
            **info.model_dump(),
            streaming_compilation=self._settings.cdn_wasm_optimization,
            memory_requirement=memory,
            cross_origin_isolation=True,
        )

    @staticmethod
    def _plugin_info(info: AssetInfo) -> PluginAssetInfo:
        stem = PurePosixPath(info.filename).name.rsplit(".", 1)[0]
        return PluginAssetInfo(
            **info.model_dump(),
            id=stem.replace("-", ".").replace("_", "."),
            name=stem,
            entry=info.filename,
        )

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    @staticmethod
    def _classify(
        infos: dict[str, AssetInfo], categories: Mapping[str, str] | None
    ) -> dict[str, AssetInfo]:
        """Pick core / orchestration / plugin-framework.

        Explicit ``filename -> role`` tags win; otherwise the first
        filename (sorted, scripts before other files) containing the role
        name; otherwise the first asset overall.
        """
        ordered = sorted(infos)
        ranked = sorted(ordered, key=lambda name: not name.endswith(SCRIPT_SUFFIXES))
        chosen: dict[str, AssetInfo] = {}
        for filename, role in (categories or {}).items():
            if role not in ROLES:
                raise ConfigurationError(
                    f"Unknown asset category {role!r} for {filename}; expected one of {ROLES}"
                )
            if filename not in infos:
                raise ConfigurationError(f"Categorized file {filename} is not in the build")
            chosen.setdefault(role, infos[filename])

        for role in ROLES:
            if role in chosen:
                continue
            match = next((name for name in ranked if role in name), None)
            if match is None:
                logger.debug("No %s asset by name; falling back to %s", role, ordered[0])
                match = ordered[0]
            chosen[role] = infos[match]
        return chosen

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(
        self,
        files: Mapping[str, bytes],
        categories: Mapping[str, str] | None = None,
    ) -> ManifestOutput:
        """Build the manifest for ``filename -> bytes``.

        Parameters
        ----------
        files:
            Build outputs keyed by forward-slash relative path.
        categories:
            Optional ``filename -> role`` tags (``core``, ``orchestration``,
            ``plugin-framework``) that override name matching.

        Raises
        ------
        ConfigurationError
            If *files* is empty or a category tag is invalid.
        """
        if not files:
            raise ConfigurationError("Cannot build a manifest for an empty asset set")

        now = self._clock()
        stamp = iso_timestamp(now)

        infos = {name: self._asset_info(name, files[name], stamp) for name in sorted(files)}
        roles = self._classify(infos, categories)

        wasm = [self._wasm_info(i) for name, i in infos.items() if name.endswith(".wasm")]
        plugins = [
            self._plugin_info(i)
            for name, i in infos.items()
            if not name.endswith(".wasm") and "plugin" in name
        ]

        assets = ManifestAssets(
            core=roles["core"],
            orchestration=roles["orchestration"],
            plugin_framework=roles["plugin-framework"],
            plugins=plugins,
            wasm=wasm,
        )

        build_hash = compute_build_hash({name: i.hash for name, i in infos.items()})
        integrity = {
            name: sri_from_hex(infos[name].hash) for name in sorted(assets.filenames())
        }

        total = sum(i.size for i in infos.values())
        compressed = sum(i.compressed_size for i in infos.values())

        manifest = AssetManifest(
            version=self._settings.package_version,
            timestamp=stamp,
            build_hash=build_hash,
            assets=assets,
            integrity=integrity,
            metadata=BuildMetadata(
                build_date=stamp,
                build_id=build_hash,
                runtime_version=f"python-{platform.python_version()}",
                git_commit=self._git_reader(["rev-parse", "HEAD"]),
                git_branch=self._git_reader(["rev-parse", "--abbrev-ref", "HEAD"]),
                target=self._target,
                optimization=self._settings.optimization,
                total_bundle_size=total,
                compression_ratio=compressed / total if total else 0.0,
            ),
        )

        side_files = {"_headers": headers_file(self._base_url)}
        if self._target == "github-pages":
            side_files[".nojekyll"] = ""
            side_files["_config.yml"] = JEKYLL_CONFIG

        size_issues = check_sizes(((name, i.size) for name, i in infos.items()), total=total)

        logger.info(
            "Built manifest %s: %d assets, %d bytes, %d size issue(s)",
            build_hash,
            len(infos),
            total,
            len(size_issues),
        )
        return ManifestOutput(
            manifest=manifest, side_files=side_files, size_issues=size_issues
        )


def write_manifest(output: ManifestOutput, directory: Path) -> list[Path]:
    """Write ``manifest.json``, ``integrity.json`` and side files into *directory*."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    documents = {
        "manifest.json": output.manifest_json(),
        "integrity.json": output.integrity_json(),
        **output.side_files,
    }
    for name, text in documents.items():
        path = directory / name
        path.write_text(text, encoding="utf-8")
        written.append(path)
    logger.info("Wrote %d manifest files to %s", len(written), directory)
    return written
