"""Plugin manifest: parsing and generation of ``plugins/manifest.json``.

Plugins are discovered two ways: package directories whose
``package.json`` marks them as DataPrism plugins, and standalone script
files whose name mentions "plugin" or "extension".  Standalone files may
carry metadata in a leading ``/** ... */`` comment using ``@tag value``
lines.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from prismdeploy.core.errors import InvalidManifest
from prismdeploy.core.hasher import sri
from prismdeploy.core.identifiers import iso_timestamp
from prismdeploy.models.manifest import (
    PluginCategory,
    PluginEntry,
    PluginManifest,
    PluginMetadata,
)

logger = logging.getLogger(__name__)

REQUIRED_ENTRY_FIELDS = ("id", "name", "entry")

PLUGIN_FILE_SUFFIXES = (".js", ".mjs", ".ts")

DEFAULT_CATEGORIES: list[tuple[str, str, str]] = [
    ("integration", "Integration", "Data integration and import plugins"),
    ("processing", "Processing", "Data processing and transformation plugins"),
    ("visualization", "Visualization", "Data visualization and charting plugins"),
    ("utility", "Utility", "Utility and helper plugins"),
    ("ml", "Machine Learning", "Machine learning and AI plugins"),
]

# First match wins; checked against keywords, name and description.
CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("integration", ("integration", "import", "export", "connector")),
    ("processing", ("processing", "transform", "etl", "data")),
    ("visualization", ("visualization", "chart", "graph", "plot")),
    ("ml", ("ml", "ai", "machine-learning", "neural")),
    ("utility", ("utility", "helper", "tool")),
]

ENTRY_FIELDS = ("module", "main", "entry")
COMMON_ENTRIES = ("index.js", "index.ts", "plugin.js", "plugin.ts", "main.js", "main.ts")

_COMMENT_RE = re.compile(r"/\*\*(.*?)\*/", re.DOTALL)
_TAG_RES: dict[str, re.Pattern[str]] = {
    "name": re.compile(r"@name\s+(.+)"),
    "version": re.compile(r"@version\s+(.+)"),
    "description": re.compile(r"@description\s+(.*?)(?=@|$)", re.DOTALL),
    "author": re.compile(r"@author\s+(.+)"),
    "license": re.compile(r"@license\s+(.+)"),
    "category": re.compile(r"@category\s+(.+)"),
    "dependencies": re.compile(r"@dependencies?\s+(.+)"),
    "load_order": re.compile(r"@loadOrder\s+(\d+)"),
    "lazy": re.compile(r"@lazy\s+(true|false)"),
}
_NAMED_EXPORT_RE = re.compile(r"export\s+(?:const|let|var|function|class)\s+(\w+)")
_EXPORT_LIST_RE = re.compile(r"export\s*\{\s*([^}]+)\s*\}")


def parse_plugin_manifest(data: Mapping[str, Any] | str | bytes) -> PluginManifest:
    """Parse and structurally validate a plugin manifest document.

    Raises
    ------
    InvalidManifest
        If ``plugins`` is not a list, ``baseUrl`` is missing, or an entry
        lacks ``id``, ``name`` or ``entry``.
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise InvalidManifest(f"Plugin manifest is not valid JSON: {exc}") from exc
    if not isinstance(data, Mapping):
        raise InvalidManifest("Plugin manifest must be a JSON object")

    plugins = data.get("plugins")
    if not isinstance(plugins, list):
        raise InvalidManifest("Plugin manifest 'plugins' must be a list")
    if "baseUrl" not in data and "base_url" not in data:
        raise InvalidManifest("Plugin manifest is missing 'baseUrl'")
    for index, entry in enumerate(plugins):
        if not isinstance(entry, Mapping):
            raise InvalidManifest(f"Plugin entry {index} is not an object")
        missing = [f for f in REQUIRED_ENTRY_FIELDS if not entry.get(f)]
        if missing:
            raise InvalidManifest(
                f"Plugin entry {index} is missing required field(s): {', '.join(missing)}"
            )

    try:
        return PluginManifest.model_validate(data)
    except ValidationError as exc:
        raise InvalidManifest(f"Plugin manifest is invalid: {exc}") from exc


def generate_plugin_id(name: str) -> str:
    """``@scope/My_Plugin`` -> ``scopemy-plugin``."""
    text = re.sub(r"[@/]", "", name.lower())
    text = re.sub(r"[^a-z0-9]", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def extract_exports(source: str) -> list[str]:
    """Named exports, ``default`` and ``export { a as b }`` lists, de-duplicated."""
    names: list[str] = list(_NAMED_EXPORT_RE.findall(source))
    if "export default" in source:
        names.append("default")
    for group in _EXPORT_LIST_RE.findall(source):
        names.extend(part.strip().split(" as ")[0] for part in group.split(","))
    return list(dict.fromkeys(n for n in names if n))


def metadata_from_comments(source: str) -> dict[str, Any]:
    """Read ``@tag value`` pairs from the first ``/** */`` comment."""
    match = _COMMENT_RE.search(source)
    if not match:
        return {}
    comment = match.group(1)
    found: dict[str, Any] = {}
    for key, pattern in _TAG_RES.items():
        tag = pattern.search(comment)
        if not tag:
            continue
        value = tag.group(1).strip()
        if key == "description":
            value = " ".join(line.strip(" *") for line in value.splitlines()).strip()
        if key == "dependencies":
            found[key] = [d for d in re.split(r"[,\s]+", value) if d]
        elif key == "load_order":
            found[key] = int(value)
        elif key == "lazy":
            found[key] = value == "true"
        else:
            found[key] = value
    return found


def categorize(keywords: Iterable[str], name: str, description: str) -> str:
    keyword_set = set(keywords)
    name = name.lower()
    description = description.lower()
    for category, words in CATEGORY_KEYWORDS:
        if any(w in keyword_set or w in name or w in description for w in words):
            return category
    return "utility"


class PluginManifestGenerator:
    """Discover plugins on disk and build a ``PluginManifest``.

    Parameters
    ----------
    plugin_dirs:
        Directories to scan.  Missing directories are skipped with a warning.
    base_url:
        Written as the manifest ``baseUrl``.
    include_dev:
        Include private, dev, test and example packages.
    root:
        Entry paths are recorded relative to this directory.
    """

    def __init__(
        self,
        plugin_dirs: Iterable[Path],
        base_url: str,
        *,
        include_dev: bool = False,
        root: Path | None = None,
    ) -> None:
        self._plugin_dirs = [Path(d) for d in plugin_dirs]
        self._base_url = base_url
        self._include_dev = include_dev
        self._root = Path(root) if root is not None else Path.cwd()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover(self) -> list[PluginEntry]:
        entries: list[PluginEntry] = []
        for directory in self._plugin_dirs:
            if not directory.is_dir():
                logger.warning("Plugin directory not found: %s", directory)
                continue
            entries.extend(self._scan(directory))
        logger.info("Discovered %d plugin(s)", len(entries))
        return entries

    def _scan(self, directory: Path) -> list[PluginEntry]:
        found: list[PluginEntry] = []
        for path in sorted(directory.iterdir(), key=lambda p: p.name):
            if path.is_dir():
                if (path / "package.json").is_file():
                    entry = self._from_package(path)
                    if entry is not None:
                        found.append(entry)
                else:
                    found.extend(self._scan(path))
            elif path.is_file() and self._is_plugin_file(path.name):
                found.append(self._from_file(path))
        return found

    @staticmethod
    def _is_plugin_file(filename: str) -> bool:
        lowered = filename.lower()
        return lowered.endswith(PLUGIN_FILE_SUFFIXES) and (
            "plugin" in lowered or "extension" in lowered
        )

    @staticmethod
    def _is_dataprism_package(package: Mapping[str, Any]) -> bool:
        deps = {**package.get("dependencies", {}), **package.get("peerDependencies", {})}
        return (
            "dataprism-plugin" in package.get("keywords", [])
            or "@dataprism/core" in deps
            or "dataprism" in package.get("name", "")
        )

    @staticmethod
    def _is_dev_package(package: Mapping[str, Any]) -> bool:
        name = package.get("name", "")
        return package.get("private") is True or any(
            marker in name for marker in ("dev", "test", "example")
        )

    def _relative(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self._root.resolve()).as_posix()
        except ValueError:
            return path.as_posix()

    @staticmethod
    def _find_entry(package_dir: Path, package: Mapping[str, Any]) -> Path | None:
        for field in ENTRY_FIELDS:
            candidate = package.get(field)
            if candidate and (package_dir / candidate).is_file():
                return package_dir / candidate
        for name in COMMON_ENTRIES:
            if (package_dir / name).is_file():
                return package_dir / name
        return None

    def _from_package(self, package_dir: Path) -> PluginEntry | None:
        try:
            package = json.loads((package_dir / "package.json").read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read plugin package %s: %s", package_dir, exc)
            return None

        if not self._is_dataprism_package(package):
            return None
        if not self._include_dev and self._is_dev_package(package):
            logger.debug("Skipping dev plugin package %s", package.get("name"))
            return None

        entry_file = self._find_entry(package_dir, package)
        if entry_file is None:
            logger.warning("No entry file found for plugin: %s", package.get("name"))
            return None

        content = entry_file.read_bytes()
        deps = {**package.get("dependencies", {}), **package.get("peerDependencies", {})}
        author = package.get("author")
        repository = package.get("repository")
        settings = package.get("dataprism", {})
        name = package.get("name", package_dir.name)
        return PluginEntry(
            id=generate_plugin_id(name),
            name=name,
            version=package.get("version", "1.0.0"),
            entry=self._relative(entry_file),
            dependencies=[
                generate_plugin_id(d) for d in deps if "dataprism" in d or "plugin" in d
            ],
            metadata=PluginMetadata(
                description=package.get("description") or "DataPrism plugin",
                author=(author.get("name") if isinstance(author, dict) else author) or "Unknown",
                license=package.get("license") or "MIT",
                homepage=package.get("homepage"),
                repository=repository.get("url") if isinstance(repository, dict) else repository,
                keywords=package.get("keywords", []),
                size=len(content),
                load_order=settings.get("loadOrder", 50),
                lazy=settings.get("lazy") is not False,
            ),
            integrity=sri(content),
            category=categorize(
                package.get("keywords", []), name, package.get("description", "")
            ),
            exports=extract_exports(content.decode("utf-8", errors="replace")),
        )

    def _from_file(self, path: Path) -> PluginEntry:
        content = path.read_bytes()
        source = content.decode("utf-8", errors="replace")
        tags = metadata_from_comments(source)
        stem = path.name.rsplit(".", 1)[0]
        return PluginEntry(
            id=generate_plugin_id(stem),
            name=tags.get("name", stem),
            version=tags.get("version", "1.0.0"),
            entry=self._relative(path),
            dependencies=tags.get("dependencies", []),
            metadata=PluginMetadata(
                description=tags.get("description", "DataPrism plugin"),
                author=tags.get("author", "Unknown"),
                license=tags.get("license", "MIT"),
                size=len(content),
                load_order=tags.get("load_order", 50),
                lazy=tags.get("lazy", True),
            ),
            integrity=sri(content),
            category=tags.get("category", "utility"),
            exports=extract_exports(source),
        )

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    @staticmethod
    def categories_for(entries: Iterable[PluginEntry]) -> list[PluginCategory]:
        """Default categories with their plugin ids; empty categories omitted."""
        members: dict[str, list[str]] = {cat_id: [] for cat_id, _, _ in DEFAULT_CATEGORIES}
        for entry in entries:
            if entry.category in members:
                members[entry.category].append(entry.id)
        return [
            PluginCategory(id=cat_id, name=name, description=description, plugins=members[cat_id])
            for cat_id, name, description in DEFAULT_CATEGORIES
            if members[cat_id]
        ]

    def generate(self) -> PluginManifest:
        entries = self.discover()
        known = {e.id for e in entries}
        for entry in entries:
            for dep in entry.dependencies:
                if dep not in known:
                    logger.warning("Dependency not found for %s: %s", entry.id, dep)
        return PluginManifest(
            plugins=entries,
            categories=self.categories_for(entries),
            base_url=self._base_url,
            timestamp=iso_timestamp(),
        )

    @staticmethod
    def write(manifest: PluginManifest, path: Path) -> tuple[Path, Path]:
        """Write *manifest* as pretty JSON plus a compact ``.min.json`` copy."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = manifest.model_dump(by_alias=True, mode="json")
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        compact = path.with_name(path.name.replace(".json", ".min.json"))
        compact.write_text(json.dumps(payload, separators=(",", ":")), encoding="utf-8")
        logger.info("Plugin manifest written to %s (compact: %s)", path, compact)
        return path, compact
