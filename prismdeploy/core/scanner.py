"""Asset scanner: turns a build output directory into an ``AssetBundle``.

Directories are walked depth-first with entries sorted by name, so the
file order is stable across runs and platforms.  Paths in the bundle are
relative to the root and always use forward slashes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from pydantic import ValidationError

from prismdeploy.core.errors import DirectoryNotFound
from prismdeploy.core.hasher import sha384_hex
from prismdeploy.core.identifiers import generate_deployment_id
from prismdeploy.models.assets import AssetBundle, AssetFile, DeploymentMetadata
from prismdeploy.models.manifest import AssetManifest

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES: dict[str, str] = {
    "js": "application/javascript",
    "mjs": "application/javascript",
    "wasm": "application/wasm",
    "json": "application/json",
    "map": "application/json",
    "css": "text/css",
    "html": "text/html",
    "txt": "text/plain",
    "md": "text/markdown",
}

_TYPE_LABELS: dict[str, str] = {
    "js": "JavaScript",
    "wasm": "WebAssembly",
    "json": "JSON",
    "map": "Source Maps",
}


def _extension(filename: str) -> str:
    name = filename.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def mime_type_for(filename: str) -> str:
    """Look up the MIME type for *filename* in the fixed extension table."""
    return MIME_TYPES.get(_extension(filename), DEFAULT_MIME_TYPE)


def _walk(directory: Path) -> Iterator[Path]:
    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        logger.warning("Skipping unreadable directory %s: %s", directory, exc)
        return
    for entry in entries:
        if entry.is_dir():
            yield from _walk(entry)
        elif entry.is_file():
            yield entry


def scan_files(root: Path) -> list[AssetFile]:
    """Read and hash every regular file under *root*.

    Raises ``DirectoryNotFound`` if *root* is missing.  Files that cannot
    be read are skipped with a warning.
    """
    root = Path(root)
    if not root.is_dir():
        raise DirectoryNotFound(f"Assets directory not found: {root}")

    files: list[AssetFile] = []
    for path in _walk(root):
        try:
            content = path.read_bytes()
        except OSError as exc:
            logger.warning("Skipping unreadable file %s: %s", path, exc)
            continue
        relative = path.relative_to(root).as_posix()
        files.append(
            AssetFile(
                path=relative,
                content=content,
                mime_type=mime_type_for(relative),
                size=len(content),
                hash=sha384_hex(content),
            )
        )
    return files


def load_existing_manifest(root: Path) -> AssetManifest | None:
    """Parse ``manifest.json`` in *root* if present and well-formed."""
    manifest_path = Path(root) / "manifest.json"
    if not manifest_path.is_file():
        return None
    try:
        return AssetManifest.model_validate_json(manifest_path.read_bytes())
    except (OSError, ValidationError, ValueError) as exc:
        logger.warning("Ignoring unusable manifest %s: %s", manifest_path, exc)
        return None


def scan_directory(
    root: Path,
    *,
    deployment_id: str | None = None,
    target: str = "unknown",
    environment: str = "production",
) -> AssetBundle:
    """Scan *root* into a fresh ``AssetBundle``."""
    files = scan_files(root)
    bundle = AssetBundle(
        files=files,
        manifest=load_existing_manifest(root),
        total_size=sum(f.size for f in files),
        metadata=DeploymentMetadata(
            deployment_id=deployment_id or generate_deployment_id(),
            target=target,
            environment=environment,
        ),
    )
    logger.info(
        "Scanned %s: %d files, %d bytes", root, len(bundle.files), bundle.total_size
    )
    return bundle


def summarize_by_type(files: Iterable[AssetFile]) -> dict[str, tuple[int, int]]:
    """Group files by type label -> (file count, total bytes)."""
    summary: dict[str, tuple[int, int]] = {}
    for f in files:
        ext = _extension(f.path) or "unknown"
        label = _TYPE_LABELS.get(ext, ext)
        count, size = summary.get(label, (0, 0))
        summary[label] = (count + 1, size + f.size)
    return summary


def format_size(size: int) -> str:
    """Human-readable byte size (``1.5 MB``)."""
    if size <= 0:
        return "0 B"
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            text = f"{value:.2f}".rstrip("0").rstrip(".")
            return f"{text} {unit}"
        value /= 1024
    return f"{size} B"
