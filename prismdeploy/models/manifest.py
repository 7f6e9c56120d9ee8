"""Asset manifest models: the published contract read by plugin loaders and validators.

Field names are snake_case in Python and camelCase on the wire
(``buildHash``, ``pluginFramework``, ``mimeType``).  Always serialize with
``model_dump(by_alias=True, mode="json")``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Frozen base for JSON documents exchanged with the CDN runtime."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class OptimizationConfig(WireModel):
    """Build optimization flags recorded in the manifest metadata."""

    compression: str = "both"  # "gzip", "brotli", "both"
    treeshaking: bool = True
    codesplitting: bool = True
    wasm_optimization: bool = True
    minification: bool = True


class CacheConfig(WireModel):
    """Cache durations in seconds per asset class."""

    static_assets: int = 31_536_000  # 1 year
    manifests: int = 3_600  # 1 hour
    wasm: int = 31_536_000
    plugins: int = 86_400  # 1 day


class AssetInfo(WireModel):
    """One asset as described in the manifest."""

    filename: str
    size: int
    compressed_size: int
    hash: str  # SHA-384 hex
    mime_type: str
    cache_duration: int
    last_modified: str


class PluginAssetInfo(AssetInfo):
    """An asset recognised as a plugin bundle (best-effort metadata)."""

    id: str
    name: str
    version: str = "1.0.0"
    category: str = "utility"
    dependencies: list[str] = Field(default_factory=list)
    entry: str
    exports: list[str] = Field(default_factory=lambda: ["default"])


class WasmAssetInfo(AssetInfo):
    """A WebAssembly binary with loader hints."""

    streaming_compilation: bool
    memory_requirement: int
    cross_origin_isolation: bool = True


class ManifestAssets(WireModel):
    """Categorized asset references."""

    core: AssetInfo
    orchestration: AssetInfo
    plugin_framework: AssetInfo
    plugins: list[PluginAssetInfo] = Field(default_factory=list)
    wasm: list[WasmAssetInfo] = Field(default_factory=list)

    def filenames(self) -> set[str]:
        """Every filename referenced anywhere in the categories."""
        names = {
            self.core.filename,
            self.orchestration.filename,
            self.plugin_framework.filename,
        }
        names.update(p.filename for p in self.plugins)
        names.update(w.filename for w in self.wasm)
        return names


class BuildMetadata(WireModel):
    """Build provenance."""

    build_date: str
    build_id: str
    runtime_version: str
    git_commit: str | None = None
    git_branch: str | None = None
    target: str
    optimization: OptimizationConfig = Field(default_factory=OptimizationConfig)
    total_bundle_size: int
    compression_ratio: float


class BrowserCompatibility(WireModel):
    """Static browser support declaration (fixed per build policy)."""

    chrome: str = "90+"
    firefox: str = "88+"
    safari: str = "14+"
    edge: str = "90+"
    web_assembly: bool = True
    es2020: bool = True


class AssetManifest(WireModel):
    """The ``manifest.json`` document."""

    version: str
    timestamp: str
    build_hash: str
    assets: ManifestAssets
    integrity: dict[str, str] = Field(default_factory=dict)
    metadata: BuildMetadata
    compatibility: BrowserCompatibility = Field(default_factory=BrowserCompatibility)

    def missing_integrity(self) -> list[str]:
        """Referenced filenames without an integrity entry, sorted."""
        return sorted(self.assets.filenames() - set(self.integrity))

    def orphan_integrity(self) -> list[str]:
        """Integrity keys that do not name a referenced asset, sorted."""
        return sorted(set(self.integrity) - self.assets.filenames())


# ---------------------------------------------------------------------------
# plugins/manifest.json
# ---------------------------------------------------------------------------


class PluginMetadata(WireModel):
    """Descriptive metadata for a plugin entry."""

    description: str = "DataPrism plugin"
    author: str = "Unknown"
    license: str = "MIT"
    homepage: str | None = None
    repository: str | None = None
    keywords: list[str] = Field(default_factory=list)
    size: int = 0
    load_order: int = 50
    lazy: bool = True


class PluginEntry(WireModel):
    """A loadable plugin.  ``id``, ``name`` and ``entry`` are mandatory."""

    id: str
    name: str
    version: str = "1.0.0"
    entry: str
    dependencies: list[str] = Field(default_factory=list)
    metadata: PluginMetadata = Field(default_factory=PluginMetadata)
    integrity: str = ""
    category: str = "utility"
    exports: list[str] = Field(default_factory=list)


class PluginCategory(WireModel):
    """A named group of plugin ids."""

    id: str
    name: str
    description: str
    plugins: list[str] = Field(default_factory=list)


class PluginManifest(WireModel):
    """The ``plugins/manifest.json`` document."""

    plugins: list[PluginEntry]
    categories: list[PluginCategory] = Field(default_factory=list)
    compatibility: BrowserCompatibility = Field(default_factory=BrowserCompatibility)
    base_url: str
    version: str = "1.0.0"
    timestamp: str
