"""prismdeploy data models: all Pydantic v2, all frozen (immutable)."""

from prismdeploy.models.assets import AssetBundle, AssetFile, DeploymentMetadata
from prismdeploy.models.deployment import (
    VALID_PHASE_TRANSITIONS,
    DeploymentConfig,
    DeploymentInfo,
    DeploymentLog,
    DeploymentMetrics,
    DeploymentResult,
    DeploymentState,
    DeploymentStatus,
    DeploymentTarget,
    DeployPhase,
    Environment,
    RollbackOptions,
)
from prismdeploy.models.manifest import (
    AssetInfo,
    AssetManifest,
    BrowserCompatibility,
    BuildMetadata,
    CacheConfig,
    ManifestAssets,
    OptimizationConfig,
    PluginAssetInfo,
    PluginCategory,
    PluginEntry,
    PluginManifest,
    PluginMetadata,
    WasmAssetInfo,
)
from prismdeploy.models.validation import (
    UNMEASURED,
    CheckStatus,
    PerformanceMetrics,
    SecurityCheck,
    ValidationCheck,
    ValidationResult,
    overall_success,
)

__all__ = [
    # assets
    "AssetFile",
    "AssetBundle",
    "DeploymentMetadata",
    # manifest
    "AssetInfo",
    "AssetManifest",
    "BrowserCompatibility",
    "BuildMetadata",
    "CacheConfig",
    "ManifestAssets",
    "OptimizationConfig",
    "PluginAssetInfo",
    "WasmAssetInfo",
    "PluginCategory",
    "PluginEntry",
    "PluginManifest",
    "PluginMetadata",
    # deployment
    "DeploymentTarget",
    "Environment",
    "DeploymentConfig",
    "DeploymentLog",
    "DeploymentMetrics",
    "DeploymentResult",
    "DeploymentState",
    "DeploymentStatus",
    "DeploymentInfo",
    "RollbackOptions",
    "DeployPhase",
    "VALID_PHASE_TRANSITIONS",
    # validation
    "UNMEASURED",
    "CheckStatus",
    "ValidationCheck",
    "SecurityCheck",
    "PerformanceMetrics",
    "ValidationResult",
    "overall_success",
]
