"""Runtime settings: env-driven via pydantic-settings.

Reads ``PRISMDEPLOY_*`` variables and a ``.env`` file.  The deployment
credentials and CDN build knobs keep their conventional unprefixed names
(``GITHUB_TOKEN``, ``GIT_USERNAME``, ``GIT_EMAIL``, ``CDN_TARGET``,
``CDN_COMPRESSION``, ``CDN_BASE_URL``, ``CDN_WASM_OPTIMIZATION``).

Settings are constructed by callers and passed down explicitly; there is
no module-level instance.

Examples
--------
::

    export GITHUB_TOKEN=ghp_xxx
    export CDN_BASE_URL=https://cdn.example.com
    export PRISMDEPLOY_LOG_LEVEL=DEBUG
    export PRISMDEPLOY_HTTP_TIMEOUT=10
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from prismdeploy.models.manifest import CacheConfig, OptimizationConfig


class DeploySettings(BaseSettings):
    """Process-wide settings with environment variable overrides."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PRISMDEPLOY_",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"

    # Credentials and commit identity
    github_token: str = Field(
        "", validation_alias=AliasChoices("GITHUB_TOKEN", "PRISMDEPLOY_GITHUB_TOKEN")
    )
    git_username: str = Field(
        "github-actions[bot]",
        validation_alias=AliasChoices("GIT_USERNAME", "PRISMDEPLOY_GIT_USERNAME"),
    )
    git_email: str = Field(
        "github-actions[bot]@users.noreply.github.com",
        validation_alias=AliasChoices("GIT_EMAIL", "PRISMDEPLOY_GIT_EMAIL"),
    )

    # CDN build knobs
    cdn_target: str | None = Field(None, validation_alias="CDN_TARGET")
    cdn_compression: str = Field("both", validation_alias="CDN_COMPRESSION")
    cdn_base_url: str | None = Field(None, validation_alias="CDN_BASE_URL")
    cdn_wasm_optimization: bool = Field(True, validation_alias="CDN_WASM_OPTIMIZATION")

    # Timeouts (seconds)
    http_timeout: float = 30.0
    connect_timeout: float = 10.0
    git_timeout: float = 120.0

    # Retry policy
    retry_attempts: int = 3
    retry_cap_ms: int = 10_000
    connect_retry_cap_ms: int = 5_000

    # Manifest heuristics (no measured derivation; kept tunable)
    compression_estimate: float = 0.7
    wasm_memory_multiplier: int = 2
    wasm_memory_floor: int = 1024 * 1024
    package_version: str = "1.0.0"

    # Filesystem
    staging_root: Path = Path(".deploy-temp")
    reports_dir: Path | None = None

    @property
    def optimization(self) -> OptimizationConfig:
        """Optimization flags derived from the CDN_* variables."""
        return OptimizationConfig(
            compression=self.cdn_compression,
            wasm_optimization=self.cdn_wasm_optimization,
        )

    @property
    def caching(self) -> CacheConfig:
        return CacheConfig()
