"""Deployment configuration, results, and the orchestrator phase model."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from prismdeploy.models.manifest import WireModel


class DeploymentTarget(str, Enum):
    """Hosting targets known to the deployment CLI."""

    GITHUB_PAGES = "github-pages"
    CLOUDFLARE_PAGES = "cloudflare-pages"
    NETLIFY = "netlify"
    VERCEL = "vercel"


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


DEFAULT_HEADERS: dict[str, str] = {
    "Cache-Control": "public, max-age=31536000",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}


class DeploymentConfig(WireModel):
    """Resolved configuration for one deployment.

    Loaded from defaults, an optional JSON config file (camelCase or
    snake_case keys), and CLI overrides, in that order.
    """

    target: DeploymentTarget = DeploymentTarget.GITHUB_PAGES
    environment: Environment = Environment.PRODUCTION
    repository: str | None = None  # "owner/repo"
    branch: str = "gh-pages"
    custom_domain: str | None = None
    base_url: str | None = None
    output_dir: str = "cdn/dist"
    headers: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS))


class DeploymentMetrics(WireModel):
    build_time: int = 0  # ms
    deploy_time: int = 0  # ms
    total_files: int = 0
    total_size: int = 0
    compression_ratio: float = 0.0


class DeploymentResult(WireModel):
    """Outcome of one deploy (or rollback) attempt.  Finalized once."""

    success: bool
    deployment_id: str
    url: str = ""
    preview_url: str | None = None
    logs: list[str] = Field(default_factory=list)
    metrics: DeploymentMetrics | None = None
    error: str | None = None


class DeploymentLog:
    """Append-only log accumulated during a deploy attempt.

    Logs only grow; ``finish()`` freezes them into a ``DeploymentResult``.
    """

    def __init__(self, deployment_id: str) -> None:
        self.deployment_id = deployment_id
        self._lines: list[str] = []

    def add(self, line: str) -> None:
        self._lines.append(line)

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def finish(
        self,
        *,
        success: bool,
        url: str = "",
        metrics: DeploymentMetrics | None = None,
        error: str | None = None,
    ) -> DeploymentResult:
        return DeploymentResult(
            success=success,
            deployment_id=self.deployment_id,
            url=url,
            logs=list(self._lines),
            metrics=metrics,
            error=error,
        )


class DeploymentState(str, Enum):
    PENDING = "pending"
    BUILDING = "building"
    READY = "ready"
    ERROR = "error"
    CANCELLED = "cancelled"


class DeploymentStatus(WireModel):
    id: str
    status: DeploymentState
    progress: int = 0
    logs: list[str] = Field(default_factory=list)
    url: str | None = None
    created_at: str
    completed_at: str | None = None
    error: str | None = None


class DeploymentInfo(WireModel):
    """One entry of a provider's deployment history."""

    id: str
    status: DeploymentState
    url: str
    branch: str
    commit_hash: str
    created_at: str
    metrics: DeploymentMetrics | None = None


class RollbackOptions(WireModel):
    deployment_id: str
    target: DeploymentTarget
    preserve_assets: bool = False
    notify_users: bool = False


# ---------------------------------------------------------------------------
# Orchestrator phases
# ---------------------------------------------------------------------------


class DeployPhase(str, Enum):
    """Phases of a single orchestrator invocation."""

    CONFIGURING = "configuring"
    DRY_RUN_PREVIEW = "dry_run_preview"
    CONNECTING = "connecting"
    DEPLOYING = "deploying"
    VALIDATING = "validating"
    DONE = "done"
    FAILED = "failed"


# DONE and FAILED are terminal.
VALID_PHASE_TRANSITIONS: dict[DeployPhase, set[DeployPhase]] = {
    DeployPhase.CONFIGURING: {
        DeployPhase.DRY_RUN_PREVIEW,
        DeployPhase.CONNECTING,
        DeployPhase.FAILED,
    },
    DeployPhase.DRY_RUN_PREVIEW: {DeployPhase.DONE, DeployPhase.FAILED},
    DeployPhase.CONNECTING: {DeployPhase.DEPLOYING, DeployPhase.FAILED},
    DeployPhase.DEPLOYING: {
        DeployPhase.VALIDATING,
        DeployPhase.DONE,
        DeployPhase.FAILED,
    },
    DeployPhase.VALIDATING: {DeployPhase.DONE},
    DeployPhase.DONE: set(),
    DeployPhase.FAILED: set(),
}
