"""Error hierarchy for the deployment pipeline.

Configuration and connectivity errors abort the current operation.
Integrity and size problems are normally reported as warnings; the
exception types exist so they can be collected, logged, and escalated
in strict mode.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prismdeploy.models.deployment import DeploymentResult


class PrismDeployError(Exception):
    """Base exception for all prismdeploy errors."""


class ConfigurationError(PrismDeployError):
    """Raised when a required setting is missing or invalid (pre-flight)."""


class DirectoryNotFound(ConfigurationError):
    """Raised when the asset root directory does not exist."""


class ConnectivityError(PrismDeployError):
    """Raised on authentication or network failure against a provider."""


class IntegrityError(PrismDeployError):
    """Raised when an asset hash does not match its manifest entry."""


class SizeLimitExceeded(PrismDeployError):
    """A bundle size limit violation.

    Collected as a value by the manifest builder rather than raised,
    so oversized builds are flagged but never aborted.
    """

    def __init__(self, filename: str, size: int, limit: int) -> None:
        self.filename = filename
        self.size = size
        self.limit = limit
        super().__init__(
            f"{filename} exceeds size limit: {size} > {limit} bytes"
        )


class ProviderUnsupported(PrismDeployError):
    """Raised when a deployment target has no usable provider."""


class InvalidManifest(PrismDeployError):
    """Raised when a plugin or asset manifest is structurally invalid."""


class RollbackUnavailable(PrismDeployError):
    """Raised when a provider cannot identify a prior published state."""


class InvalidPhaseTransition(PrismDeployError):
    """Raised when the orchestrator attempts an illegal phase change."""


class DeploymentFailed(PrismDeployError):
    """Raised by the orchestrator when a provider reports a failed deploy.

    Carries the provider's ``DeploymentResult`` so callers can print the
    cumulative logs.
    """

    def __init__(self, result: DeploymentResult) -> None:
        self.result = result
        super().__init__(result.error or "Deployment failed")
