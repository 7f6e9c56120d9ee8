"""Abstract deployment provider.

Every hosting target implements the same asynchronous contract so the
orchestrator can treat them interchangeably.  ``deploy`` and ``rollback``
report failure through ``DeploymentResult(success=False)`` rather than by
raising.
"""

from __future__ import annotations

import abc
import logging
from typing import ClassVar

from prismdeploy.config import DeploySettings
from prismdeploy.core.identifiers import generate_deployment_id
from prismdeploy.models.assets import AssetBundle
from prismdeploy.models.deployment import (
    DeploymentConfig,
    DeploymentInfo,
    DeploymentResult,
    DeploymentStatus,
    DeploymentTarget,
    RollbackOptions,
)
from prismdeploy.models.validation import ValidationResult

logger = logging.getLogger(__name__)


class DeploymentProvider(abc.ABC):
    """Base class for hosting-target adapters.

    Parameters
    ----------
    config:
        Resolved deployment configuration.
    settings:
        Credentials, timeouts and retry policy.
    """

    name: ClassVar[str]
    supported_targets: ClassVar[tuple[DeploymentTarget, ...]] = ()

    def __init__(self, config: DeploymentConfig, settings: DeploySettings) -> None:
        self.config = config
        self.settings = settings

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def generate_deployment_id() -> str:
        return generate_deployment_id()

    def compression_ratio(self, bundle: AssetBundle) -> float:
        """Estimated compressed/raw ratio for *bundle* (0.0 when empty)."""
        if bundle.total_size == 0:
            return 0.0
        estimated = int(bundle.total_size * self.settings.compression_estimate)
        return estimated / bundle.total_size

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def deploy(self, bundle: AssetBundle) -> DeploymentResult:
        """Publish *bundle*; never raises for deployment failures."""
        ...

    @abc.abstractmethod
    async def validate(
        self,
        url: str,
        *,
        strict: bool = False,
        timeout: float | None = None,
        skip_slow: bool = False,
    ) -> ValidationResult:
        """Read-only probe of a live deployment; safe to retry."""
        ...

    @abc.abstractmethod
    async def rollback(
        self, deployment_id: str, options: RollbackOptions
    ) -> DeploymentResult:
        """Restore the state published before *deployment_id*."""
        ...

    @abc.abstractmethod
    async def get_deployment_status(self, deployment_id: str) -> DeploymentStatus:
        ...

    @abc.abstractmethod
    async def list_deployments(self, limit: int = 10) -> list[DeploymentInfo]:
        """Most recent deployments first, at most *limit*."""
        ...

    @abc.abstractmethod
    async def cleanup(self, retention_days: int) -> None:
        ...

    @abc.abstractmethod
    async def test_connection(self) -> bool:
        """Return True if the target is reachable with the configured credentials."""
        ...
