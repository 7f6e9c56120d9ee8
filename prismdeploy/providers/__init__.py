"""Deployment providers and the target -> provider registry.

Only GitHub Pages is implemented.  The other declared targets fail at
construction with ``ProviderUnsupported`` so a misconfigured deploy stops
before any work is done.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from prismdeploy.config import DeploySettings
from prismdeploy.core.errors import ProviderUnsupported
from prismdeploy.models.deployment import DeploymentConfig, DeploymentTarget
from prismdeploy.providers.base import DeploymentProvider
from prismdeploy.providers.github_pages import GitHubPagesProvider

ProviderFactory = Callable[..., DeploymentProvider]


def _not_implemented(target: DeploymentTarget) -> ProviderFactory:
    def factory(config: DeploymentConfig, settings: DeploySettings, **_: Any) -> DeploymentProvider:
        raise ProviderUnsupported(f"{target.value} provider is not yet implemented")

    return factory


PROVIDERS: dict[DeploymentTarget, ProviderFactory] = {
    DeploymentTarget.GITHUB_PAGES: GitHubPagesProvider,
    DeploymentTarget.CLOUDFLARE_PAGES: _not_implemented(DeploymentTarget.CLOUDFLARE_PAGES),
    DeploymentTarget.NETLIFY: _not_implemented(DeploymentTarget.NETLIFY),
    DeploymentTarget.VERCEL: _not_implemented(DeploymentTarget.VERCEL),
}


def create_provider(
    config: DeploymentConfig, settings: DeploySettings, **kwargs: Any
) -> DeploymentProvider:
    """Construct the provider for ``config.target``.

    Extra keyword arguments (``git``, ``validator``, ``sleep``) are passed
    to the provider constructor.
    """
    factory = PROVIDERS.get(config.target)
    if factory is None:
        raise ProviderUnsupported(f"Unsupported deployment target: {config.target}")
    return factory(config, settings, **kwargs)


__all__ = [
    "PROVIDERS",
    "DeploymentProvider",
    "GitHubPagesProvider",
    "create_provider",
]
