"""Post-deploy validation of live CDN deployments."""

from prismdeploy.validation.validator import DeploymentValidator

__all__ = ["DeploymentValidator"]
