"""prismdeploy: CDN deployment and validation pipeline.

Scans a built asset directory, generates a manifest with SRI integrity
hashes, publishes it through a deployment provider (GitHub Pages), and
validates the live deployment:
  - Asset scanner and manifest builder with bundle size limits
  - Plugin manifest discovery and parsing
  - Provider abstraction; only github-pages is implemented
  - Orchestrator with dry run, connection retry and run reports
  - Concurrent post-deploy validation battery
"""

__version__ = "0.1.0"
__description__ = "CDN deployment and validation pipeline for WebAssembly analytics bundles"

from prismdeploy.core.orchestrator import DeploymentOrchestrator
from prismdeploy.validation.validator import DeploymentValidator
from prismdeploy.cli.app import app as cli

__all__ = ["DeploymentOrchestrator", "DeploymentValidator", "cli", "__version__"]
