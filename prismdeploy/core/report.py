"""JSON run reports for deploy invocations.

A report records the phases walked, the provider result and the
validation outcome.  Reports are addressed by the SHA-256 of their
canonical JSON so identical runs are recognisable.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from prismdeploy.core.hasher import content_address
from prismdeploy.models.deployment import DeploymentConfig, DeploymentResult, DeployPhase
from prismdeploy.models.validation import ValidationResult

logger = logging.getLogger(__name__)


class RunReport(BaseModel):
    """One orchestrator invocation, as written to the reports directory."""

    model_config = ConfigDict(frozen=True)

    deployment_id: str
    success: bool
    phases: list[DeployPhase]
    config: DeploymentConfig | None = None
    result: DeploymentResult | None = None
    validation: ValidationResult | None = None
    size_issues: list[str] = Field(default_factory=list)
    error: str | None = None
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")

    @property
    def address(self) -> str:
        payload = self.to_json_dict()
        payload.pop("timestamp_utc", None)
        return content_address(payload)


def write_run_report(report: RunReport, directory: Path) -> Path:
    """Write *report* as ``deploy-<id>-<yyyymmddThhmmss>.json`` under *directory*."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    stamp = report.timestamp_utc.strftime("%Y%m%dT%H%M%S")
    path = directory / f"deploy-{report.deployment_id}-{stamp}.json"
    document = {"address": report.address, **report.to_json_dict()}
    path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    logger.info("Run report written to %s", path)
    return path
