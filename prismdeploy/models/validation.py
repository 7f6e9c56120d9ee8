"""Validation report models: output of the deployment validator."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import Field

from prismdeploy.models.manifest import WireModel

# Sentinel for a metric that could not be measured (distinct from 0).
UNMEASURED = -1


class CheckStatus(str, Enum):
    PASSED = "passed"
    WARNING = "warning"
    FAILED = "failed"


class ValidationCheck(WireModel):
    """A single validation check result."""

    name: str
    status: CheckStatus
    message: str
    details: dict[str, Any] | None = None


class SecurityCheck(WireModel):
    """A single security check result."""

    name: str
    status: CheckStatus
    description: str
    recommendation: str | None = None


class PerformanceMetrics(WireModel):
    """Timings in milliseconds; ``UNMEASURED`` (-1) marks a missing metric."""

    load_time: int = UNMEASURED
    wasm_load_time: int = UNMEASURED
    plugin_load_times: dict[str, int] = Field(default_factory=dict)
    total_size: int = 0
    compression_ratio: float = 0.0


class ValidationResult(WireModel):
    """Outcome of one validation run."""

    success: bool
    checks: list[ValidationCheck] = Field(default_factory=list)
    performance: PerformanceMetrics | None = None
    security: list[SecurityCheck] = Field(default_factory=list)

    def check(self, name: str) -> ValidationCheck | None:
        """Look a check up by name (check order is not significant)."""
        for c in self.checks:
            if c.name == name:
                return c
        return None

    def security_check(self, name: str) -> SecurityCheck | None:
        for c in self.security:
            if c.name == name:
                return c
        return None

    def counts(self) -> dict[CheckStatus, int]:
        """Number of checks per status (security checks excluded)."""
        totals = {status: 0 for status in CheckStatus}
        for c in self.checks:
            totals[c.status] += 1
        return totals


def overall_success(
    checks: list[ValidationCheck],
    security: list[SecurityCheck],
    *,
    strict: bool,
) -> bool:
    """Strict mode requires every check passed; normal mode only forbids failures."""
    statuses = [c.status for c in checks] + [s.status for s in security]
    if strict:
        return all(s == CheckStatus.PASSED for s in statuses)
    return all(s != CheckStatus.FAILED for s in statuses)
