"""Deployment orchestrator: ties scanning, manifest building, providers and validation.

One ``deploy`` call walks the phase machine::

    CONFIGURING -> DRY_RUN_PREVIEW -> DONE
    CONFIGURING -> CONNECTING -> DEPLOYING -> [VALIDATING] -> DONE
                   (any of the above)      -> FAILED

Within a deploy, steps are strictly sequential.  Validation runs after
the deployment is live and is advisory: its failures are logged as
warnings and never undo the deploy.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from prismdeploy.config import DeploySettings
from prismdeploy.core.errors import (
    ConfigurationError,
    ConnectivityError,
    DeploymentFailed,
    InvalidPhaseTransition,
    PrismDeployError,
    ProviderUnsupported,
)
from prismdeploy.core.identifiers import DRY_RUN_ID
from prismdeploy.core.manifest_builder import (
    GENERATED_FILES,
    ManifestBuilder,
    check_manifest_sizes,
    verify_integrity,
)
from prismdeploy.core.report import RunReport, write_run_report
from prismdeploy.core.retry import with_retry
from prismdeploy.core.scanner import scan_directory, summarize_by_type
from prismdeploy.models.assets import AssetBundle
from prismdeploy.models.deployment import (
    VALID_PHASE_TRANSITIONS,
    DeploymentConfig,
    DeploymentInfo,
    DeploymentResult,
    DeploymentTarget,
    DeployPhase,
    RollbackOptions,
)
from prismdeploy.models.validation import CheckStatus, ValidationResult
from prismdeploy.providers import create_provider
from prismdeploy.providers.base import DeploymentProvider
from prismdeploy.validation.validator import DeploymentValidator

logger = logging.getLogger(__name__)

DRY_RUN_FALLBACK_URL = "https://example.com"

ProviderFactory = Callable[..., DeploymentProvider]


class DeployOptions(BaseModel):
    """Per-invocation options, typically straight from the CLI.

    ``None`` means "not given" so lower-precedence sources show through.
    """

    model_config = ConfigDict(frozen=True)

    target: str | None = None
    environment: str | None = None
    repository: str | None = None
    branch: str | None = None
    custom_domain: str | None = None
    base_url: str | None = None
    assets_dir: Path | None = None
    config_file: Path | None = None
    dry_run: bool = False
    validate_after: bool = True
    strict: bool = False
    timeout: float | None = None
    skip_slow: bool = False
    report_dir: Path | None = None


class DeployOutcome(BaseModel):
    """Everything a caller needs to present one deploy run."""

    model_config = ConfigDict(frozen=True)

    result: DeploymentResult
    config: DeploymentConfig
    phases: list[DeployPhase]
    total_files: int = 0
    total_size: int = 0
    summary: dict[str, tuple[int, int]] = Field(default_factory=dict)
    size_issues: list[str] = Field(default_factory=list)
    validation: ValidationResult | None = None
    report_path: Path | None = None


class StatusReport(BaseModel):
    """Result of a quick liveness probe against a deployment URL."""

    model_config = ConfigDict(frozen=True)

    url: str
    reachable: bool
    status_code: int | None = None
    response_time_ms: int | None = None
    manifest_version: str | None = None
    build_hash: str | None = None
    error: str | None = None


class DeploymentOrchestrator:
    """Sequences one deployment invocation.

    Parameters
    ----------
    settings:
        Process settings (credentials, timeouts, retry policy).
    provider_factory:
        ``(config, settings, **kwargs) -> DeploymentProvider``; defaults to
        the registry's ``create_provider``.
    provider_kwargs:
        Extra keyword arguments for the provider factory.
    transport:
        HTTP transport used by validation and status probes.
    sleep:
        Backoff sleep for the connection retry loop.
    """

    def __init__(
        self,
        settings: DeploySettings,
        *,
        provider_factory: ProviderFactory = create_provider,
        provider_kwargs: dict[str, Any] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[object]] | None = None,
    ) -> None:
        self.settings = settings
        self._provider_factory = provider_factory
        self._provider_kwargs = provider_kwargs or {}
        self._transport = transport
        self._sleep = sleep
        self.phase = DeployPhase.CONFIGURING
        self.phase_history: list[DeployPhase] = [DeployPhase.CONFIGURING]

    # ------------------------------------------------------------------
    # Phase machine
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self.phase = DeployPhase.CONFIGURING
        self.phase_history = [DeployPhase.CONFIGURING]

    def _transition(self, target: DeployPhase) -> None:
        allowed = VALID_PHASE_TRANSITIONS.get(self.phase, set())
        if target not in allowed:
            raise InvalidPhaseTransition(
                f"Cannot move from {self.phase.value} to {target.value}. "
                f"Allowed: {sorted(p.value for p in allowed)}"
            )
        logger.debug("Deploy phase %s -> %s", self.phase.value, target.value)
        self.phase = target
        self.phase_history.append(target)

    def _fail(self) -> None:
        if DeployPhase.FAILED in VALID_PHASE_TRANSITIONS.get(self.phase, set()):
            self._transition(DeployPhase.FAILED)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def load_configuration(self, options: DeployOptions) -> DeploymentConfig:
        """Resolve the deployment config.

        Precedence, lowest first: defaults, environment (``CDN_TARGET``,
        ``CDN_BASE_URL``), JSON config file, explicit options.

        Raises
        ------
        ConfigurationError
            On an unreadable or invalid config file, or a github-pages
            target without a repository.
        """
        merged: dict[str, Any] = {}
        if self.settings.cdn_target:
            merged["target"] = self.settings.cdn_target
        if self.settings.cdn_base_url:
            merged["base_url"] = self.settings.cdn_base_url

        if options.config_file is not None:
            try:
                raw = json.loads(Path(options.config_file).read_text(encoding="utf-8"))
                file_config = DeploymentConfig.model_validate(raw)
            except (OSError, json.JSONDecodeError, ValidationError) as exc:
                raise ConfigurationError(
                    f"Cannot load config file {options.config_file}: {exc}"
                ) from exc
            merged.update(file_config.model_dump(exclude_unset=True))

        overrides = {
            "target": options.target,
            "environment": options.environment,
            "repository": options.repository,
            "branch": options.branch,
            "custom_domain": options.custom_domain,
            "base_url": options.base_url,
            "output_dir": str(options.assets_dir) if options.assets_dir else None,
        }
        merged.update({k: v for k, v in overrides.items() if v is not None})

        known = {t.value for t in DeploymentTarget}
        target = merged.get("target", DeploymentTarget.GITHUB_PAGES)
        if isinstance(target, str) and target not in known:
            raise ProviderUnsupported(
                f"Unsupported deployment target: {target} (expected one of {sorted(known)})"
            )

        try:
            config = DeploymentConfig.model_validate(merged)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid deployment configuration: {exc}") from exc

        if config.target == DeploymentTarget.GITHUB_PAGES and not config.repository:
            raise ConfigurationError(
                "GitHub repository is required for GitHub Pages deployment (use --repository)"
            )
        return config

    def _provider(self, config: DeploymentConfig) -> DeploymentProvider:
        return self._provider_factory(config, self.settings, **self._provider_kwargs)

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    def _prepare_bundle(
        self, config: DeploymentConfig, *, strict: bool = False
    ) -> tuple[AssetBundle, list[str]]:
        bundle = scan_directory(
            Path(config.output_dir),
            target=config.target.value,
            environment=config.environment.value,
        )
        generated = {f.path: f for f in bundle.files if f.path in GENERATED_FILES}
        assets = [f for f in bundle.files if f.path not in GENERATED_FILES]
        bundle = bundle.model_copy(
            update={"files": assets, "total_size": sum(f.size for f in assets)}
        )
        if bundle.manifest is None:
            if not bundle.files:
                raise ConfigurationError(f"No assets found in {config.output_dir}")
            output = ManifestBuilder(
                self.settings, target=config.target.value, base_url=config.base_url
            ).build(bundle.file_map())
            bundle = bundle.model_copy(
                update={"manifest": output.manifest, "side_files": output.side_files}
            )
            issues = output.size_issues
        else:
            # Host files shipped alongside an existing manifest are kept as-is.
            side_files = {
                path: f.content.decode("utf-8", errors="replace")
                for path, f in generated.items()
                if path not in ("manifest.json", "integrity.json")
            }
            bundle = bundle.model_copy(update={"side_files": side_files})
            issues = check_manifest_sizes(bundle.manifest)
            problems = verify_integrity(bundle.manifest, bundle.file_map())
            if problems and strict:
                raise problems[0]
        return bundle, [str(issue) for issue in issues]

    async def _connect(self, provider: DeploymentProvider) -> None:
        async def attempt() -> None:
            if not await provider.test_connection():
                raise ConnectivityError(
                    f"Failed to connect to deployment provider {provider.name}"
                )

        kwargs: dict[str, Any] = {
            "attempts": self.settings.retry_attempts,
            "cap_ms": self.settings.connect_retry_cap_ms,
            "retry_on": (ConnectivityError,),
        }
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        await with_retry(attempt, **kwargs)

    async def _validate_live(
        self, provider: DeploymentProvider, url: str, options: DeployOptions
    ) -> ValidationResult | None:
        try:
            validation = await provider.validate(
                url,
                strict=options.strict,
                timeout=options.timeout,
                skip_slow=options.skip_slow,
            )
        except (PrismDeployError, httpx.HTTPError, OSError) as exc:
            logger.warning("Post-deploy validation of %s errored: %s", url, exc)
            return None
        if not validation.success:
            failing = [c.name for c in validation.checks if c.status != CheckStatus.PASSED]
            logger.warning(
                "Post-deploy validation of %s reported problems: %s",
                url,
                ", ".join(failing) or "security checks",
            )
        return validation

    async def deploy(self, options: DeployOptions) -> DeployOutcome:
        """Run one deployment.

        Raises
        ------
        ConfigurationError, ConnectivityError, ProviderUnsupported
            Before anything is published.
        IntegrityError
            When an existing manifest is stale and ``options.strict`` is set.
        DeploymentFailed
            When the provider reports failure; carries its result and logs.
        """
        self._reset()
        started = time.monotonic()
        config: DeploymentConfig | None = None
        report_dir = options.report_dir or self.settings.reports_dir
        try:
            config = self.load_configuration(options)
            bundle, size_issues = self._prepare_bundle(config, strict=options.strict)
            summary = summarize_by_type(bundle.files)
            logger.info(
                "Prepared %d assets (%d bytes) for %s",
                len(bundle.files),
                bundle.total_size,
                config.target.value,
            )

            if options.dry_run:
                self._transition(DeployPhase.DRY_RUN_PREVIEW)
                result = DeploymentResult(
                    success=True,
                    deployment_id=DRY_RUN_ID,
                    url=config.base_url or DRY_RUN_FALLBACK_URL,
                    logs=["Dry run completed successfully"],
                )
                self._transition(DeployPhase.DONE)
                return self._outcome(
                    result, config, bundle, summary, size_issues, None, report_dir
                )

            self._transition(DeployPhase.CONNECTING)
            provider = self._provider(config)
            await self._connect(provider)

            self._transition(DeployPhase.DEPLOYING)
            result = await provider.deploy(bundle)
            if not result.success:
                raise DeploymentFailed(result)

            validation = None
            if options.validate_after:
                self._transition(DeployPhase.VALIDATING)
                validation = await self._validate_live(provider, result.url, options)

            self._transition(DeployPhase.DONE)
            logger.info(
                "Deployment %s finished in %.1fs: %s",
                result.deployment_id,
                time.monotonic() - started,
                result.url,
            )
            return self._outcome(
                result, config, bundle, summary, size_issues, validation, report_dir
            )
        except PrismDeployError as exc:
            self._fail()
            if report_dir is not None:
                failed = exc.result if isinstance(exc, DeploymentFailed) else None
                write_run_report(
                    RunReport(
                        deployment_id=failed.deployment_id if failed else "unknown",
                        success=False,
                        phases=list(self.phase_history),
                        config=config,
                        result=failed,
                        error=str(exc),
                    ),
                    report_dir,
                )
            raise

    def _outcome(
        self,
        result: DeploymentResult,
        config: DeploymentConfig,
        bundle: AssetBundle,
        summary: dict[str, tuple[int, int]],
        size_issues: list[str],
        validation: ValidationResult | None,
        report_dir: Path | None,
    ) -> DeployOutcome:
        report_path = None
        if report_dir is not None:
            report_path = write_run_report(
                RunReport(
                    deployment_id=result.deployment_id,
                    success=result.success,
                    phases=list(self.phase_history),
                    config=config,
                    result=result,
                    validation=validation,
                    size_issues=size_issues,
                ),
                report_dir,
            )
        return DeployOutcome(
            result=result,
            config=config,
            phases=list(self.phase_history),
            total_files=len(bundle.files),
            total_size=bundle.total_size,
            summary=summary,
            size_issues=size_issues,
            validation=validation,
            report_path=report_path,
        )

    # ------------------------------------------------------------------
    # Other operations
    # ------------------------------------------------------------------

    async def validate(
        self,
        url: str,
        *,
        strict: bool = False,
        timeout: float | None = None,
        skip_slow: bool = False,
    ) -> ValidationResult:
        validator = DeploymentValidator(
            timeout=timeout or self.settings.http_timeout,
            strict=strict,
            skip_slow_tests=skip_slow,
            transport=self._transport,
        )
        return await validator.validate(url)

    async def rollback(
        self,
        deployment_id: str,
        options: DeployOptions,
        *,
        preserve_assets: bool = False,
    ) -> DeploymentResult:
        config = self.load_configuration(options)
        provider = self._provider(config)
        return await provider.rollback(
            deployment_id,
            RollbackOptions(
                deployment_id=deployment_id,
                target=config.target,
                preserve_assets=preserve_assets,
            ),
        )

    async def list_deployments(
        self, options: DeployOptions, limit: int = 10
    ) -> list[DeploymentInfo]:
        config = self.load_configuration(options)
        provider = self._provider(config)
        return await provider.list_deployments(limit)

    async def test_connection(self, options: DeployOptions) -> bool:
        config = self.load_configuration(options)
        return await self._provider(config).test_connection()

    async def status(self, url: str, *, timeout: float | None = None) -> StatusReport:
        """Single GET of *url* plus a peek at its ``manifest.json``."""
        base = url.rstrip("/")
        async with httpx.AsyncClient(
            timeout=timeout or self.settings.http_timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            start = time.perf_counter()
            try:
                response = await client.get(base)
            except httpx.HTTPError as exc:
                return StatusReport(url=url, reachable=False, error=repr(exc))
            elapsed = int((time.perf_counter() - start) * 1000)

            version = build_hash = None
            try:
                manifest_response = await client.get(f"{base}/manifest.json")
                if manifest_response.is_success:
                    manifest = manifest_response.json()
                    if isinstance(manifest, dict):
                        version = manifest.get("version")
                        build_hash = manifest.get("buildHash")
            except (httpx.HTTPError, ValueError) as exc:
                logger.debug("Manifest peek for %s failed: %r", url, exc)

        return StatusReport(
            url=url,
            reachable=response.is_success,
            status_code=response.status_code,
            response_time_ms=elapsed,
            manifest_version=version,
            build_hash=build_hash,
        )
