"""Post-deploy validation of a live CDN URL.

Check groups (connectivity, assets, wasm, plugins, security, performance)
are independent and run concurrently.  Every HTTP probe is wrapped on its
own, so a timeout or connection error marks only that check ``failed``.
A group that raises anyway is reported as a single ``<group>-error``
check.  Results are looked up by check name; their order carries no
meaning.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable, Sequence
from typing import Any

import httpx

from prismdeploy.core.errors import InvalidManifest
from prismdeploy.core.hasher import sri
from prismdeploy.core.plugin_manifest import parse_plugin_manifest
from prismdeploy.models.validation import (
    UNMEASURED,
    CheckStatus,
    PerformanceMetrics,
    SecurityCheck,
    ValidationCheck,
    ValidationResult,
    overall_success,
)

logger = logging.getLogger(__name__)

DEFAULT_WASM_PATHS = ("assets/dataprism-core.wasm", "assets/dataprism_core_bg.wasm")
DEFAULT_CORE_ASSETS = ("core.min.js", "orchestration.min.js", "plugin-framework.min.js")
SENSITIVE_FILES = (".env", "config.json", "secrets.json", ".git/config")

# header -> accepted values (the first is recommended)
SECURITY_HEADERS: dict[str, tuple[str, ...]] = {
    "X-Content-Type-Options": ("nosniff",),
    "X-Frame-Options": ("DENY", "SAMEORIGIN"),
    "X-XSS-Protection": ("1; mode=block",),
    "Cross-Origin-Embedder-Policy": ("require-corp",),
    "Cross-Origin-Opener-Policy": ("same-origin",),
}

LOAD_TIME_TARGET_MS = 5000
WASM_LOAD_TIME_TARGET_MS = 2000

PASSED = CheckStatus.PASSED
WARNING = CheckStatus.WARNING
FAILED = CheckStatus.FAILED


def _asset_check_name(path: str) -> str:
    return "asset-" + re.sub(r"[^a-zA-Z0-9]", "-", path)


class DeploymentValidator:
    """Runs the validation battery against a deployed URL.

    Parameters
    ----------
    timeout:
        Per-request timeout in seconds.
    strict:
        Require every check to pass (warnings count as failure), and
        escalate integrity mismatches to ``failed``.
    skip_slow_tests:
        Skip the performance group.
    client:
        Pre-built ``httpx.AsyncClient``; left open when supplied.
    transport:
        Transport for the internally created client (tests pass
        ``httpx.MockTransport``).
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        strict: bool = False,
        skip_slow_tests: bool = False,
        wasm_paths: Sequence[str] = DEFAULT_WASM_PATHS,
        core_assets: Sequence[str] = DEFAULT_CORE_ASSETS,
        sensitive_files: Sequence[str] = SENSITIVE_FILES,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.timeout = timeout
        self.strict = strict
        self.skip_slow_tests = skip_slow_tests
        self.wasm_paths = tuple(wasm_paths)
        self.core_assets = tuple(core_assets)
        self.sensitive_files = tuple(sensitive_files)
        self._client = client
        self._transport = transport
        self._clock = clock

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def validate(self, url: str) -> ValidationResult:
        """Validate the deployment at *url*."""
        logger.info("Validating deployment at %s", url)
        if self._client is not None:
            return await self._run(self._client, url)
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            return await self._run(client, url)

    async def _run(self, client: httpx.AsyncClient, url: str) -> ValidationResult:
        base = url.rstrip("/")
        groups: dict[str, Any] = {
            "connectivity": self._connectivity(client, base),
            "assets": self._assets(client, base),
            "wasm": self._wasm(client, base),
            "plugins": self._plugins(client, base),
            "security": self._security(client, base),
        }
        if not self.skip_slow_tests:
            groups["performance"] = self._performance(client, base)

        outcomes = await asyncio.gather(*groups.values(), return_exceptions=True)

        checks: list[ValidationCheck] = []
        security: list[SecurityCheck] = []
        performance: PerformanceMetrics | None = None
        for group, outcome in zip(groups, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning("Validation group %s raised: %s", group, outcome)
                message = f"{group} validation failed: {outcome}"
                if group == "security":
                    security.append(
                        SecurityCheck(name="security-error", status=FAILED, description=message)
                    )
                else:
                    checks.append(
                        ValidationCheck(name=f"{group}-error", status=FAILED, message=message)
                    )
            elif group == "security":
                security.extend(outcome)
            elif group == "performance":
                performance, perf_checks = outcome
                checks.extend(perf_checks)
            else:
                checks.extend(outcome)

        result = ValidationResult(
            success=overall_success(checks, security, strict=self.strict),
            checks=checks,
            performance=performance,
            security=security,
        )
        counts = result.counts()
        logger.info(
            "Validation of %s: %d passed, %d warning(s), %d failed; success=%s",
            url,
            counts[PASSED],
            counts[WARNING],
            counts[FAILED],
            result.success,
        )
        return result

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    async def _reachable(
        self, client: httpx.AsyncClient, name: str, url: str, method: str = "GET"
    ) -> ValidationCheck:
        try:
            response = await client.request(method, url)
        except httpx.HTTPError as exc:
            return ValidationCheck(
                name=name, status=FAILED, message=f"Failed to reach {url}: {exc!r}"
            )
        ok = response.is_success
        return ValidationCheck(
            name=name,
            status=PASSED if ok else FAILED,
            message=f"{url} is accessible" if ok else f"{url} returned {response.status_code}",
            details={"url": url, "status": response.status_code},
        )

    async def _cors(self, client: httpx.AsyncClient, base: str) -> ValidationCheck:
        try:
            response = await client.options(base)
        except httpx.HTTPError as exc:
            return ValidationCheck(
                name="cors-headers", status=FAILED, message=f"CORS validation failed: {exc!r}"
            )
        origin = response.headers.get("Access-Control-Allow-Origin")
        return ValidationCheck(
            name="cors-headers",
            status=PASSED if origin else WARNING,
            message=(
                "CORS headers are configured"
                if origin
                else "CORS headers not found; cross-origin loads may fail"
            ),
            details={"corsHeader": origin},
        )

    async def _cache(self, client: httpx.AsyncClient, base: str) -> ValidationCheck:
        try:
            response = await client.get(base)
        except httpx.HTTPError as exc:
            return ValidationCheck(
                name="cache-headers", status=FAILED, message=f"Cache header validation failed: {exc!r}"
            )
        cache_control = response.headers.get("Cache-Control")
        return ValidationCheck(
            name="cache-headers",
            status=PASSED if cache_control else WARNING,
            message="Cache headers are configured" if cache_control else "Cache headers not found",
            details={"cacheControl": cache_control},
        )

    async def _connectivity(
        self, client: httpx.AsyncClient, base: str
    ) -> list[ValidationCheck]:
        return list(
            await asyncio.gather(
                self._reachable(client, "connectivity-main-url", base),
                self._reachable(client, "connectivity-manifest", f"{base}/manifest.json", "HEAD"),
                self._cors(client, base),
                self._cache(client, base),
            )
        )

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def _manifest_assets(self, manifest: dict[str, Any]) -> list[str]:
        assets = manifest.get("assets") or {}
        named = [
            (assets.get(key) or {}).get("filename")
            for key in ("core", "orchestration", "pluginFramework")
        ]
        ordered = [n for n in named if n] or list(self.core_assets)
        return list(dict.fromkeys(ordered))

    async def _assets(self, client: httpx.AsyncClient, base: str) -> list[ValidationCheck]:
        try:
            response = await client.get(f"{base}/manifest.json")
            response.raise_for_status()
            manifest = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            return [
                ValidationCheck(
                    name="asset-integrity",
                    status=FAILED,
                    message=f"Asset manifest not available: {exc!r}",
                )
            ]
        if not isinstance(manifest, dict):
            return [
                ValidationCheck(
                    name="asset-integrity", status=FAILED, message="Asset manifest is not a JSON object"
                )
            ]

        checks = [
            ValidationCheck(
                name="asset-integrity",
                status=PASSED,
                message="Asset manifest is valid and accessible",
                details={"assetCount": len(manifest.get("assets") or {})},
            )
        ]

        paths = self._manifest_assets(manifest)
        fetched = await asyncio.gather(
            *(self._fetch_asset(client, base, path) for path in paths)
        )
        bodies: dict[str, bytes] = {}
        for path, (check, body) in zip(paths, fetched):
            checks.append(check)
            if body is not None:
                bodies[path] = body

        integrity = manifest.get("integrity") or {}
        checks.append(self._integrity_hashes(manifest, integrity))
        checks.append(self._integrity_verify(paths[0], bodies.get(paths[0]), integrity))
        return checks

    async def _fetch_asset(
        self, client: httpx.AsyncClient, base: str, path: str
    ) -> tuple[ValidationCheck, bytes | None]:
        name = _asset_check_name(path)
        url = f"{base}/{path}"
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            return (
                ValidationCheck(name=name, status=FAILED, message=f"Asset {path} failed: {exc!r}"),
                None,
            )
        ok = response.is_success
        check = ValidationCheck(
            name=name,
            status=PASSED if ok else FAILED,
            message=f"Asset {path} is accessible" if ok else f"Asset {path} not accessible",
            details={"url": url, "status": response.status_code},
        )
        return check, response.content if ok else None

    @staticmethod
    def _integrity_hashes(
        manifest: dict[str, Any], integrity: dict[str, str]
    ) -> ValidationCheck:
        if not integrity:
            return ValidationCheck(
                name="asset-integrity-hashes",
                status=WARNING,
                message="No integrity hashes found in manifest",
            )
        assets = manifest.get("assets") or {}
        referenced: set[str] = set()
        for key in ("core", "orchestration", "pluginFramework"):
            filename = (assets.get(key) or {}).get("filename")
            if filename:
                referenced.add(filename)
        for key in ("plugins", "wasm"):
            referenced.update(
                item.get("filename") for item in assets.get(key) or [] if item.get("filename")
            )
        missing = sorted(referenced - set(integrity))
        if missing:
            return ValidationCheck(
                name="asset-integrity-hashes",
                status=WARNING,
                message=f"{len(missing)} referenced asset(s) lack integrity hashes",
                details={"missing": missing},
            )
        return ValidationCheck(
            name="asset-integrity-hashes",
            status=PASSED,
            message=f"Integrity hashes available for {len(integrity)} assets",
            details={"hashCount": len(integrity)},
        )

    def _integrity_verify(
        self, path: str, body: bytes | None, integrity: dict[str, str]
    ) -> ValidationCheck:
        expected = integrity.get(path)
        if body is None or not expected:
            return ValidationCheck(
                name="asset-integrity-verify",
                status=WARNING,
                message=f"Could not verify {path} against its integrity hash",
            )
        actual = sri(body)
        if actual == expected:
            return ValidationCheck(
                name="asset-integrity-verify",
                status=PASSED,
                message=f"{path} matches its integrity hash",
            )
        return ValidationCheck(
            name="asset-integrity-verify",
            status=FAILED if self.strict else WARNING,
            message=f"{path} does not match its integrity hash",
            details={"expected": expected, "actual": actual},
        )

    # ------------------------------------------------------------------
    # WASM
    # ------------------------------------------------------------------

    async def _wasm(self, client: httpx.AsyncClient, base: str) -> list[ValidationCheck]:
        searched = [f"{base}/{path}" for path in self.wasm_paths]
        error: httpx.HTTPError | None = None
        for url in searched:
            try:
                response = await client.get(url)
            except httpx.HTTPError as exc:
                logger.debug("WASM probe %s failed: %r", url, exc)
                error = exc
                continue
            if not response.is_success:
                continue

            content_type = response.headers.get("Content-Type", "")
            correct = content_type.split(";")[0].strip() == "application/wasm"
            coep = response.headers.get("Cross-Origin-Embedder-Policy")
            coop = response.headers.get("Cross-Origin-Opener-Policy")
            return [
                ValidationCheck(
                    name="wasm-loading",
                    status=PASSED if correct else WARNING,
                    message=(
                        "WASM file accessible with correct MIME type"
                        if correct
                        else f"WASM file accessible but served as {content_type or 'unknown'}"
                    ),
                    details={"url": url, "contentType": content_type},
                ),
                ValidationCheck(
                    name="wasm-streaming-headers",
                    status=PASSED if coep and coop else WARNING,
                    message=(
                        "WASM streaming compilation headers are configured"
                        if coep and coop
                        else "Missing headers for WASM streaming compilation"
                    ),
                    details={"coep": coep, "coop": coop},
                ),
            ]
        if error is not None:
            return [
                ValidationCheck(
                    name="wasm-loading",
                    status=FAILED,
                    message=f"WASM loading validation failed: {error!r}",
                    details={"searchedUrls": searched},
                )
            ]
        return [
            ValidationCheck(
                name="wasm-loading",
                status=WARNING,
                message="No WASM files found at expected locations",
                details={"searchedUrls": searched},
            )
        ]

    # ------------------------------------------------------------------
    # Plugins
    # ------------------------------------------------------------------

    async def _plugin_directory(
        self, client: httpx.AsyncClient, base: str
    ) -> ValidationCheck:
        try:
            response = await client.get(f"{base}/plugins/")
        except httpx.HTTPError as exc:
            return ValidationCheck(
                name="plugin-directory",
                status=WARNING,
                message=f"Plugin directory not accessible: {exc!r}",
            )
        return ValidationCheck(
            name="plugin-directory",
            status=PASSED if response.is_success else WARNING,
            message=(
                "Plugin directory is accessible"
                if response.is_success
                else "Plugin directory not found"
            ),
        )

    async def _plugin_manifest(
        self, client: httpx.AsyncClient, base: str
    ) -> ValidationCheck:
        url = f"{base}/plugins/manifest.json"
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            return ValidationCheck(
                name="plugin-manifest",
                status=WARNING,
                message=f"Plugin manifest not accessible: {exc!r}",
            )
        if not response.is_success:
            return ValidationCheck(
                name="plugin-manifest",
                status=WARNING,
                message="No plugin manifest published",
                details={"url": url, "status": response.status_code},
            )
        try:
            manifest = parse_plugin_manifest(response.content)
        except InvalidManifest as exc:
            return ValidationCheck(name="plugin-manifest", status=FAILED, message=str(exc))
        return ValidationCheck(
            name="plugin-manifest",
            status=PASSED,
            message=f"Plugin manifest lists {len(manifest.plugins)} plugin(s)",
            details={"plugins": len(manifest.plugins)},
        )

    async def _plugins(self, client: httpx.AsyncClient, base: str) -> list[ValidationCheck]:
        loading = self._reachable(client, "plugin-loading", f"{base}/plugin-framework.min.js")
        return list(
            await asyncio.gather(
                loading,
                self._plugin_directory(client, base),
                self._plugin_manifest(client, base),
            )
        )

    # ------------------------------------------------------------------
    # Security
    # ------------------------------------------------------------------

    async def _security_headers(
        self, client: httpx.AsyncClient, base: str
    ) -> list[SecurityCheck]:
        try:
            response = await client.get(base)
        except httpx.HTTPError as exc:
            return [
                SecurityCheck(
                    name="security-headers",
                    status=FAILED,
                    description=f"Could not fetch {base} for header checks: {exc!r}",
                    recommendation="Verify the deployment is reachable",
                )
            ]
        checks: list[SecurityCheck] = []
        for header, accepted in SECURITY_HEADERS.items():
            actual = response.headers.get(header)
            if actual is None:
                status, recommendation = FAILED, f"Add {header}: {accepted[0]}"
            elif actual in accepted:
                status, recommendation = PASSED, None
            else:
                status = WARNING
                recommendation = f"Consider setting to: {' or '.join(accepted)}"
            checks.append(
                SecurityCheck(
                    name=f"security-header-{header.lower()}",
                    status=status,
                    description=f"{header} header validation",
                    recommendation=recommendation,
                )
            )
        return checks

    async def _exposed(self, client: httpx.AsyncClient, url: str) -> bool:
        try:
            response = await client.get(url)
        except httpx.HTTPError:
            return False
        return response.is_success

    async def _sensitive_files(
        self, client: httpx.AsyncClient, base: str
    ) -> SecurityCheck:
        exposed_flags = await asyncio.gather(
            *(self._exposed(client, f"{base}/{name}") for name in self.sensitive_files)
        )
        exposed = [n for n, hit in zip(self.sensitive_files, exposed_flags) if hit]
        if exposed:
            return SecurityCheck(
                name="sensitive-info-exposure",
                status=FAILED,
                description=f"Sensitive file(s) exposed: {', '.join(exposed)}",
                recommendation=f"Remove or block access to {', '.join(exposed)}",
            )
        return SecurityCheck(
            name="sensitive-info-exposure",
            status=PASSED,
            description="No sensitive files exposed",
        )

    async def _security(self, client: httpx.AsyncClient, base: str) -> list[SecurityCheck]:
        headers, sensitive = await asyncio.gather(
            self._security_headers(client, base),
            self._sensitive_files(client, base),
        )
        https = base.startswith("https://")
        return [
            *headers,
            SecurityCheck(
                name="https-enforcement",
                status=PASSED if https else FAILED,
                description="HTTPS protocol enforcement",
                recommendation=None if https else "Serve the CDN over HTTPS only",
            ),
            sensitive,
        ]

    # ------------------------------------------------------------------
    # Performance
    # ------------------------------------------------------------------

    async def _timed_get(
        self, client: httpx.AsyncClient, url: str
    ) -> tuple[int, httpx.Response | None]:
        start = self._clock()
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            logger.debug("Timing probe %s failed: %r", url, exc)
            return UNMEASURED, None
        if not response.is_success:
            return UNMEASURED, response
        return int((self._clock() - start) * 1000), response

    async def _performance(
        self, client: httpx.AsyncClient, base: str
    ) -> tuple[PerformanceMetrics, list[ValidationCheck]]:
        core_path = self.core_assets[0] if self.core_assets else "core.min.js"
        (load_time, core), (wasm_time, _) = await asyncio.gather(
            self._timed_get(client, f"{base}/{core_path}"),
            self._timed_get(client, f"{base}/{self.wasm_paths[0]}")
            if self.wasm_paths
            else asyncio.sleep(0, result=(UNMEASURED, None)),
        )

        total_size = 0
        if core is not None and core.is_success:
            length = core.headers.get("Content-Length")
            total_size = int(length) if length and length.isdigit() else len(core.content)
        metrics = PerformanceMetrics(
            load_time=load_time,
            wasm_load_time=wasm_time,
            total_size=total_size,
            compression_ratio=1 / 1.4 if total_size else 0.0,
        )

        checks: list[ValidationCheck] = []
        if load_time == UNMEASURED:
            checks.append(
                ValidationCheck(
                    name="performance",
                    status=WARNING,
                    message="Core bundle load time could not be measured",
                    details={"loadTime": UNMEASURED, "target": LOAD_TIME_TARGET_MS},
                )
            )
        else:
            checks.append(
                ValidationCheck(
                    name="performance",
                    status=PASSED if load_time < LOAD_TIME_TARGET_MS else WARNING,
                    message=f"Core bundle load time: {load_time}ms",
                    details={"loadTime": load_time, "target": LOAD_TIME_TARGET_MS},
                )
            )
        if wasm_time != UNMEASURED:
            checks.append(
                ValidationCheck(
                    name="performance-wasm-load",
                    status=PASSED if wasm_time < WASM_LOAD_TIME_TARGET_MS else WARNING,
                    message=f"WASM load time: {wasm_time}ms",
                    details={"wasmLoadTime": wasm_time, "target": WASM_LOAD_TIME_TARGET_MS},
                )
            )
        return metrics, checks
