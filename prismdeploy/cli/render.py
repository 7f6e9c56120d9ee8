"""Rich terminal rendering for deploy, validation and manifest results.

Color scheme
------------
- green  : passed / success
- yellow : warning
- red    : failed
- dim    : informational
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from prismdeploy.core.orchestrator import DeployOutcome, StatusReport
from prismdeploy.core.scanner import format_size
from prismdeploy.models.deployment import DeploymentInfo, DeploymentResult
from prismdeploy.models.manifest import AssetManifest, PluginManifest
from prismdeploy.models.validation import CheckStatus, ValidationResult

_STATUS_LABELS: dict[CheckStatus, str] = {
    CheckStatus.PASSED: "[green]PASSED[/green]",
    CheckStatus.WARNING: "[yellow]WARNING[/yellow]",
    CheckStatus.FAILED: "[bold red]FAILED[/bold red]",
}


class DeployRenderer:
    """Prints orchestrator results to a Rich console.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    def print_asset_summary(self, outcome: DeployOutcome) -> None:
        table = Table(title="Assets", header_style="bold cyan")
        table.add_column("Type")
        table.add_column("Files", justify="right")
        table.add_column("Size", justify="right")
        for label, (count, size) in sorted(outcome.summary.items()):
            table.add_row(label, str(count), format_size(size))
        table.add_row(
            "[bold]Total[/bold]",
            f"[bold]{outcome.total_files}[/bold]",
            f"[bold]{format_size(outcome.total_size)}[/bold]",
        )
        self.console.print(table)

    def print_logs(self, result: DeploymentResult) -> None:
        for line in result.logs:
            self.console.print(f"  [dim]{line}[/dim]")

    def print_outcome(self, outcome: DeployOutcome) -> None:
        result = outcome.result
        self.print_asset_summary(outcome)
        for issue in outcome.size_issues:
            self.console.print(f"[yellow]Size warning:[/yellow] {issue}")
        self.print_logs(result)

        phases = " -> ".join(p.value for p in outcome.phases)
        body = (
            f"[bold]Deployment ID:[/bold] {result.deployment_id}\n"
            f"[bold]URL:[/bold] {result.url}\n"
            f"[bold]Target:[/bold] {outcome.config.target.value}\n"
        )
        if result.metrics is not None:
            body += f"[bold]Deploy time:[/bold] {result.metrics.deploy_time}ms\n"
        body += f"[dim]{phases}[/dim]"
        if outcome.report_path is not None:
            body += f"\n[dim]Report: {outcome.report_path}[/dim]"
        self.console.print(
            Panel(body, title="[bold green]Deployment successful[/bold green]", border_style="green")
        )
        if outcome.validation is not None:
            self.print_validation(outcome.validation)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def print_validation(self, result: ValidationResult) -> None:
        table = Table(title="Validation checks", header_style="bold cyan", expand=True)
        table.add_column("Check", min_width=24)
        table.add_column("Status", width=10, justify="center")
        table.add_column("Message")
        for check in sorted(result.checks, key=lambda c: c.name):
            table.add_row(check.name, _STATUS_LABELS[check.status], check.message)
        self.console.print(table)

        if result.security:
            security = Table(title="Security", header_style="bold cyan", expand=True)
            security.add_column("Check", min_width=24)
            security.add_column("Status", width=10, justify="center")
            security.add_column("Description")
            security.add_column("Recommendation", style="dim")
            for check in result.security:
                security.add_row(
                    check.name,
                    _STATUS_LABELS[check.status],
                    check.description,
                    check.recommendation or "",
                )
            self.console.print(security)

        counts = result.counts()
        summary = (
            f"[green]{counts[CheckStatus.PASSED]} passed[/green], "
            f"[yellow]{counts[CheckStatus.WARNING]} warnings[/yellow], "
            f"[red]{counts[CheckStatus.FAILED]} failed[/red]"
        )
        perf = result.performance
        if perf is not None:
            summary += f"\nLoad time: {perf.load_time}ms"
            if perf.wasm_load_time >= 0:
                summary += f", WASM load: {perf.wasm_load_time}ms"
            if perf.total_size > 0:
                summary += f", bundle: {format_size(perf.total_size)}"
        passed = result.success
        self.console.print(
            Panel(
                summary,
                title="[bold green]Validation passed[/bold green]"
                if passed
                else "[bold red]Validation failed[/bold red]",
                border_style="green" if passed else "red",
            )
        )

    # ------------------------------------------------------------------
    # History and status
    # ------------------------------------------------------------------

    def print_deployments(self, deployments: Sequence[DeploymentInfo]) -> None:
        if not deployments:
            self.console.print("[dim]No deployments found.[/dim]")
            return
        table = Table(title=f"Recent deployments ({len(deployments)})", header_style="bold cyan")
        table.add_column("#", justify="right")
        table.add_column("ID", style="cyan")
        table.add_column("Status")
        table.add_column("Created")
        table.add_column("Commit", style="dim")
        table.add_column("URL")
        for index, info in enumerate(deployments, start=1):
            table.add_row(
                str(index),
                info.id,
                info.status.value,
                info.created_at,
                f"{info.branch} ({info.commit_hash[:8]})",
                info.url,
            )
        self.console.print(table)

    def print_status(self, report: StatusReport) -> None:
        if report.error:
            self.console.print(f"[bold red]Unreachable:[/bold red] {report.url} ({report.error})")
            return
        color = "green" if report.reachable else "red"
        lines = [
            f"[bold]URL:[/bold] {report.url}",
            f"[bold]HTTP:[/bold] [{color}]{report.status_code}[/{color}]",
            f"[bold]Response time:[/bold] {report.response_time_ms}ms",
        ]
        if report.manifest_version:
            lines.append(f"[bold]Version:[/bold] {report.manifest_version}")
        if report.build_hash:
            lines.append(f"[bold]Build:[/bold] {report.build_hash}")
        self.console.print(Panel("\n".join(lines), title="Deployment status", border_style=color))

    # ------------------------------------------------------------------
    # Manifests and sizes
    # ------------------------------------------------------------------

    def print_manifest(self, manifest: AssetManifest, issues: Iterable[str] = ()) -> None:
        assets = manifest.assets
        table = Table(title=f"Manifest {manifest.build_hash}", header_style="bold cyan")
        table.add_column("Role")
        table.add_column("File")
        table.add_column("Size", justify="right")
        table.add_row("core", assets.core.filename, format_size(assets.core.size))
        table.add_row(
            "orchestration", assets.orchestration.filename, format_size(assets.orchestration.size)
        )
        table.add_row(
            "plugin-framework",
            assets.plugin_framework.filename,
            format_size(assets.plugin_framework.size),
        )
        for plugin in assets.plugins:
            table.add_row("plugin", plugin.filename, format_size(plugin.size))
        for wasm in assets.wasm:
            table.add_row("wasm", wasm.filename, format_size(wasm.size))
        self.console.print(table)
        self.console.print(
            f"Total: {format_size(manifest.metadata.total_bundle_size)}, "
            f"integrity entries: {len(manifest.integrity)}"
        )
        for issue in issues:
            self.console.print(f"[yellow]Size warning:[/yellow] {issue}")

    def print_plugin_manifest(self, manifest: PluginManifest) -> None:
        total = sum(p.metadata.size for p in manifest.plugins)
        lines = [f"Total plugins: {len(manifest.plugins)}", f"Categories: {len(manifest.categories)}"]
        lines += [f"  {c.name}: {len(c.plugins)} plugins" for c in manifest.categories]
        lines += [f"Total size: {format_size(total)}", f"Base URL: {manifest.base_url}"]
        self.console.print(Panel("\n".join(lines), title="Plugin manifest", border_style="cyan"))

    def print_sizes(self, files: Sequence[tuple[str, int]], issues: Sequence[str]) -> None:
        table = Table(title="Bundle files", header_style="bold cyan")
        table.add_column("File")
        table.add_column("Size", justify="right")
        for name, size in sorted(files, key=lambda f: f[1], reverse=True):
            color = "red" if size > 1024 * 1024 else "yellow" if size > 512 * 1024 else "green"
            table.add_row(name, f"[{color}]{format_size(size)}[/{color}]")
        self.console.print(table)
        self.console.print(f"Total: {format_size(sum(size for _, size in files))}")
        if issues:
            for issue in issues:
                self.console.print(f"[bold red]Size limit exceeded:[/bold red] {issue}")
        else:
            self.console.print("[green]All bundles are within size limits.[/green]")
