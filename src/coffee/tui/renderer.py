"""Rich-based rendering of coffee results."""

from __future__ import annotations

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.status import Status
from rich.table import Table

from coffee.core.utils import short_path
from coffee.nurse import RepairOutcome, SanityReport
from coffee.plugins.models import (
    InstalledPlugin,
    SearchResult,
    ShowResult,
    TipOutcome,
    UpgradeOutcome,
    UpgradeStatus,
)
from coffee.remotes.models import PluginDescriptor, Remote

console = Console()


def spinner(message: str) -> Status:
    """Status spinner for a long-running phase."""
    return Status(message, console=console, spinner="dots")


def _short_commit(commit: str) -> str:
    return commit[:8] if len(commit) == 40 else commit


def show_list(plugins: list[InstalledPlugin]) -> None:
    if not plugins:
        console.print("no plugins installed", style="dim")
        console.print("use `coffee install <name>` to add one", style="dim")
        return
    table = Table(box=None, pad_edge=False)
    table.add_column("name", style="bold", no_wrap=True)
    table.add_column("remote")
    table.add_column("version")
    table.add_column("mode", style="dim")
    table.add_column("status", no_wrap=True)
    table.add_column("path", style="dim", overflow="fold")
    for p in plugins:
        status = "[green]on[/green]" if p.enabled else "[dim]off[/dim]"
        table.add_row(
            escape(p.name),
            escape(p.origin_remote),
            escape(_short_commit(p.resolved_commit_or_version)),
            p.install_mode.value,
            status,
            escape(short_path(p.artifact_path)),
        )
    console.print(table)


def show_remote_list(remotes: list[Remote]) -> None:
    if not remotes:
        console.print("no remotes configured", style="dim")
        console.print("use `coffee remote add <name> <url>` to add one", style="dim")
        return
    for r in remotes:
        console.print(
            f"  [bold]{escape(r.local_name)}[/bold]  [dim]{escape(r.url)}[/dim]  "
            f"{len(r.manifest)} plugin(s)  {_short_commit(r.commit)}"
        )


def show_remote_inspect(name: str, plugins: list[PluginDescriptor]) -> None:
    if not plugins:
        console.print(f"remote [bold]{escape(name)}[/bold] advertises no plugins", style="dim")
        return
    table = Table(box=None, pad_edge=False)
    table.add_column("plugin", style="bold", no_wrap=True)
    table.add_column("language")
    table.add_column("version")
    table.add_column("path", style="dim", overflow="fold")
    for d in plugins:
        table.add_row(
            escape(d.name),
            d.language_hint.value,
            escape(_short_commit(d.resolved_version)),
            escape(d.repository_subpath),
        )
    console.print(table)


def show_search(result: SearchResult) -> None:
    console.print(
        f"  [bold]{escape(result.name)}[/bold] in {escape(result.remote)}  "
        f"[dim]{escape(result.repository_url)}[/dim]"
    )


def show_readme(result: ShowResult) -> None:
    if not result.readme.strip():
        console.print(f"{escape(result.name)} has no README", style="dim")
        return
    console.print(Markdown(result.readme))


def show_upgrade(outcome: UpgradeOutcome) -> None:
    target = outcome.remote or "all remotes"
    if outcome.status == UpgradeStatus.UP_TO_DATE:
        console.print(f"{escape(target)} up to date", style="dim")
    else:
        console.print(f"updated {escape(target)}")
        for name in outcome.updated:
            console.print(f"  [green]rebuilt[/green] [bold]{escape(name)}[/bold]")
    if outcome.commit:
        console.print(f"  at {_short_commit(outcome.commit)} ({outcome.date})", style="dim")
    for name, error in outcome.failures.items():
        console.print(
            f"  [red]failed[/red] [bold]{escape(name)}[/bold]: {escape(str(error.cause))}"
        )


def show_report(report: SanityReport) -> None:
    if report.is_sane():
        console.print("[green]coffee is sane[/green]")
        return
    console.print(f"coffee found {len(report.anomalies)} problem(s):", style="bold")
    for anomaly in report.anomalies:
        console.print(f"  [red]-[/red] {escape(str(anomaly))}")


def show_repair(outcome: RepairOutcome) -> None:
    if not outcome.actions and outcome.is_sane():
        console.print("[green]coffee is sane, nothing to repair[/green]")
        return
    for action in outcome.actions:
        detail = f"  [dim]{escape(action.detail)}[/dim]" if action.detail else ""
        label = action.action.replace("_", " ")
        console.print(f"  {label} [bold]{escape(action.subject)}[/bold]{detail}")
    if outcome.unresolved:
        console.print(f"{len(outcome.unresolved)} problem(s) left:", style="bold")
        for anomaly in outcome.unresolved:
            console.print(f"  [red]-[/red] {escape(str(anomaly))}")
    else:
        console.print("[green]coffee is sane[/green]")


def show_tip(outcome: TipOutcome) -> None:
    console.print(
        f"tipped [bold]{escape(outcome.for_plugin)}[/bold] {outcome.amount_msat} msat "
        f"({escape(outcome.status)})"
    )
    if outcome.payment_hash:
        console.print(f"  payment hash {outcome.payment_hash}", style="dim")
    console.print(f"  {outcome.tip_total_msat} msat tipped in total", style="dim")
