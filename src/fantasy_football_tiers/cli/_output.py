from datetime import datetime

from rich.console import Console
from rich.table import Table

from fantasy_football_tiers.domain.cache_entry import CacheStats, CacheStatus, CacheStatusDisplay
from fantasy_football_tiers.domain.pipeline import PipelineExecutionReport
from fantasy_football_tiers.domain.tier import TierGroup
from fantasy_football_tiers.services.accessor import AccessResult

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

_STATUS_STYLES = {
    CacheStatus.FRESH: "green",
    CacheStatus.STALE: "yellow",
    CacheStatus.EXPIRED: "red",
    CacheStatus.MISSING: "dim",
}


def print_error(message: str) -> None:
    err_console.print(f"[red bold]Error:[/red bold] {message}")


def _fmt_rank(value: float | None) -> str:
    return f"{value:.1f}" if value is not None else "-"


def _fmt_time(timestamp: float | None) -> str:
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M")


def print_pipeline_report(report: PipelineExecutionReport) -> None:
    table = Table(show_edge=False, pad_edge=False)
    table.add_column("Group")
    table.add_column("Format")
    table.add_column("Source")
    table.add_column("Players", justify="right")
    table.add_column("ms", justify="right")
    table.add_column("Error")
    for d in report.details:
        style = "" if d.success else "red"
        table.add_row(
            d.group.value,
            d.format.value,
            d.source.value,
            str(d.player_count),
            str(d.duration_ms),
            d.error or "",
            style=style,
        )
    console.print(table)

    color = "green" if report.success else "red"
    console.print(
        f"[{color} bold]{report.successful_fetches}/{report.total_items} succeeded[/{color} bold]"
        f"  stored {report.total_players_stored} players, {report.cache_entries_updated} cache entries updated"
        f"  ({report.total_duration_ms}ms, {report.execution_id})"
    )
    for error in report.errors:
        err_console.print(f"  [yellow]{error}[/yellow]")


def print_tiers(result: AccessResult, tiers: list[TierGroup]) -> None:
    console.print(
        f"[bold]{result.group.value}[/bold] {result.format.display_name}"
        f"  source: {result.provenance.value}, cache: {result.cache_status.value}"
    )
    if result.is_fallback:
        console.print("[yellow]Showing fallback data; live rankings are unavailable.[/yellow]")
    table = Table(show_edge=False, pad_edge=False)
    table.add_column("Tier")
    table.add_column("#", justify="right")
    table.add_column("Player")
    table.add_column("Team")
    table.add_column("Avg Rank", justify="right")
    table.add_column("Std Dev", justify="right")
    for tier in tiers:
        for offset, player in enumerate(tier.players):
            label = f"{tier.tier} {tier.label}" if offset == 0 else ""
            table.add_row(
                label,
                str(tier.min_rank + offset),
                player.name,
                player.team,
                _fmt_rank(player.average_rank),
                _fmt_rank(player.standard_deviation),
            )
        table.add_section()
    console.print(table)


def print_cache_status(rows: list[tuple[str, str, CacheStatusDisplay]], stats: CacheStats) -> None:
    table = Table(show_edge=False, pad_edge=False)
    table.add_column("Group")
    table.add_column("Format")
    table.add_column("Status")
    table.add_column("Detail")
    for group, fmt, display in rows:
        style = _STATUS_STYLES[display.status]
        table.add_row(group, fmt, f"[{style}]{display.status.value}[/{style}]", display.message)
    console.print(table)
    console.print(
        f"{stats.total_entries} entries, {stats.total_bytes} bytes"
        f"  oldest {_fmt_time(stats.oldest)}, newest {_fmt_time(stats.newest)}"
    )
