from typing import Annotated

import typer

from fantasy_football_tiers.cli._logging import configure_logging
from fantasy_football_tiers.cli._output import (
    console,
    print_cache_status,
    print_error,
    print_pipeline_report,
    print_tiers,
)
from fantasy_football_tiers.domain.pipeline import PipelineRequest
from fantasy_football_tiers.domain.ranked_entity import Position, ScoringFormat
from fantasy_football_tiers.services.container import ServiceConfig, ServiceContainer

app = typer.Typer(name="fftiers", help="Fantasy football rankings: fetch, cache and tier")
cache_app = typer.Typer(name="cache", help="Inspect and maintain the rankings cache")
app.add_typer(cache_app, name="cache")


def build_container(config: ServiceConfig) -> ServiceContainer:
    return ServiceContainer(config)


def _container(ctx: typer.Context, **overrides: object) -> ServiceContainer:
    config: ServiceConfig = ctx.obj or ServiceConfig()
    for name, value in overrides.items():
        setattr(config, name, value)
    return build_container(config)


def _parse_positions(raw: list[str] | None) -> tuple[Position, ...] | None:
    if not raw:
        return None
    try:
        return tuple(Position.parse(r) for r in raw)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=2) from None


def _parse_formats(raw: list[str] | None) -> tuple[ScoringFormat, ...] | None:
    if not raw:
        return None
    try:
        return tuple(ScoringFormat.parse(r) for r in raw)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=2) from None


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable DEBUG logging")] = False,
    config_path: Annotated[str, typer.Option("--config", help="YAML config file")] = "config.yaml",
) -> None:
    """Fantasy football rankings: fetch, cache and tier."""
    configure_logging(verbose=verbose)
    ctx.obj = ServiceConfig(config_path=config_path)
    if ctx.invoked_subcommand is None:
        raise typer.Exit()


_GroupOpt = Annotated[list[str] | None, typer.Option("--group", "-g", help="Position(s) to fetch (repeatable)")]
_FormatOpt = Annotated[list[str] | None, typer.Option("--format", "-f", help="Scoring format(s) (repeatable)")]


@app.command()
def refresh(
    ctx: typer.Context,
    group: _GroupOpt = None,
    format: _FormatOpt = None,
    force: Annotated[bool, typer.Option("--force", help="Fetch even when the cache is fresh")] = False,
    no_database: Annotated[bool, typer.Option("--no-database", help="Do not write the dataset database")] = False,
    retries: Annotated[int, typer.Option("--retries", help="Upstream attempts per request")] = 1,
) -> None:
    """Run the fetch pipeline for every group x format pair."""
    container = _container(ctx, http_retries=retries)
    settings = container.pipeline_settings
    request = PipelineRequest(
        groups=_parse_positions(group) or settings.default_groups,
        formats=_parse_formats(format) or settings.default_formats,
        force_refresh=force,
        update_database=not no_database,
    )
    report = container.orchestrator.run(request)
    print_pipeline_report(report)
    if not report.success:
        raise typer.Exit(code=1)


@app.command()
def tiers(
    ctx: typer.Context,
    group: Annotated[str, typer.Argument(help="Position, e.g. RB")],
    format: Annotated[str, typer.Option("--format", "-f", help="Scoring format")] = "PPR",
    count: Annotated[int | None, typer.Option("--tiers", "-t", help="Maximum number of tiers")] = None,
) -> None:
    """Show a position's rankings grouped into tiers."""
    try:
        position = Position.parse(group)
        fmt = ScoringFormat.parse(format)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=2) from None
    if count is not None and count < 1:
        print_error("--tiers must be at least 1")
        raise typer.Exit(code=2)
    container = _container(ctx)
    result, groups = container.accessor.tiers(position, fmt, count)
    if not result.entities:
        print_error(result.error or f"No rankings available for {group}")
        raise typer.Exit(code=1)
    print_tiers(result, groups)


@cache_app.command("status")
def cache_status(ctx: typer.Context) -> None:
    """Show freshness of every tracked cache entry."""
    container = _container(ctx)
    cache = container.cache
    rows = [
        (group.value, fmt.value, cache.status_display(group, fmt)) for group, fmt in container.accessor.tracked
    ]
    print_cache_status(rows, cache.stats())


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Delete every cached ranking."""
    removed = _container(ctx).cache.clear()
    console.print(f"Removed {removed} cache entries")


@cache_app.command("purge")
def cache_purge(
    ctx: typer.Context,
    days: Annotated[float, typer.Option("--days", help="Remove data older than this many days")] = 7,
) -> None:
    """Remove cache entries and inactive datasets older than N days."""
    if days < 0:
        print_error("--days must not be negative")
        raise typer.Exit(code=2)
    container = _container(ctx)
    cache_removed = container.cache.purge_older_than(days)
    datasets_removed = container.repo.cleanup_old_data(days)
    console.print(f"Removed {cache_removed} cache entries and {datasets_removed} datasets older than {days:g} days")


@app.command()
def serve(
    ctx: typer.Context,
    host: Annotated[str, typer.Option("--host", help="Interface to bind")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Port to listen on")] = 8000,
    background_refresh: Annotated[
        bool, typer.Option("--background-refresh/--no-background-refresh", help="Refresh stale rankings periodically")
    ] = True,
) -> None:
    """Serve the rankings HTTP API."""
    from fantasy_football_tiers.web.app import create_app

    container = _container(ctx)
    flask_app = create_app(container)
    if background_refresh:
        container.refresher.start()
    console.print(f"Serving on http://{host}:{port}")
    try:
        flask_app.run(host=host, port=port, threaded=True)
    finally:
        if background_refresh:
            container.refresher.stop()
