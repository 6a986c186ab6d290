"""Typer CLI entrypoint for yield-crawler."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Optional, Sequence

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .calculator import CalculationRequest, RateType, compound
from .config import ConfigRepository, ServiceSettings, SourceDescriptor, load_settings
from .engine import AggregateSnapshot
from .logging_conf import configure_logging
from .orchestrator import YieldService
from .scheduler import CollectionReport

app = typer.Typer(
    help="yield-crawler command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
source_app = typer.Typer(
    name="source",
    help="Inspect configured sources",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    settings: ServiceSettings


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    return AppState(repository=ConfigRepository(), settings=load_settings())


def build_service(state: AppState) -> YieldService:
    return YieldService.from_config(state.settings, repository=state.repository)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _format_percent(value: float | None) -> str:
    return "-" if value is None else f"{value:.2f}%"


def _render_sources_table(sources: Sequence[SourceDescriptor]) -> Table:
    table = Table(
        title=f"Sources · {len(sources)} configured",
        box=box.SIMPLE_HEAD,
        show_lines=False,
    )
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Type", style="magenta")
    table.add_column("Lane", style="yellow")
    table.add_column("Fields", style="green", overflow="fold")
    table.add_column("URL", style="dim", overflow="fold")
    for source in sources:
        table.add_row(
            source.key,
            source.source_type.value,
            source.render_profile().lane.value,
            ", ".join(source.field_map),
            source.url,
        )
    return table


def _render_snapshot_table(report: CollectionReport) -> Table:
    snapshot: AggregateSnapshot = report.snapshot
    title = f"Snapshot · {snapshot.fetched_at.isoformat()}"
    if snapshot.partial:
        title += " · partial"
    table = Table(title=title, box=box.SIMPLE_HEAD)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("APY", style="green", justify="right")
    for name, value in snapshot.fields.items():
        table.add_row(name, _format_percent(value))
    return table


async def _collect_once(service: YieldService) -> CollectionReport:
    await service.init()
    try:
        return await service.refresh()
    finally:
        await service.shutdown()


app.add_typer(source_app, name="source", help="Inspect configured sources")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging", is_flag=True),
) -> None:
    ctx.obj = build_state(verbose)


@source_app.command("list", help="Show configured sources and their lanes.")
def source_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    sources = state.repository.list_sources()
    if not sources:
        console.print("No sources configured.", style="yellow")
        raise typer.Exit(code=0)
    console.print(_render_sources_table(sources))


@app.command("collect", help="Run one collection pass and print the snapshot.")
def collect(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print the snapshot as JSON", is_flag=True),
) -> None:
    state = _get_state(ctx)
    # One-off passes never schedule background refreshes.
    state.settings = state.settings.model_copy(update={"refresh_interval_seconds": 0.0})
    service = build_service(state)
    report = asyncio.run(_collect_once(service))
    if as_json:
        typer.echo(json.dumps(report.snapshot.to_dict(), ensure_ascii=False, indent=2))
    else:
        console.print(_render_snapshot_table(report))
        if report.failed_sources:
            console.print("Failed sources: " + ", ".join(report.failed_sources), style="yellow")
    if report.failed_outright:
        raise typer.Exit(code=1)


@app.command("serve", help="Start the HTTP API.")
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (defaults to HOST)"),
    port: Optional[int] = typer.Option(None, "--port", help="Listen port (defaults to PORT)"),
) -> None:
    import uvicorn

    from .api import create_app

    state = _get_state(ctx)
    service = build_service(state)
    uvicorn.run(
        create_app(service, state.settings),
        host=host or state.settings.host,
        port=port or state.settings.port,
    )


@app.command("calc", help="Project compound growth of a principal.")
def calc(
    principal: float = typer.Argument(..., help="Starting amount"),
    rate: float = typer.Argument(..., help="Annual rate in percent"),
    days: float = typer.Argument(..., help="Holding period in days"),
    rate_type: RateType = typer.Option(RateType.APY, "--rate-type", help="APY or APR"),
    compounding: int = typer.Option(365, "--compounding", help="APR compounding periods per year"),
) -> None:
    try:
        request = CalculationRequest(
            principal=principal,
            rate=rate,
            days=days,
            rate_type=rate_type,
            compounding_per_year=compounding,
        )
    except ValueError as exc:
        console.print(f"Invalid input: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    result = compound(request)
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("Final", style="green", justify="right")
    table.add_column("Profit", style="cyan", justify="right")
    table.add_row(f"{result.final:,.2f}", f"{result.profit:,.2f}")
    console.print(table)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
